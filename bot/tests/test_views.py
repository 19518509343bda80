from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from conftest import CLAIM_ROLE_ID, OPENER_ID, STAFF_ID, http_error, make_draft, make_member, make_text_channel
from core.errors import PanelNotFoundError, TicketSetupError
from services.lifecycle import ClaimResult, CloseResult, OpenedTicket
from services.ticket_state import TicketState
from views.panel_prompt import OpenTicketButton, PanelPromptView, build_panel_embed
from views.ticket_controls import (
    ClaimTicketButton,
    CloseTicketButton,
    TicketControlsView,
    build_ticket_embed,
    post_ticket_controls,
)

TICKET_ID = 999000000000000001


def _interaction(guild, channel, member, *, deferred: bool = False) -> MagicMock:
    interaction = MagicMock(spec=discord.Interaction)
    interaction.guild = guild
    interaction.channel = channel
    interaction.user = member
    interaction.data = {"custom_id": "test"}
    interaction.client = MagicMock()
    interaction.response = MagicMock()
    interaction.response.is_done = MagicMock(return_value=deferred)
    interaction.response.send_message = AsyncMock()
    interaction.response.edit_message = AsyncMock()
    interaction.response.defer = AsyncMock()
    interaction.followup = MagicMock()
    interaction.followup.send = AsyncMock()
    return interaction


def _opened(guild, panel) -> OpenedTicket:
    return OpenedTicket(
        channel=make_text_channel(TICKET_ID, guild),
        panel=panel,
        state=TicketState(panel.panel_id, OPENER_ID),
    )


def test_panel_embed_lists_claim_roles(guild) -> None:
    panel = make_draft(availability="Weekdays", image_url="https://cdn.example.com/banner.png").to_panel("abcd1234")

    embed = build_panel_embed(panel, guild)

    fields = {field.name: field.value for field in embed.fields}
    assert fields["Availability"] == "Weekdays"
    assert fields["Who can handle tickets"] == f"<@&{CLAIM_ROLE_ID}>"
    assert embed.footer.text == "Test Guild • Ticket System"
    assert embed.image.url == "https://cdn.example.com/banner.png"


def test_ticket_embed_shows_disclaimer_and_status() -> None:
    panel = make_draft(disclaimer="No refunds.").to_panel("abcd1234")

    unclaimed = build_ticket_embed(panel, OPENER_ID)
    claimed = build_ticket_embed(panel, OPENER_ID, STAFF_ID)

    assert unclaimed.description.endswith("**Disclaimer**\nNo refunds.")
    assert {field.name: field.value for field in unclaimed.fields}["Status"] == "Unclaimed"
    assert {field.name: field.value for field in claimed.fields}["Status"] == f"Claimed by <@{STAFF_ID}>"


@pytest.mark.asyncio
async def test_views_carry_panel_scoped_custom_ids() -> None:
    panel = make_draft().to_panel("abcd1234")

    prompt = PanelPromptView(panel)
    controls = TicketControlsView(panel.panel_id)
    claimed = TicketControlsView(panel.panel_id, claimed=True)

    assert prompt.is_persistent()
    assert [item.custom_id for item in prompt.children] == ["open_ticket:abcd1234"]
    assert [item.custom_id for item in controls.children] == ["claim_ticket:abcd1234", "close_ticket:abcd1234"]
    assert claimed.children[0].item.disabled is True


@pytest.mark.parametrize(
    ("button_cls", "custom_id", "matches"),
    [
        (CloseTicketButton, "close_ticket:eopfjrbs", True),
        (ClaimTicketButton, "claim_ticket:eopfjrbs", True),
        (OpenTicketButton, "open_ticket:eopfjrbs", True),
        (CloseTicketButton, "claim_ticket:eopfjrbs", False),
        (CloseTicketButton, "close_ticket:", False),
        (CloseTicketButton, "close_ticket:a:b", False),
    ],
)
def test_buttons_match_any_panel_custom_id(button_cls, custom_id: str, matches: bool) -> None:
    assert (button_cls("x").template.fullmatch(custom_id) is not None) is matches


@pytest.mark.asyncio
async def test_close_button_rebuilt_for_deleted_panel_still_closes(guild) -> None:
    # No view is registered for this panel; the button is rebuilt from its custom id alone.
    stored = discord.ui.Button(label="Close", custom_id="close_ticket:gone1234")
    template = CloseTicketButton("gone1234").template
    button = await CloseTicketButton.from_custom_id(MagicMock(), stored, template.fullmatch(stored.custom_id))
    channel = make_text_channel(TICKET_ID, guild)
    member = make_member(OPENER_ID)
    interaction = _interaction(guild, channel, member)
    interaction.client.lifecycle.close_ticket = AsyncMock(
        return_value=CloseResult(state=TicketState("gone1234", OPENER_ID))
    )

    await button.callback(interaction)

    interaction.client.lifecycle.close_ticket.assert_awaited_once_with(channel, member, "gone1234")
    interaction.response.send_message.assert_awaited_once_with("Closing...", ephemeral=True)


@pytest.mark.asyncio
async def test_claimed_button_rebuilds_disabled() -> None:
    stored = discord.ui.Button(label="Claimed", custom_id="claim_ticket:abcd1234", disabled=True)
    template = ClaimTicketButton("abcd1234").template

    button = await ClaimTicketButton.from_custom_id(MagicMock(), stored, template.fullmatch(stored.custom_id))

    assert button.panel_id == "abcd1234"
    assert button.item.disabled is True


@pytest.mark.asyncio
async def test_claim_button_refreshes_controls(guild) -> None:
    panel = make_draft().to_panel("abcd1234")
    channel = make_text_channel(TICKET_ID, guild)
    member = make_member(STAFF_ID, (CLAIM_ROLE_ID,))
    interaction = _interaction(guild, channel, member)
    interaction.client.lifecycle.claim_ticket = AsyncMock(
        return_value=ClaimResult(panel=panel, state=TicketState("abcd1234", OPENER_ID, STAFF_ID))
    )
    view = TicketControlsView(panel.panel_id)

    await view.children[0].callback(interaction)

    interaction.client.lifecycle.claim_ticket.assert_awaited_once_with(channel, member, "abcd1234")
    kwargs = interaction.response.edit_message.await_args.kwargs
    assert kwargs["content"] == f"✅ Claimed by <@{STAFF_ID}>"
    assert kwargs["view"].children[0].item.disabled is True


@pytest.mark.asyncio
async def test_claim_button_reports_rejection(guild) -> None:
    interaction = _interaction(guild, make_text_channel(TICKET_ID, guild), make_member(STAFF_ID))
    interaction.client.lifecycle.claim_ticket = AsyncMock(side_effect=PanelNotFoundError())
    view = TicketControlsView("gone1234")

    await view.children[0].callback(interaction)

    interaction.response.edit_message.assert_not_awaited()
    embed = interaction.response.send_message.await_args.kwargs["embed"]
    assert embed.description == "Panel not found."


@pytest.mark.asyncio
async def test_close_button_acknowledges(guild) -> None:
    interaction = _interaction(guild, make_text_channel(TICKET_ID, guild), make_member(OPENER_ID))
    interaction.client.lifecycle.close_ticket = AsyncMock(
        return_value=CloseResult(state=TicketState("abcd1234", OPENER_ID), already_closing=True)
    )
    view = TicketControlsView("abcd1234")

    await view.children[1].callback(interaction)

    interaction.response.send_message.assert_awaited_once_with("Already closing...", ephemeral=True)


@pytest.mark.asyncio
async def test_post_ticket_controls_mentions_opener(guild) -> None:
    opened = _opened(guild, make_draft().to_panel("abcd1234"))

    await post_ticket_controls(opened)

    kwargs = opened.channel.send.await_args.kwargs
    assert kwargs["content"] == f"<@{OPENER_ID}>"
    assert [item.custom_id for item in kwargs["view"].children] == ["claim_ticket:abcd1234", "close_ticket:abcd1234"]
    opened.channel.delete.assert_not_awaited()


@pytest.mark.asyncio
async def test_post_ticket_controls_failure_removes_channel(guild) -> None:
    opened = _opened(guild, make_draft().to_panel("abcd1234"))
    opened.channel.send.side_effect = http_error(discord.Forbidden, 403)

    with pytest.raises(TicketSetupError):
        await post_ticket_controls(opened)

    opened.channel.delete.assert_awaited_once()


@pytest.mark.asyncio
async def test_post_ticket_controls_failure_raises_when_cleanup_fails(guild) -> None:
    opened = _opened(guild, make_draft().to_panel("abcd1234"))
    opened.channel.send.side_effect = http_error()
    opened.channel.delete.side_effect = http_error(discord.NotFound, 404)

    with pytest.raises(TicketSetupError):
        await post_ticket_controls(opened)


@pytest.mark.asyncio
async def test_open_button_reports_success(guild) -> None:
    panel = make_draft().to_panel("abcd1234")
    member = make_member(OPENER_ID)
    interaction = _interaction(guild, None, member, deferred=True)
    opened = _opened(guild, panel)
    interaction.client.lifecycle.open_ticket = AsyncMock(return_value=opened)

    await PanelPromptView(panel).children[0].callback(interaction)

    interaction.client.lifecycle.open_ticket.assert_awaited_once_with(guild, member, "abcd1234")
    interaction.response.defer.assert_awaited_once_with(ephemeral=True, thinking=True)
    embed = interaction.followup.send.await_args.kwargs["embed"]
    assert embed.description == f"✅ <#{TICKET_ID}>"


@pytest.mark.asyncio
async def test_open_button_reports_error_when_controls_cannot_be_posted(guild) -> None:
    panel = make_draft().to_panel("abcd1234")
    interaction = _interaction(guild, None, make_member(OPENER_ID), deferred=True)
    opened = _opened(guild, panel)
    opened.channel.send.side_effect = http_error()
    interaction.client.lifecycle.open_ticket = AsyncMock(return_value=opened)

    await PanelPromptView(panel).children[0].callback(interaction)

    opened.channel.delete.assert_awaited_once()
    interaction.followup.send.assert_awaited_once()
    embed = interaction.followup.send.await_args.kwargs["embed"]
    assert embed.title == "Error"
    assert embed.description == TicketSetupError().user_message
