from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

import discord

from core.errors import TicketNotFoundError, TicketSetupError, report_interaction_error
from services.actions import TicketAction, action_custom_id, parse_action_token
from utils.constants import STATUS_CLAIMED, STATUS_UNCLAIMED, TICKET_COLOR
from utils.embeds import make_embed

if TYPE_CHECKING:
    from services.lifecycle import OpenedTicket
    from storage.models import Panel

LOGGER = logging.getLogger(__name__)


def build_ticket_embed(panel: Panel, opener_id: int, claimer_id: int | None = None) -> discord.Embed:
    description = panel.description or ""
    if panel.disclaimer:
        description = f"{description}\n\n**Disclaimer**\n{panel.disclaimer}".strip()
    embed = make_embed(
        title=panel.title or "Ticket",
        description=description[:4096] or None,
        color=TICKET_COLOR,
        footer="Press Claim to take this ticket.",
    )
    embed.add_field(name="Opener", value=f"<@{opener_id}>", inline=True)
    status = f"{STATUS_CLAIMED} by <@{claimer_id}>" if claimer_id else STATUS_UNCLAIMED
    embed.add_field(name="Status", value=status, inline=True)
    return embed


def _ticket_context(interaction: discord.Interaction) -> tuple[discord.TextChannel, discord.Member]:
    channel = interaction.channel
    if not isinstance(channel, discord.TextChannel):
        raise TicketNotFoundError()
    if not isinstance(interaction.user, discord.Member):
        raise TicketNotFoundError()
    return channel, interaction.user


class ClaimTicketButton(
    discord.ui.DynamicItem[discord.ui.Button],
    template=rf"{TicketAction.CLAIM.value}:(?P<panel_id>[^:|]+)",
):
    """Claim button; matched by custom id so it works for every ticket, even after a restart."""

    def __init__(self, panel_id: str, claimed: bool = False) -> None:
        super().__init__(
            discord.ui.Button(
                label="Claimed" if claimed else "Claim",
                style=discord.ButtonStyle.secondary if claimed else discord.ButtonStyle.success,
                custom_id=action_custom_id(TicketAction.CLAIM, panel_id),
                disabled=claimed,
            )
        )
        self.panel_id = panel_id

    @classmethod
    async def from_custom_id(
        cls, interaction: discord.Interaction, item: discord.ui.Button, match: re.Match[str]
    ) -> ClaimTicketButton:
        return cls(parse_action_token(item.custom_id).panel_id, claimed=item.disabled)

    async def callback(self, interaction: discord.Interaction) -> None:
        try:
            channel, member = _ticket_context(interaction)
            result = await interaction.client.lifecycle.claim_ticket(channel, member, self.panel_id)
        except Exception as exc:
            await report_interaction_error(interaction, exc)
            return
        view = TicketControlsView(self.panel_id, claimed=True)
        embed = build_ticket_embed(result.panel, result.state.opener_id, result.state.claimer_id)
        try:
            await interaction.response.edit_message(content=f"✅ Claimed by {member.mention}", embed=embed, view=view)
        except discord.HTTPException as exc:
            LOGGER.warning("Could not refresh controls in ticket %s: %s", channel.id, exc)


class CloseTicketButton(
    discord.ui.DynamicItem[discord.ui.Button],
    template=rf"{TicketAction.CLOSE.value}:(?P<panel_id>[^:|]+)",
):
    """Close button; answers even when the ticket's panel no longer exists."""

    def __init__(self, panel_id: str) -> None:
        super().__init__(
            discord.ui.Button(
                label="Close",
                style=discord.ButtonStyle.danger,
                custom_id=action_custom_id(TicketAction.CLOSE, panel_id),
            )
        )
        self.panel_id = panel_id

    @classmethod
    async def from_custom_id(
        cls, interaction: discord.Interaction, item: discord.ui.Button, match: re.Match[str]
    ) -> CloseTicketButton:
        return cls(parse_action_token(item.custom_id).panel_id)

    async def callback(self, interaction: discord.Interaction) -> None:
        try:
            channel, member = _ticket_context(interaction)
            result = await interaction.client.lifecycle.close_ticket(channel, member, self.panel_id)
            message = "Already closing..." if result.already_closing else "Closing..."
            await interaction.response.send_message(message, ephemeral=True)
        except Exception as exc:
            await report_interaction_error(interaction, exc)


class TicketControlsView(discord.ui.View):
    def __init__(self, panel_id: str, claimed: bool = False) -> None:
        super().__init__(timeout=None)
        self.panel_id = panel_id
        self.add_item(ClaimTicketButton(panel_id, claimed))
        self.add_item(CloseTicketButton(panel_id))


async def post_ticket_controls(opened: OpenedTicket) -> discord.Message:
    embed = build_ticket_embed(opened.panel, opened.state.opener_id)
    view = TicketControlsView(opened.panel.panel_id)
    try:
        return await opened.channel.send(content=f"<@{opened.state.opener_id}>", embed=embed, view=view)
    except discord.HTTPException as exc:
        LOGGER.warning("Could not post controls in ticket %s: %s", opened.channel.id, exc)
    # A ticket without controls can never be claimed or closed.
    try:
        await opened.channel.delete(reason="Ticket controls could not be posted")
    except discord.HTTPException as exc:
        LOGGER.warning("Could not remove unfinished ticket %s: %s", opened.channel.id, exc)
    raise TicketSetupError()
