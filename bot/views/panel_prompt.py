from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

import discord

from core.errors import report_interaction_error
from services.actions import TicketAction, action_custom_id, parse_action_token
from utils.constants import DEFAULT_AVAILABILITY, DEFAULT_BUTTON_LABEL, DEFAULT_PANEL_TITLE
from utils.embeds import error_embed, make_embed, success_embed
from views.ticket_controls import post_ticket_controls

if TYPE_CHECKING:
    from storage.models import Panel

LOGGER = logging.getLogger(__name__)


def build_panel_embed(panel: Panel, guild: discord.Guild | None) -> discord.Embed:
    claim_roles = " ".join(f"<@&{role_id}>" for role_id in panel.claim_role_ids) or "None"
    embed = make_embed(
        title=panel.title or DEFAULT_PANEL_TITLE,
        description=panel.description or "Open a ticket and we’ll help you out.",
        color=panel.color,
        footer=f"{guild.name if guild else 'Server'} • Ticket System",
    )
    embed.add_field(name="Availability", value=panel.availability or DEFAULT_AVAILABILITY, inline=False)
    embed.add_field(name="Who can handle tickets", value=claim_roles, inline=False)
    if panel.image_url:
        embed.set_image(url=panel.image_url)
    if panel.thumbnail_url:
        embed.set_thumbnail(url=panel.thumbnail_url)
    return embed


class OpenTicketButton(
    discord.ui.DynamicItem[discord.ui.Button],
    template=rf"{TicketAction.OPEN.value}:(?P<panel_id>[^:|]+)",
):
    def __init__(self, panel_id: str, label: str = DEFAULT_BUTTON_LABEL) -> None:
        super().__init__(
            discord.ui.Button(
                label=label,
                style=discord.ButtonStyle.primary,
                custom_id=action_custom_id(TicketAction.OPEN, panel_id),
            )
        )
        self.panel_id = panel_id

    @classmethod
    async def from_custom_id(
        cls, interaction: discord.Interaction, item: discord.ui.Button, match: re.Match[str]
    ) -> OpenTicketButton:
        return cls(parse_action_token(item.custom_id).panel_id, label=item.label or DEFAULT_BUTTON_LABEL)

    async def callback(self, interaction: discord.Interaction) -> None:
        if not interaction.guild or not isinstance(interaction.user, discord.Member):
            await interaction.response.send_message(embed=error_embed("Guild context is required."), ephemeral=True)
            return
        try:
            await interaction.response.defer(ephemeral=True, thinking=True)
            opened = await interaction.client.lifecycle.open_ticket(interaction.guild, interaction.user, self.panel_id)
            await post_ticket_controls(opened)
        except Exception as exc:
            await report_interaction_error(interaction, exc)
            return
        await interaction.followup.send(embed=success_embed(f"✅ {opened.channel.mention}"), ephemeral=True)


class PanelPromptView(discord.ui.View):
    def __init__(self, panel: Panel) -> None:
        super().__init__(timeout=None)
        self.panel_id = panel.panel_id
        self.add_item(OpenTicketButton(panel.panel_id, panel.button_label))


async def post_panel_message(channel: discord.TextChannel, panel: Panel) -> discord.Message:
    message = await channel.send(embed=build_panel_embed(panel, channel.guild), view=PanelPromptView(panel))
    LOGGER.info("Posted panel %s prompt as message %s in channel %s", panel.panel_id, message.id, channel.id)
    return message
