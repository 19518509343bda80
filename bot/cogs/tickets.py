from __future__ import annotations

import logging

import discord
from discord.ext import commands

from core.bot import TicketBot
from core.errors import TicketNotFoundError
from services import ticket_state
from utils.constants import STATUS_CLAIMED, STATUS_UNCLAIMED, TICKET_COLOR
from utils.embeds import make_embed, success_embed
from views.panel_prompt import OpenTicketButton
from views.ticket_controls import ClaimTicketButton, CloseTicketButton

LOGGER = logging.getLogger(__name__)

TICKET_BUTTONS = (OpenTicketButton, ClaimTicketButton, CloseTicketButton)


def _is_admin(member: discord.Member) -> bool:
    return member.guild_permissions.administrator


class TicketsCog(commands.Cog):
    def __init__(self, bot: TicketBot) -> None:
        self.bot = bot

    async def cog_load(self) -> None:
        self.bot.add_dynamic_items(*TICKET_BUTTONS)
        LOGGER.info("Registered %s ticket buttons", len(TICKET_BUTTONS))

    async def cog_unload(self) -> None:
        self.bot.remove_dynamic_items(*TICKET_BUTTONS)

    def _current_ticket(self, ctx: commands.Context[TicketBot]) -> tuple[discord.TextChannel, str]:
        channel = ctx.channel
        if not ctx.guild or not isinstance(channel, discord.TextChannel):
            raise TicketNotFoundError()
        panel_id = ticket_state.panel_id_of(channel.topic)
        if panel_id is None:
            raise TicketNotFoundError()
        return channel, panel_id

    @commands.hybrid_group(name="ticket", with_app_command=True, description="Ticket command group.")
    async def ticket(self, ctx: commands.Context[TicketBot]) -> None:
        if ctx.invoked_subcommand is None:
            await ctx.reply(
                embed=make_embed(
                    "Ticket Commands",
                    "`/ticket info` for details\n`/ticket resync` to reapply permissions",
                ),
                mention_author=False,
            )

    @ticket.command(name="info", description="Show the state of the current ticket.")
    async def ticket_info(self, ctx: commands.Context[TicketBot]) -> None:
        channel, panel_id = self._current_ticket(ctx)
        state = self.bot.lifecycle.read_state(channel, panel_id)
        panel = await self.bot.panel_store.get(panel_id)
        embed = make_embed(title=f"Ticket #{channel.name}", color=TICKET_COLOR)
        embed.add_field(name="Panel", value=f"{panel.title} (`{panel_id}`)" if panel else f"`{panel_id}` (deleted)")
        embed.add_field(name="Opener", value=f"<@{state.opener_id}>")
        status = f"{STATUS_CLAIMED} by <@{state.claimer_id}>" if state.claimer_id else STATUS_UNCLAIMED
        if self.bot.lifecycle.is_closing(channel.id):
            status = f"{status} (closing)"
        embed.add_field(name="Status", value=status)
        await ctx.reply(embed=embed, ephemeral=True, mention_author=False)

    @ticket.command(name="resync", description="Reapply the permission overwrites of the current ticket.")
    async def ticket_resync(self, ctx: commands.Context[TicketBot]) -> None:
        if not isinstance(ctx.author, discord.Member) or not _is_admin(ctx.author):
            raise commands.CheckFailure("Administrator permission required.")
        channel, panel_id = self._current_ticket(ctx)
        await ctx.defer(ephemeral=True)
        await self.bot.lifecycle.resync_permissions(channel, panel_id)
        await ctx.reply(embed=success_embed("Permissions resynchronized."), ephemeral=True, mention_author=False)


async def setup(bot: TicketBot) -> None:
    await bot.add_cog(TicketsCog(bot))
