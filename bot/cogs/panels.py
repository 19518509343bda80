from __future__ import annotations

import logging

import discord
from discord.ext import commands

from core.bot import TicketBot
from core.errors import PanelConfigurationError, PanelNotFoundError
from storage.models import Panel, PanelDraft
from utils.constants import DEFAULT_BUTTON_LABEL
from utils.embeds import make_embed, success_embed
from views.panel_prompt import build_panel_embed, post_panel_message

LOGGER = logging.getLogger(__name__)


def _is_admin(member: discord.Member) -> bool:
    return member.guild_permissions.administrator


class PanelsCog(commands.Cog):
    def __init__(self, bot: TicketBot) -> None:
        self.bot = bot

    async def _assert_admin(self, ctx: commands.Context[TicketBot]) -> discord.Guild:
        if not ctx.guild or not isinstance(ctx.author, discord.Member) or not _is_admin(ctx.author):
            raise commands.CheckFailure("Administrator permission required.")
        return ctx.guild

    async def _guild_panel(self, guild: discord.Guild, panel_id: str) -> Panel:
        panel = await self.bot.panel_store.require(panel_id.strip())
        if panel.guild_id != guild.id:
            raise PanelNotFoundError()
        return panel

    async def _refresh_prompt(self, guild: discord.Guild, panel: Panel) -> None:
        channel = guild.get_channel(panel.channel_id)
        if not isinstance(channel, discord.TextChannel) or not panel.message_id:
            return
        try:
            await channel.get_partial_message(panel.message_id).edit(embed=build_panel_embed(panel, guild))
        except discord.HTTPException as exc:
            LOGGER.warning("Could not refresh prompt of panel %s: %s", panel.panel_id, exc)

    @commands.hybrid_group(name="panel", with_app_command=True, description="Ticket panel management.")
    async def panel(self, ctx: commands.Context[TicketBot]) -> None:
        if ctx.invoked_subcommand is None:
            await ctx.reply(
                embed=make_embed(
                    "Panel Commands",
                    "`/panel create`\n"
                    "`/panel claimroles_add <panelid> <role>`\n"
                    "`/panel claimroles_remove <panelid> <role>`\n"
                    "`/panel list`\n"
                    "`/panel delete <panelid>`",
                ),
                mention_author=False,
            )

    @panel.command(name="create", description="Create a ticket panel.")
    async def panel_create(
        self,
        ctx: commands.Context[TicketBot],
        channel: discord.TextChannel,
        category: discord.CategoryChannel,
        title: str,
        description: str,
        claimrole1: discord.Role,
        ticketname: str,
        disclaimer: str | None = None,
        transcriptchannel: discord.TextChannel | None = None,
        image: str | None = None,
        thumbnail: str | None = None,
        availability: str | None = None,
        button: str | None = None,
        claimrole2: discord.Role | None = None,
        claimrole3: discord.Role | None = None,
    ) -> None:
        guild = await self._assert_admin(ctx)
        await ctx.defer(ephemeral=True)
        roles = [role.id for role in (claimrole1, claimrole2, claimrole3) if role is not None]
        draft = PanelDraft(
            guild_id=guild.id,
            channel_id=channel.id,
            category_id=category.id,
            title=title,
            description=description,
            claim_role_ids=roles,
            ticket_name=ticketname,
            button_label=button or DEFAULT_BUTTON_LABEL,
            image_url=image,
            thumbnail_url=thumbnail,
            availability=availability,
            disclaimer=disclaimer,
            transcript_channel_id=transcriptchannel.id if transcriptchannel else None,
        )
        panel = await self.bot.panel_store.create(draft)
        try:
            message = await post_panel_message(channel, panel)
        except discord.HTTPException as exc:
            await self.bot.panel_store.delete(panel.panel_id)
            LOGGER.warning("Could not post panel %s in channel %s: %s", panel.panel_id, channel.id, exc)
            raise PanelConfigurationError("Could not post the panel in that channel.") from None
        await self.bot.panel_store.set_message_id(panel.panel_id, message.id)
        await ctx.reply(
            embed=success_embed(f"✅ Panel created. ID: `{panel.panel_id}`"),
            ephemeral=True,
            mention_author=False,
        )

    @panel.command(name="claimroles_add", description="Add a claim role to a panel.")
    async def claimroles_add(self, ctx: commands.Context[TicketBot], panelid: str, role: discord.Role) -> None:
        guild = await self._assert_admin(ctx)
        panel = await self._guild_panel(guild, panelid)
        panel = await self.bot.panel_store.add_claim_role(panel.panel_id, role.id)
        await self._refresh_prompt(guild, panel)
        await ctx.reply(embed=success_embed("✅ Done."), ephemeral=True, mention_author=False)

    @panel.command(name="claimroles_remove", description="Remove a claim role from a panel.")
    async def claimroles_remove(self, ctx: commands.Context[TicketBot], panelid: str, role: discord.Role) -> None:
        guild = await self._assert_admin(ctx)
        panel = await self._guild_panel(guild, panelid)
        panel = await self.bot.panel_store.remove_claim_role(panel.panel_id, role.id)
        await self._refresh_prompt(guild, panel)
        await ctx.reply(embed=success_embed("✅ Done."), ephemeral=True, mention_author=False)

    @panel.command(name="list", description="List all panels.")
    async def panel_list(self, ctx: commands.Context[TicketBot]) -> None:
        guild = await self._assert_admin(ctx)
        panels = await self.bot.panel_store.list(guild_id=guild.id)
        if not panels:
            await ctx.reply("No panels.", ephemeral=True, mention_author=False)
            return
        lines = [
            f"• `{panel.panel_id}` | {panel.title} | <#{panel.channel_id}> | ticketname: {panel.ticket_name}"
            for panel in panels
        ]
        await ctx.reply("\n".join(lines)[:1900], ephemeral=True, mention_author=False)

    @panel.command(name="delete", description="Delete a panel config.")
    async def panel_delete(self, ctx: commands.Context[TicketBot], panelid: str) -> None:
        guild = await self._assert_admin(ctx)
        panel = await self._guild_panel(guild, panelid)
        await self.bot.panel_store.delete(panel.panel_id)
        LOGGER.info("Panel %s deleted by %s", panel.panel_id, ctx.author.id)
        await ctx.reply(embed=success_embed("✅ Deleted."), ephemeral=True, mention_author=False)


async def setup(bot: TicketBot) -> None:
    await bot.add_cog(PanelsCog(bot))
