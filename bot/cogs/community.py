from __future__ import annotations

import discord
from discord.ext import commands

from core.bot import TicketBot
from utils.constants import VOUCH_COLOR
from utils.embeds import make_embed


class CommunityCog(commands.Cog):
    def __init__(self, bot: TicketBot) -> None:
        self.bot = bot

    @commands.hybrid_command(name="vouch", with_app_command=True, description="Post vouch instructions.")
    async def vouch(self, ctx: commands.Context[TicketBot], channel: discord.TextChannel) -> None:
        embed = make_embed(
            title="Vouches",
            description=f"Please vouch your indexer in {channel.mention}.\n\nKeep it honest and specific.",
            color=VOUCH_COLOR,
            footer="Thanks for supporting the team.",
        )
        await ctx.reply(embed=embed, ephemeral=True, mention_author=False)


async def setup(bot: TicketBot) -> None:
    await bot.add_cog(CommunityCog(bot))
