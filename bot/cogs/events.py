from __future__ import annotations

import logging

import discord
from discord.ext import commands

from core.bot import TicketBot

LOGGER = logging.getLogger(__name__)


class EventsCog(commands.Cog):
    def __init__(self, bot: TicketBot) -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_ready(self) -> None:
        LOGGER.info("Serving %s guilds", len(self.bot.guilds))

    @commands.Cog.listener()
    async def on_guild_join(self, guild: discord.Guild) -> None:
        LOGGER.info("Joined guild %s (%s)", guild.name, guild.id)

    @commands.Cog.listener()
    async def on_guild_channel_delete(self, channel: discord.abc.GuildChannel) -> None:
        if self.bot.lifecycle.is_closing(channel.id):
            LOGGER.debug("Ticket channel %s removed", channel.id)
        self.bot.lifecycle.forget(channel.id)


async def setup(bot: TicketBot) -> None:
    await bot.add_cog(EventsCog(bot))
