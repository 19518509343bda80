from __future__ import annotations

import logging
from pathlib import Path

import discord
from discord.ext import commands

from core.config import AppConfig
from core.errors import handle_app_command_error, handle_prefix_command_error
from core.extensions import load_extensions
from services.cache import CacheBackend, build_cache
from services.lifecycle import TicketLifecycle
from services.transcript import TranscriptArchiver
from storage.panel_store import PanelStore
from utils.rate_limit import DistributedRateLimiter

LOGGER = logging.getLogger(__name__)


class TicketBot(commands.Bot):
    def __init__(self, config: AppConfig) -> None:
        intents = discord.Intents.default()
        intents.guilds = True
        intents.messages = True
        intents.message_content = True

        super().__init__(
            command_prefix=config.discord.prefix,
            intents=intents,
            application_id=config.discord.application_id,
            allowed_mentions=discord.AllowedMentions(everyone=False, roles=True, users=True, replied_user=False),
            help_command=None,
        )
        self.config = config
        self.root_dir = Path(__file__).resolve().parent.parent
        self.cache: CacheBackend | None = None

        panels_path = Path(config.storage.panels_file)
        if not panels_path.is_absolute():
            panels_path = self.root_dir / panels_path
        self.panel_store = PanelStore(panels_path)

        # Built during setup_hook once the cache backend is known.
        self.lifecycle: TicketLifecycle

    async def setup_hook(self) -> None:
        self.cache = await build_cache(self.config.redis)
        self.lifecycle = TicketLifecycle(
            self.panel_store,
            TranscriptArchiver(self.config.transcripts),
            self.config.tickets,
            rate_limiter=DistributedRateLimiter(self.cache),
            transcript_timeout_seconds=self.config.transcripts.timeout_seconds,
        )

        await load_extensions(self, self.config.enabled_extensions)
        self.tree.on_error = handle_app_command_error  # type: ignore[assignment]

        if self.config.discord.sync_commands_on_start:
            guild_id = self.config.discord.guild_id
            if guild_id:
                guild = discord.Object(id=guild_id)
                self.tree.copy_global_to(guild=guild)
                synced = await self.tree.sync(guild=guild)
                LOGGER.info("Synced %s application commands to guild %s", len(synced), guild_id)
            else:
                synced = await self.tree.sync()
                LOGGER.info("Synced %s global application commands", len(synced))

    async def on_ready(self) -> None:
        LOGGER.info("Bot ready as %s (%s)", self.user, self.user.id if self.user else "n/a")
        activity_type = self.config.discord.activity_type.lower()
        if activity_type == "playing":
            activity = discord.Game(name=self.config.discord.status_text)
        elif activity_type == "listening":
            activity = discord.Activity(
                type=discord.ActivityType.listening, name=self.config.discord.status_text
            )
        else:
            activity = discord.Activity(
                type=discord.ActivityType.watching, name=self.config.discord.status_text
            )
        await self.change_presence(status=discord.Status.online, activity=activity)

    async def on_command_error(self, ctx: commands.Context[commands.Bot], error: commands.CommandError) -> None:
        if ctx.command and ctx.command.has_error_handler():
            return
        await handle_prefix_command_error(ctx, error)

    async def close(self) -> None:
        lifecycle = getattr(self, "lifecycle", None)
        if lifecycle is not None and lifecycle.pending_deletions:
            LOGGER.warning("Shutting down with %s ticket deletions pending", lifecycle.pending_deletions)
        await super().close()
        if self.cache:
            await self.cache.close()
