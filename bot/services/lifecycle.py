from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from dataclasses import dataclass
from typing import Any

import discord

from core.config import TicketConfig
from core.errors import (
    AlreadyClaimedError,
    DuplicateTicketError,
    InvalidTicketStateError,
    PanelConfigurationError,
    PanelNotFoundError,
    PermissionDeniedError,
    TicketNotFoundError,
    ValidationError,
)
from services import ticket_state
from services.permissions import plan_for_state, to_discord_overwrites
from services.ticket_state import TicketState
from services.transcript import TranscriptArchiver
from storage.models import Panel
from storage.panel_store import PanelStore
from utils.locks import KeyedLocks
from utils.rate_limit import DistributedRateLimiter
from utils.text import sanitize_channel_name

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class OpenedTicket:
    channel: discord.TextChannel
    panel: Panel
    state: TicketState


@dataclass(slots=True)
class ClaimResult:
    panel: Panel
    state: TicketState


@dataclass(slots=True)
class CloseResult:
    state: TicketState
    already_closing: bool = False
    transcript_started: bool = False
    delay_seconds: float = 0.0


def has_claim_role(member: discord.Member, panel: Panel) -> bool:
    claim_roles = set(panel.claim_role_ids)
    return any(role.id in claim_roles for role in member.roles)


def is_administrator(member: discord.Member) -> bool:
    return bool(member.guild_permissions.administrator)


class TicketLifecycle:
    """Open, claim and close tickets whose state lives in the channel topic.

    Claims on one channel are serialized and re-read the channel from the
    platform before writing, so two staff members racing for the same ticket
    cannot both win. Transcript archival and channel deletion run as
    background tasks and never hold those locks.
    """

    def __init__(
        self,
        panel_store: PanelStore,
        archiver: TranscriptArchiver,
        config: TicketConfig,
        rate_limiter: DistributedRateLimiter | None = None,
        transcript_timeout_seconds: float = 30.0,
    ) -> None:
        self.panel_store = panel_store
        self.archiver = archiver
        self.config = config
        self.rate_limiter = rate_limiter
        self.transcript_timeout_seconds = transcript_timeout_seconds
        self._open_locks = KeyedLocks()
        self._claim_locks = KeyedLocks()
        self._closing: set[int] = set()
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending_deletions(self) -> int:
        return len(self._closing)

    def is_closing(self, channel_id: int) -> bool:
        return channel_id in self._closing

    def forget(self, channel_id: int) -> None:
        self._closing.discard(channel_id)

    def _spawn(self, coro: Coroutine[Any, Any, None], name: str) -> asyncio.Task[None]:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _overwrites_for(
        self, guild: discord.Guild, panel: Panel, state: TicketState
    ) -> dict[discord.abc.Snowflake, discord.PermissionOverwrite]:
        me = guild.me
        rules = plan_for_state(
            state,
            everyone_id=guild.default_role.id,
            claim_role_ids=panel.claim_role_ids,
            bot_member_id=me.id if me is not None else None,
        )
        return to_discord_overwrites(rules, guild)

    @staticmethod
    def read_state(channel: discord.abc.GuildChannel, panel_id: str) -> TicketState:
        state = ticket_state.parse(getattr(channel, "topic", None), panel_id)
        if state is None:
            raise InvalidTicketStateError()
        return state

    def find_open_ticket(self, guild: discord.Guild, panel_id: str, user_id: int) -> discord.TextChannel | None:
        for channel in guild.text_channels:
            state = ticket_state.parse(channel.topic, panel_id)
            if state is not None and state.opener_id == user_id and channel.id not in self._closing:
                return channel
        return None

    def build_channel_name(self, panel: Panel, member: discord.Member) -> str:
        limit = self.config.channel_name_max_length
        base = sanitize_channel_name(panel.ticket_name, limit)
        return sanitize_channel_name(f"{base}-{member.display_name}", limit)

    async def open_ticket(self, guild: discord.Guild, member: discord.Member, panel_id: str) -> OpenedTicket:
        panel = await self.panel_store.require(panel_id)
        if panel.guild_id != guild.id:
            raise PanelNotFoundError("Panel missing.")
        if not panel.claim_role_ids:
            raise PanelConfigurationError("No claim roles set.")
        category = guild.get_channel(panel.category_id)
        if not isinstance(category, discord.CategoryChannel):
            raise PanelConfigurationError("Category missing.")

        async with self._open_locks.get((guild.id, panel.panel_id, member.id)):
            existing = self.find_open_ticket(guild, panel.panel_id, member.id)
            if existing is not None:
                raise DuplicateTicketError(channel_id=existing.id)

            cooldown = self.config.open_cooldown_seconds
            if self.rate_limiter is not None and cooldown > 0:
                hit = await self.rate_limiter.hit(
                    f"ticket:open:{guild.id}:{member.id}", limit=1, window_seconds=cooldown
                )
                if not hit.allowed:
                    wait = hit.retry_after if hit.retry_after is not None else cooldown
                    raise ValidationError(f"Please wait {wait:.0f}s before opening another ticket.")

            state = TicketState(panel_id=panel.panel_id, opener_id=member.id)
            channel = await guild.create_text_channel(
                name=self.build_channel_name(panel, member),
                category=category,
                topic=ticket_state.encode(panel.panel_id, member.id),
                overwrites=self._overwrites_for(guild, panel, state),
                reason=f"Ticket opened by {member} ({member.id})",
            )
        LOGGER.info("Opened ticket %s on panel %s for user %s", channel.id, panel.panel_id, member.id)
        return OpenedTicket(channel=channel, panel=panel, state=state)

    async def _refetch(self, channel: discord.TextChannel) -> discord.TextChannel:
        try:
            fresh = await channel.guild.fetch_channel(channel.id)
        except discord.NotFound:
            raise TicketNotFoundError() from None
        if not isinstance(fresh, discord.TextChannel):
            raise TicketNotFoundError()
        return fresh

    async def claim_ticket(self, channel: discord.TextChannel, member: discord.Member, panel_id: str) -> ClaimResult:
        panel = await self.panel_store.require(panel_id)
        state = self.read_state(channel, panel.panel_id)
        if not has_claim_role(member, panel):
            raise PermissionDeniedError("No permission.")
        if state.claimer_id is not None:
            raise AlreadyClaimedError(claimer_id=state.claimer_id)

        async with self._claim_locks.get(channel.id):
            # The cached channel can lag behind a claim that just finished.
            fresh = await self._refetch(channel)
            current_topic = fresh.topic or ""
            state = self.read_state(fresh, panel.panel_id)
            if state.claimer_id is not None:
                raise AlreadyClaimedError(claimer_id=state.claimer_id)

            new_topic = ticket_state.mark_claimed(current_topic, member.id)
            claimed = ticket_state.parse(new_topic, panel.panel_id)
            if claimed is None or claimed.claimer_id != member.id:
                raise InvalidTicketStateError()
            await fresh.edit(
                topic=new_topic,
                overwrites=self._overwrites_for(fresh.guild, panel, claimed),
                reason=f"Ticket claimed by {member} ({member.id})",
            )
        LOGGER.info("Ticket %s claimed by %s", channel.id, member.id)
        return ClaimResult(panel=panel, state=claimed)

    async def resync_permissions(self, channel: discord.TextChannel, panel_id: str) -> TicketState:
        panel = await self.panel_store.require(panel_id)
        async with self._claim_locks.get(channel.id):
            fresh = await self._refetch(channel)
            state = self.read_state(fresh, panel.panel_id)
            await fresh.edit(
                overwrites=self._overwrites_for(fresh.guild, panel, state),
                reason="Ticket permissions resynchronized",
            )
        LOGGER.info("Resynchronized permissions of ticket %s", channel.id)
        return state

    async def close_ticket(self, channel: discord.TextChannel, member: discord.Member, panel_id: str) -> CloseResult:
        state = self.read_state(channel, panel_id)
        if not (
            is_administrator(member) or member.id == state.opener_id or member.id == state.claimer_id
        ):
            raise PermissionDeniedError("No permission.")
        if channel.id in self._closing:
            return CloseResult(state=state, already_closing=True, delay_seconds=self.config.close_delay_seconds)

        self._closing.add(channel.id)
        # A deleted panel still lets its open tickets close, just without a transcript.
        try:
            panel = await self.panel_store.get(panel_id)
        except BaseException:
            self._closing.discard(channel.id)
            raise
        archive_task: asyncio.Task[None] | None = None
        if panel is not None and panel.transcript_channel_id:
            archive_task = self._spawn(
                self._archive(channel, panel, state, member.id),
                name=f"ticket-transcript-{channel.id}",
            )
        self._spawn(self._delete_later(channel, member, archive_task), name=f"ticket-delete-{channel.id}")
        LOGGER.info("Ticket %s closing by %s", channel.id, member.id)
        return CloseResult(
            state=state,
            transcript_started=archive_task is not None,
            delay_seconds=self.config.close_delay_seconds,
        )

    async def _archive(self, channel: discord.TextChannel, panel: Panel, state: TicketState, closer_id: int) -> None:
        try:
            await self.archiver.archive(channel, panel, state.opener_id, state.claimer_id, closer_id)
        except Exception:
            LOGGER.exception("Transcript archival crashed for channel %s", channel.id)

    async def _delete_later(
        self,
        channel: discord.TextChannel,
        member: discord.Member,
        archive_task: asyncio.Task[None] | None,
    ) -> None:
        try:
            if self.config.close_delay_seconds > 0:
                await asyncio.sleep(self.config.close_delay_seconds)
            if archive_task is not None and not archive_task.done():
                # Deletion waits for the transcript at most transcript_timeout_seconds.
                await asyncio.wait({archive_task}, timeout=self.transcript_timeout_seconds)
            await channel.delete(reason=f"Ticket closed by {member} ({member.id})")
            LOGGER.info("Deleted ticket channel %s", channel.id)
        except discord.NotFound:
            LOGGER.debug("Ticket channel %s was already deleted", channel.id)
        except discord.HTTPException as exc:
            LOGGER.warning("Could not delete ticket channel %s: %s", channel.id, exc)
        finally:
            self._closing.discard(channel.id)
