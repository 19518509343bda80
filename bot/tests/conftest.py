from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import UTC, datetime, timedelta
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from storage.models import PanelDraft
from storage.panel_store import PanelStore

GUILD_ID = 100000000000000001
CATEGORY_ID = 200000000000000002
PANEL_CHANNEL_ID = 300000000000000003
TRANSCRIPT_CHANNEL_ID = 400000000000000004
BOT_ID = 500000000000000005
CLAIM_ROLE_ID = 600000000000000006
OPENER_ID = 700000000000000007
STAFF_ID = 800000000000000008
OTHER_STAFF_ID = 800000000000000009
STRANGER_ID = 900000000000000010


class FakeUser:
    def __init__(self, user_id: int, name: str) -> None:
        self.id = user_id
        self.name = name

    def __str__(self) -> str:
        return self.name


def http_error(cls: type[discord.HTTPException] = discord.HTTPException, status: int = 500) -> discord.HTTPException:
    return cls(SimpleNamespace(status=status, reason="error"), "failed")


def make_member(
    user_id: int,
    role_ids: tuple[int, ...] = (),
    *,
    administrator: bool = False,
    name: str = "member",
) -> MagicMock:
    member = MagicMock(spec=discord.Member)
    member.id = user_id
    member.display_name = name
    member.mention = f"<@{user_id}>"
    member.roles = [SimpleNamespace(id=role_id) for role_id in role_ids]
    member.guild_permissions = SimpleNamespace(administrator=administrator)
    return member


def make_text_channel(channel_id: int, guild: MagicMock, *, name: str = "ticket", topic: str | None = None) -> MagicMock:
    channel = MagicMock(spec=discord.TextChannel)
    channel.id = channel_id
    channel.name = name
    channel.topic = topic
    channel.guild = guild
    channel.mention = f"<#{channel_id}>"
    channel.send = AsyncMock()
    channel.delete = AsyncMock()

    async def edit(**kwargs):
        if "topic" in kwargs:
            channel.topic = kwargs["topic"]
        return channel

    channel.edit = AsyncMock(side_effect=edit)
    return channel


def make_guild() -> MagicMock:
    guild = MagicMock(spec=discord.Guild)
    guild.id = GUILD_ID
    guild.name = "Test Guild"
    guild.default_role = discord.Object(id=GUILD_ID)
    guild.me = SimpleNamespace(id=BOT_ID)
    guild.text_channels = []
    channels: dict[int, object] = {}
    guild.channels_by_id = channels
    guild.get_channel = MagicMock(side_effect=lambda channel_id: channels.get(channel_id))

    async def fetch_channel(channel_id: int):
        channel = channels.get(channel_id)
        if channel is None:
            raise http_error(discord.NotFound, 404)
        return channel

    guild.fetch_channel = AsyncMock(side_effect=fetch_channel)
    channels[CATEGORY_ID] = MagicMock(spec=discord.CategoryChannel, id=CATEGORY_ID)
    return guild


def make_messages(count: int, *, attachments_every: int = 0, start: datetime | None = None) -> list[SimpleNamespace]:
    """Messages oldest first; ids grow with time."""
    start = start or datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
    messages = []
    for index in range(1, count + 1):
        attachments = []
        if attachments_every and index % attachments_every == 0:
            attachments = [SimpleNamespace(url=f"https://cdn.example.com/file-{index}.png")]
        messages.append(
            SimpleNamespace(
                id=index,
                author=FakeUser(OPENER_ID, "opener"),
                created_at=start + timedelta(seconds=index),
                content=f"message {index}",
                attachments=attachments,
                embeds=[],
            )
        )
    return messages


def install_history(channel: MagicMock, messages: list[SimpleNamespace]) -> list[dict[str, object]]:
    """Serve ``messages`` newest first, the way the platform pages history."""
    newest_first = sorted(messages, key=lambda m: m.id, reverse=True)
    calls: list[dict[str, object]] = []

    def history(*, limit: int, before=None) -> AsyncIterator[SimpleNamespace]:
        calls.append({"limit": limit, "before": before})
        start = 0
        if before is not None:
            start = next(i for i, m in enumerate(newest_first) if m.id == before.id) + 1

        async def pages() -> AsyncIterator[SimpleNamespace]:
            for message in newest_first[start : start + limit]:
                yield message

        return pages()

    channel.history = history
    return calls


@pytest.fixture
def guild() -> MagicMock:
    return make_guild()


@pytest.fixture
def panel_store(tmp_path: Path) -> PanelStore:
    return PanelStore(tmp_path / "panels.json")


def make_draft(**overrides) -> PanelDraft:
    values = dict(
        guild_id=GUILD_ID,
        channel_id=PANEL_CHANNEL_ID,
        category_id=CATEGORY_ID,
        title="Support",
        description="Open a ticket for help.",
        claim_role_ids=[CLAIM_ROLE_ID],
        ticket_name="Lava Shop",
        transcript_channel_id=TRANSCRIPT_CHANNEL_ID,
    )
    values.update(overrides)
    return PanelDraft(**values)
