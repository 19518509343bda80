from __future__ import annotations

from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from conftest import (
    OPENER_ID,
    STAFF_ID,
    TRANSCRIPT_CHANNEL_ID,
    http_error,
    install_history,
    make_draft,
    make_messages,
    make_text_channel,
)
from core.config import TranscriptConfig
from services.transcript import TranscriptArchiver

TICKET_ID = 999000000000000001


def _setup(guild, messages, **config):
    channel = make_text_channel(TICKET_ID, guild, name="lava-shop-opener")
    calls = install_history(channel, messages)
    destination = make_text_channel(TRANSCRIPT_CHANNEL_ID, guild, name="transcripts")
    guild.channels_by_id[TRANSCRIPT_CHANNEL_ID] = destination
    panel = make_draft().to_panel("abcd1234")
    return TranscriptArchiver(TranscriptConfig(**config)), channel, destination, panel, calls


@pytest.mark.asyncio
async def test_collect_history_pages_and_orders_oldest_first(guild) -> None:
    archiver, channel, _, _, calls = _setup(guild, make_messages(50), page_size=20)

    history = await archiver.collect_history(channel)

    assert [message.id for message in history.messages] == list(range(1, 51))
    assert history.truncated is False
    assert [call["limit"] for call in calls] == [20, 20, 20]
    assert calls[0]["before"] is None
    assert calls[1]["before"].id == 31


@pytest.mark.asyncio
async def test_collect_history_stops_at_cap(guild) -> None:
    archiver, channel, _, _, _ = _setup(guild, make_messages(50), page_size=20, max_messages=30)

    history = await archiver.collect_history(channel)

    assert [message.id for message in history.messages] == list(range(21, 51))
    assert history.truncated is True


@pytest.mark.asyncio
async def test_archive_posts_transcript_file_and_summary(guild) -> None:
    archiver, channel, destination, panel, _ = _setup(guild, make_messages(50, attachments_every=17))

    delivered = await archiver.archive(channel, panel, OPENER_ID, STAFF_ID, STAFF_ID)

    assert delivered is True
    kwargs = destination.send.await_args.kwargs
    assert kwargs["file"].filename == f"transcript-{TICKET_ID}.txt"
    lines = kwargs["file"].fp.getvalue().decode("utf-8").split("\n")
    assert lines[:7] == [
        "Panel: Support",
        f"Ticket Channel: #lava-shop-opener ({TICKET_ID})",
        f"Opened By: {OPENER_ID}",
        f"Claimed By: {STAFF_ID}",
        f"Closed By: {STAFF_ID}",
        lines[5],
        "",
    ]
    assert lines[5].startswith("Closed At: ") and lines[5].endswith("Z")
    body = lines[7:]
    assert len(body) == 50
    assert body[0] == f"[2024-05-01T12:00:01.000Z] opener ({OPENER_ID}): message 1"
    assert sum("[attachments: https://cdn.example.com/" in line for line in body) == 2
    assert body[16].endswith("[attachments: https://cdn.example.com/file-17.png]")
    fields = {field.name: field.value for field in kwargs["embed"].fields}
    assert fields == {"Panel": "Support", "Ticket": "#lava-shop-opener", "Messages": "50"}


@pytest.mark.asyncio
async def test_archive_counts_three_attachments(guild) -> None:
    messages = make_messages(50)
    for index in (4, 19, 44):
        messages[index].attachments = [SimpleNamespace(url=f"https://cdn.example.com/{index}")]
    archiver, channel, destination, panel, _ = _setup(guild, messages)

    assert await archiver.archive(channel, panel, OPENER_ID, None, OPENER_ID)

    text = destination.send.await_args.kwargs["file"].fp.getvalue().decode("utf-8")
    assert text.count("[attachments: ") == 3
    assert "Claimed By: unclaimed" in text


def test_render_line_flattens_control_characters() -> None:
    message = make_messages(1)[0]
    message.content = "first line\nsecond\x07 line"
    message.embeds = [object(), object()]

    line = TranscriptArchiver.render_line(message)

    assert line == f"[2024-05-01T12:00:01.000Z] opener ({OPENER_ID}): first line second line [embeds: 2]"


@pytest.mark.asyncio
async def test_archive_without_destination_returns_false(guild) -> None:
    archiver, channel, destination, panel, _ = _setup(guild, make_messages(3))
    del guild.channels_by_id[TRANSCRIPT_CHANNEL_ID]

    assert await archiver.archive(channel, panel, OPENER_ID, None, OPENER_ID) is False
    destination.send.assert_not_awaited()


@pytest.mark.asyncio
async def test_archive_swallows_delivery_errors(guild) -> None:
    archiver, channel, destination, panel, _ = _setup(guild, make_messages(3))
    destination.send = AsyncMock(side_effect=http_error())

    assert await archiver.archive(channel, panel, OPENER_ID, None, OPENER_ID) is False


def test_render_header_for_unknown_opener(guild) -> None:
    archiver, channel, _, _, _ = _setup(guild, [])

    document = archiver.render(
        channel,
        [],
        panel_title="Support",
        opener_id=None,
        claimer_id=None,
        closer_id=STAFF_ID,
        closed_at=datetime(2024, 5, 2, tzinfo=UTC),
    )

    assert document.split("\n")[2] == "Opened By: unknown"
    assert document.endswith("Closed At: 2024-05-02T00:00:00.000Z\n")
