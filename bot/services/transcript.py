from __future__ import annotations

import io
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

import discord

from core.config import TranscriptConfig
from storage.models import Panel
from utils.constants import TRANSCRIPT_COLOR
from utils.embeds import make_embed
from utils.text import strip_control_characters
from utils.time import to_iso, utc_now

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class History:
    messages: list[discord.Message]
    truncated: bool


class TranscriptArchiver:
    def __init__(self, config: TranscriptConfig) -> None:
        self.config = config

    async def collect_history(self, channel: discord.TextChannel) -> History:
        """Page backwards through the channel, then return messages oldest first."""
        limit = self.config.max_messages
        collected: list[discord.Message] = []
        cursor: discord.Message | None = None
        exhausted = False
        while len(collected) < limit:
            batch = [message async for message in channel.history(limit=self.config.page_size, before=cursor)]
            collected.extend(batch)
            if len(batch) < self.config.page_size:
                exhausted = True
                break
            cursor = batch[-1]

        truncated = len(collected) > limit or (len(collected) == limit and not exhausted)
        collected = collected[:limit]
        collected.sort(key=lambda message: (message.created_at, message.id))
        return History(messages=collected, truncated=truncated)

    @staticmethod
    def render_line(message: discord.Message) -> str:
        author = message.author
        identity = f"{author} ({author.id})" if author is not None else "Unknown (?)"
        line = f"[{to_iso(message.created_at)}] {identity}: {strip_control_characters(message.content)}"
        if message.attachments:
            line += f" [attachments: {' '.join(a.url for a in message.attachments)}]"
        if message.embeds:
            line += f" [embeds: {len(message.embeds)}]"
        return line

    def render(
        self,
        channel: discord.abc.GuildChannel,
        messages: Sequence[discord.Message],
        *,
        panel_title: str,
        opener_id: int | None,
        claimer_id: int | None,
        closer_id: int,
        closed_at: datetime,
    ) -> str:
        header = [
            f"Panel: {panel_title}",
            f"Ticket Channel: #{channel.name} ({channel.id})",
            f"Opened By: {opener_id if opener_id is not None else 'unknown'}",
            f"Claimed By: {claimer_id if claimer_id is not None else 'unclaimed'}",
            f"Closed By: {closer_id}",
            f"Closed At: {to_iso(closed_at)}",
            "",
        ]
        return "\n".join(header + [self.render_line(message) for message in messages])

    async def deliver(
        self,
        destination: discord.TextChannel,
        channel: discord.abc.GuildChannel,
        panel: Panel,
        document: str,
        message_count: int,
        truncated: bool,
    ) -> None:
        file = discord.File(io.BytesIO(document.encode("utf-8")), filename=f"transcript-{channel.id}.txt")
        embed = make_embed(
            title="Ticket Transcript",
            description=f"Transcript of #{channel.name}.",
            color=discord.Color(TRANSCRIPT_COLOR),
        )
        embed.add_field(name="Panel", value=panel.title or panel.panel_id, inline=True)
        embed.add_field(name="Ticket", value=f"#{channel.name}", inline=True)
        embed.add_field(
            name="Messages",
            value=f"{message_count} (truncated)" if truncated else str(message_count),
            inline=True,
        )
        await destination.send(embed=embed, file=file)

    async def archive(
        self,
        channel: discord.TextChannel,
        panel: Panel,
        opener_id: int | None,
        claimer_id: int | None,
        closer_id: int,
    ) -> bool:
        """Render and post the transcript; failures are logged and reported as ``False``."""
        if not panel.transcript_channel_id:
            return False
        destination = channel.guild.get_channel(panel.transcript_channel_id)
        if not isinstance(destination, discord.TextChannel):
            LOGGER.warning(
                "Transcript channel %s for panel %s is missing or not a text channel",
                panel.transcript_channel_id,
                panel.panel_id,
            )
            return False
        try:
            history = await self.collect_history(channel)
            document = self.render(
                channel,
                history.messages,
                panel_title=panel.title or panel.panel_id,
                opener_id=opener_id,
                claimer_id=claimer_id,
                closer_id=closer_id,
                closed_at=utc_now(),
            )
            await self.deliver(
                destination,
                channel,
                panel,
                document,
                message_count=len(history.messages),
                truncated=history.truncated,
            )
        except discord.HTTPException as exc:
            LOGGER.warning("Transcript for channel %s was not delivered: %s", channel.id, exc)
            return False
        LOGGER.info(
            "Delivered transcript of channel %s (%s messages) to %s",
            channel.id,
            len(history.messages),
            destination.id,
        )
        return True
