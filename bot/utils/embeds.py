from __future__ import annotations

import discord

from utils.time import utc_now


def make_embed(
    title: str,
    description: str | None = None,
    color: discord.Color | int | None = None,
    footer: str | None = None,
) -> discord.Embed:
    resolved_color = color if color is not None else discord.Color.blurple()
    embed = discord.Embed(
        title=title,
        description=description,
        color=resolved_color,
        timestamp=utc_now(),
    )
    if footer:
        embed.set_footer(text=footer)
    return embed


def success_embed(message: str) -> discord.Embed:
    return make_embed(title="Success", description=message, color=discord.Color.green())


def error_embed(message: str) -> discord.Embed:
    return make_embed(title="Error", description=message, color=discord.Color.red())
