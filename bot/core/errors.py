from __future__ import annotations

import logging
from dataclasses import dataclass

import discord
from discord import app_commands
from discord.ext import commands

LOGGER = logging.getLogger(__name__)


class BotError(RuntimeError):
    user_message: str = "An unexpected error occurred."


@dataclass(slots=True)
class PermissionDeniedError(BotError):
    user_message: str = "You do not have permission to do that."


@dataclass(slots=True)
class PanelNotFoundError(BotError):
    user_message: str = "Panel not found."


@dataclass(slots=True)
class TicketNotFoundError(BotError):
    user_message: str = "This channel is not a ticket."


@dataclass(slots=True)
class InvalidTicketStateError(BotError):
    user_message: str = "Invalid ticket."


@dataclass(slots=True)
class PanelConfigurationError(BotError):
    user_message: str = "This panel is not configured correctly."


@dataclass(slots=True)
class TicketSetupError(BotError):
    user_message: str = "Could not set up the ticket channel. Please try again."


@dataclass(slots=True)
class ValidationError(BotError):
    user_message: str = "The provided input is not valid."


@dataclass(slots=True)
class AlreadyClaimedError(BotError):
    claimer_id: int = 0
    user_message: str = ""

    def __post_init__(self) -> None:
        if not self.user_message:
            self.user_message = f"Already claimed by <@{self.claimer_id}>."


@dataclass(slots=True)
class DuplicateTicketError(BotError):
    channel_id: int = 0
    user_message: str = ""

    def __post_init__(self) -> None:
        if not self.user_message:
            self.user_message = f"You already have: <#{self.channel_id}>"


def unwrap_error(error: BaseException) -> BaseException:
    # Hybrid and app commands wrap the raised exception one or two levels deep.
    seen = 0
    while seen < 3 and getattr(error, "original", None) is not None:
        error = error.original  # type: ignore[attr-defined]
        seen += 1
    return error


async def send_error_response(
    target: commands.Context[commands.Bot] | discord.Interaction[commands.Bot], message: str
) -> None:
    embed = discord.Embed(title="Error", description=message, color=discord.Color.red())
    if isinstance(target, commands.Context):
        if target.interaction is not None:
            await send_error_response(target.interaction, message)
            return
        await target.reply(embed=embed, mention_author=False)
        return
    if target.response.is_done():
        await target.followup.send(embed=embed, ephemeral=True)
    else:
        await target.response.send_message(embed=embed, ephemeral=True)


def _humanize_command_error(error: BaseException) -> str:
    if isinstance(error, BotError):
        return error.user_message
    if isinstance(error, commands.CommandOnCooldown):
        return f"Cooldown active. Retry in {error.retry_after:.1f} seconds."
    if isinstance(error, (commands.MissingPermissions, app_commands.MissingPermissions)):
        return "You are missing required Discord permissions."
    if isinstance(error, (commands.CheckFailure, app_commands.CheckFailure)):
        return "Admin only."
    if isinstance(error, commands.BadArgument):
        return "Command argument was invalid."
    return "Error."


def _log_command_failure(kind: str, command: str | None, guild_id: int | None, user_id: int | None, error: BaseException) -> None:
    if isinstance(error, BotError):
        LOGGER.info(
            "%s command rejected. command=%s guild=%s user=%s reason=%s",
            kind,
            command,
            guild_id,
            user_id,
            type(error).__name__,
        )
        return
    LOGGER.error(
        "%s command failed. command=%s guild=%s user=%s",
        kind,
        command,
        guild_id,
        user_id,
        exc_info=error,
    )


async def report_interaction_error(interaction: discord.Interaction, error: BaseException) -> None:
    cause = unwrap_error(error)
    _log_command_failure(
        "Component",
        (interaction.data or {}).get("custom_id") if isinstance(interaction.data, dict) else None,
        getattr(interaction.guild, "id", None),
        interaction.user.id if interaction.user else None,
        cause,
    )
    try:
        await send_error_response(interaction, _humanize_command_error(cause))
    except discord.HTTPException:
        LOGGER.warning("Could not report an error back to user %s", interaction.user.id if interaction.user else None)


async def handle_prefix_command_error(
    ctx: commands.Context[commands.Bot], error: commands.CommandError
) -> None:
    if isinstance(error, commands.CommandNotFound):
        return
    cause = unwrap_error(error)
    _log_command_failure(
        "Prefix",
        getattr(ctx.command, "qualified_name", None),
        getattr(ctx.guild, "id", None),
        ctx.author.id,
        cause,
    )
    await send_error_response(ctx, _humanize_command_error(cause))


async def handle_app_command_error(
    interaction: discord.Interaction[commands.Bot], error: app_commands.AppCommandError
) -> None:
    cause = unwrap_error(error)
    _log_command_failure(
        "Slash",
        getattr(interaction.command, "qualified_name", None),
        getattr(interaction.guild, "id", None),
        interaction.user.id if interaction.user else None,
        cause,
    )
    await send_error_response(interaction, _humanize_command_error(cause))
