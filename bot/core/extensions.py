from __future__ import annotations

import logging

from discord.ext import commands

LOGGER = logging.getLogger(__name__)


async def load_extensions(bot: commands.Bot, extension_names: list[str]) -> None:
    loaded = 0
    for ext in extension_names:
        try:
            await bot.load_extension(ext)
        except commands.ExtensionAlreadyLoaded:
            LOGGER.warning("Extension already loaded: %s", ext)
            continue
        except commands.ExtensionNotFound:
            LOGGER.error("Unknown extension in config: %s", ext)
            continue
        except commands.ExtensionError:
            LOGGER.exception("Failed to load extension: %s", ext)
            continue
        loaded += 1
        LOGGER.info("Loaded extension: %s", ext)
    LOGGER.info("Loaded %s of %s extensions", loaded, len(extension_names))
