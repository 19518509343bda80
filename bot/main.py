from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import uvicorn

from core.api import create_api_app
from core.bot import TicketBot
from core.config import AppConfig, ConfigError, load_config
from core.logging import configure_logging

LOGGER = logging.getLogger("main")


def _build_server(bot: TicketBot, config: AppConfig) -> uvicorn.Server:
    return uvicorn.Server(
        uvicorn.Config(
            app=create_api_app(bot),
            host=config.fastapi.host,
            port=config.fastapi.port,
            log_level=config.logging.level.lower(),
        )
    )


async def _run_bot(config: AppConfig) -> None:
    bot = TicketBot(config=config)
    async with bot:
        server: uvicorn.Server | None = None
        api_task: asyncio.Task[None] | None = None
        if config.fastapi.enabled:
            server = _build_server(bot, config)
            api_task = asyncio.create_task(server.serve(), name="liveness-api")
            LOGGER.info("Liveness endpoint listening on %s:%s", config.fastapi.host, config.fastapi.port)
        try:
            await bot.start(config.discord.token)
        finally:
            if server is not None:
                server.should_exit = True
            if api_task is not None:
                await asyncio.gather(api_task, return_exceptions=True)


def main() -> None:
    root = Path(__file__).resolve().parent
    try:
        config = load_config(root / "config" / "config.yaml")
    except ConfigError as exc:
        raise SystemExit(f"Configuration error: {exc}") from None
    configure_logging(config.logging)
    try:
        asyncio.run(_run_bot(config))
    except KeyboardInterrupt:
        LOGGER.info("Interrupted, shutting down")


if __name__ == "__main__":
    main()
