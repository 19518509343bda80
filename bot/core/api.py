from __future__ import annotations

from fastapi import FastAPI, Header, HTTPException
from fastapi.responses import PlainTextResponse

from core.bot import TicketBot


def _auth(x_api_key: str | None, expected: str) -> None:
    if not expected:
        return
    if x_api_key != expected:
        raise HTTPException(status_code=401, detail="Unauthorized")


def create_api_app(bot: TicketBot) -> FastAPI:
    app = FastAPI(title="Ticket Panel Bot", version="1.0.0")

    @app.get("/", response_class=PlainTextResponse)
    async def root() -> str:
        return "OK"

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    @app.get("/panels")
    async def panels(x_api_key: str | None = Header(default=None)) -> dict[str, object]:
        _auth(x_api_key, bot.config.fastapi.api_key)
        rows = await bot.panel_store.list()
        return {
            "items": [
                {
                    "panel_id": panel.panel_id,
                    "guild_id": str(panel.guild_id),
                    "channel_id": str(panel.channel_id),
                    "title": panel.title,
                    "ticket_name": panel.ticket_name,
                    "claim_role_ids": [str(role_id) for role_id in panel.claim_role_ids],
                }
                for panel in rows
            ]
        }

    return app
