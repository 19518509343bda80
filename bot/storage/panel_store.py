from __future__ import annotations

import asyncio
import logging
import secrets
import string
from pathlib import Path
from typing import Any

from core.errors import PanelNotFoundError, ValidationError
from storage.json_file import load_json_table, save_json_table
from storage.models import Panel, PanelDraft
from utils.constants import MAX_CLAIM_ROLES

LOGGER = logging.getLogger(__name__)

PANEL_ID_ALPHABET = string.ascii_lowercase + string.digits
PANEL_ID_LENGTH = 8
PANEL_ID_ATTEMPTS = 32


def generate_panel_id(existing: set[str] | dict[str, Any]) -> str:
    for _ in range(PANEL_ID_ATTEMPTS):
        candidate = "".join(secrets.choice(PANEL_ID_ALPHABET) for _ in range(PANEL_ID_LENGTH))
        if candidate not in existing:
            return candidate
    raise RuntimeError("Could not allocate a unique panel id")


class PanelStore:
    """Panel configurations kept as one JSON object keyed by panel id.

    Every call reloads the file and every write replaces it whole, so edits made
    to the file between calls are picked up. The lock only orders
    read-modify-write cycles inside this process.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._lock = asyncio.Lock()

    async def _read(self) -> dict[str, Any]:
        return await asyncio.to_thread(load_json_table, self.path)

    async def _write(self, table: dict[str, Any]) -> None:
        await asyncio.to_thread(save_json_table, self.path, table)

    @staticmethod
    def _decode(table: dict[str, Any], panel_id: str) -> Panel | None:
        row = table.get(panel_id)
        if not isinstance(row, dict):
            return None
        try:
            return Panel.from_dict(panel_id, row)
        except (KeyError, TypeError, ValueError):
            LOGGER.warning("Skipping malformed panel record %s", panel_id)
            return None

    async def create(self, draft: PanelDraft) -> Panel:
        async with self._lock:
            table = await self._read()
            panel = draft.to_panel(generate_panel_id(table))
            table[panel.panel_id] = panel.to_dict()
            await self._write(table)
        LOGGER.info("Created panel %s in guild %s", panel.panel_id, panel.guild_id)
        return panel

    async def get(self, panel_id: str) -> Panel | None:
        table = await self._read()
        return self._decode(table, panel_id)

    async def require(self, panel_id: str) -> Panel:
        panel = await self.get(panel_id)
        if panel is None:
            raise PanelNotFoundError()
        return panel

    async def list(self, guild_id: int | None = None) -> list[Panel]:
        table = await self._read()
        panels: list[Panel] = []
        for panel_id in table:
            panel = self._decode(table, panel_id)
            if panel is None:
                continue
            if guild_id is not None and panel.guild_id != guild_id:
                continue
            panels.append(panel)
        return panels

    async def delete(self, panel_id: str) -> bool:
        async with self._lock:
            table = await self._read()
            if panel_id not in table:
                return False
            del table[panel_id]
            await self._write(table)
        LOGGER.info("Deleted panel %s", panel_id)
        return True

    async def _update(self, panel_id: str, change) -> Panel:
        async with self._lock:
            table = await self._read()
            panel = self._decode(table, panel_id)
            if panel is None:
                raise PanelNotFoundError()
            if not change(panel):
                return panel
            table[panel_id] = panel.to_dict()
            await self._write(table)
            return panel

    async def add_claim_role(self, panel_id: str, role_id: int) -> Panel:
        def change(panel: Panel) -> bool:
            if role_id in panel.claim_role_ids:
                return False
            if len(panel.claim_role_ids) >= MAX_CLAIM_ROLES:
                raise ValidationError(f"A panel can have at most {MAX_CLAIM_ROLES} claim roles.")
            panel.claim_role_ids.append(role_id)
            return True

        return await self._update(panel_id, change)

    async def remove_claim_role(self, panel_id: str, role_id: int) -> Panel:
        def change(panel: Panel) -> bool:
            if role_id not in panel.claim_role_ids:
                return False
            panel.claim_role_ids = [rid for rid in panel.claim_role_ids if rid != role_id]
            return True

        return await self._update(panel_id, change)

    async def set_message_id(self, panel_id: str, message_id: int | None) -> Panel:
        def change(panel: Panel) -> bool:
            if panel.message_id == message_id:
                return False
            panel.message_id = message_id
            return True

        return await self._update(panel_id, change)
