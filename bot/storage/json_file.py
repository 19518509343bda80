from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

LOGGER = logging.getLogger(__name__)


def load_json_table(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open("r", encoding="utf-8") as handle:
            content = handle.read()
    except OSError:
        LOGGER.exception("Could not read %s", path)
        return {}
    if not content.strip():
        return {}
    try:
        payload = json.loads(content)
    except json.JSONDecodeError:
        LOGGER.warning("Ignoring corrupted JSON table at %s", path)
        return {}
    if not isinstance(payload, dict):
        LOGGER.warning("Ignoring non-object JSON table at %s", path)
        return {}
    return payload


def save_json_table(path: Path, table: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    # Temp file beside the target, then rename: readers never see a partial table.
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(table, handle, indent=2, ensure_ascii=False)
            handle.write("\n")
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
