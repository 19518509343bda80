from __future__ import annotations

import re

from utils.constants import DEFAULT_TICKET_NAME

_DISALLOWED_NAME_CHARS = re.compile(r"[^a-z0-9\- ]")
_WHITESPACE = re.compile(r"\s+")
_LINE_BREAKS = re.compile(r"[\r\n\t]+")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f]")


def sanitize_channel_name(value: str, max_length: int = 90, fallback: str = DEFAULT_TICKET_NAME) -> str:
    name = _DISALLOWED_NAME_CHARS.sub("", value.lower()).strip()
    name = _WHITESPACE.sub("-", name)
    return name[:max_length] or fallback


def strip_control_characters(value: str | None) -> str:
    if not value:
        return ""
    return _CONTROL_CHARS.sub("", _LINE_BREAKS.sub(" ", value))
