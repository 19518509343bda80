from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from core.errors import ValidationError
from utils.constants import (
    DEFAULT_BUTTON_LABEL,
    DEFAULT_PANEL_COLOR,
    DEFAULT_TICKET_NAME,
    MAX_CLAIM_ROLES,
)


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def unique_role_ids(role_ids: list[int]) -> list[int]:
    seen: set[int] = set()
    ordered: list[int] = []
    for role_id in role_ids:
        if role_id in seen:
            continue
        seen.add(role_id)
        ordered.append(role_id)
    return ordered


@dataclass(slots=True)
class Panel:
    panel_id: str
    guild_id: int
    channel_id: int
    category_id: int
    title: str
    description: str
    claim_role_ids: list[int] = field(default_factory=list)
    button_label: str = DEFAULT_BUTTON_LABEL
    ticket_name: str = DEFAULT_TICKET_NAME
    image_url: str | None = None
    thumbnail_url: str | None = None
    availability: str | None = None
    disclaimer: str | None = None
    transcript_channel_id: int | None = None
    message_id: int | None = None
    color: int = DEFAULT_PANEL_COLOR

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, panel_id: str, row: dict[str, Any]) -> Panel:
        return cls(
            panel_id=str(row.get("panel_id") or panel_id),
            guild_id=int(row["guild_id"]),
            channel_id=int(row["channel_id"]),
            category_id=int(row["category_id"]),
            title=str(row.get("title") or ""),
            description=str(row.get("description") or ""),
            claim_role_ids=unique_role_ids([int(x) for x in list(row.get("claim_role_ids") or [])]),
            button_label=str(row.get("button_label") or DEFAULT_BUTTON_LABEL),
            ticket_name=str(row.get("ticket_name") or DEFAULT_TICKET_NAME),
            image_url=_optional_text(row.get("image_url")),
            thumbnail_url=_optional_text(row.get("thumbnail_url")),
            availability=_optional_text(row.get("availability")),
            disclaimer=_optional_text(row.get("disclaimer")),
            transcript_channel_id=_optional_int(row.get("transcript_channel_id")),
            message_id=_optional_int(row.get("message_id")),
            color=int(row.get("color") or DEFAULT_PANEL_COLOR),
        )


@dataclass(slots=True)
class PanelDraft:
    """Validated input for a new panel, built once from a command's options."""

    guild_id: int
    channel_id: int
    category_id: int
    title: str
    description: str
    claim_role_ids: list[int]
    ticket_name: str = DEFAULT_TICKET_NAME
    button_label: str = DEFAULT_BUTTON_LABEL
    image_url: str | None = None
    thumbnail_url: str | None = None
    availability: str | None = None
    disclaimer: str | None = None
    transcript_channel_id: int | None = None
    color: int = DEFAULT_PANEL_COLOR

    def __post_init__(self) -> None:
        self.title = self.title.strip()
        self.description = self.description.strip()
        if not self.title:
            raise ValidationError("Panel title is required.")
        if not self.description:
            raise ValidationError("Panel description is required.")
        self.claim_role_ids = unique_role_ids(self.claim_role_ids)
        if not self.claim_role_ids:
            raise ValidationError("At least one claim role is required.")
        if len(self.claim_role_ids) > MAX_CLAIM_ROLES:
            raise ValidationError(f"A panel can have at most {MAX_CLAIM_ROLES} claim roles.")
        self.ticket_name = (self.ticket_name or "").strip() or DEFAULT_TICKET_NAME
        self.button_label = (self.button_label or "").strip()[:80] or DEFAULT_BUTTON_LABEL
        self.image_url = _optional_text(self.image_url)
        self.thumbnail_url = _optional_text(self.thumbnail_url)
        self.availability = _optional_text(self.availability)
        self.disclaimer = _optional_text(self.disclaimer)

    def to_panel(self, panel_id: str) -> Panel:
        return Panel(
            panel_id=panel_id,
            guild_id=self.guild_id,
            channel_id=self.channel_id,
            category_id=self.category_id,
            title=self.title,
            description=self.description,
            claim_role_ids=list(self.claim_role_ids),
            button_label=self.button_label,
            ticket_name=self.ticket_name,
            image_url=self.image_url,
            thumbnail_url=self.thumbnail_url,
            availability=self.availability,
            disclaimer=self.disclaimer,
            transcript_channel_id=self.transcript_channel_id,
            color=self.color,
        )
