from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from core.errors import ValidationError


class TicketAction(str, Enum):
    OPEN = "open_ticket"
    CLAIM = "claim_ticket"
    CLOSE = "close_ticket"


@dataclass(frozen=True, slots=True)
class ActionToken:
    action: TicketAction
    panel_id: str

    @property
    def custom_id(self) -> str:
        return f"{self.action.value}:{self.panel_id}"


def action_custom_id(action: TicketAction, panel_id: str) -> str:
    return ActionToken(action=action, panel_id=panel_id).custom_id


def parse_action_token(custom_id: str | None) -> ActionToken:
    if not custom_id:
        raise ValidationError("Unknown action.")
    action_name, sep, panel_id = custom_id.partition(":")
    try:
        action = TicketAction(action_name)
    except ValueError:
        raise ValidationError("Unknown action.") from None
    if not sep or not panel_id or ":" in panel_id or "|" in panel_id:
        raise ValidationError("Unknown action.")
    return ActionToken(action=action, panel_id=panel_id)
