"""Ticket state carried in the ticket channel's topic.

Grammar::

    state    := "ticket:" panel_id ":" opener_id [ "|claimed=" claimer_id ]
    panel_id := opaque token without ':' or '|'
    user id  := 10 to 30 digits

The topic is the only record of a ticket, so every decision about a ticket is
re-derived from it with :func:`parse`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

STATE_PREFIX = "ticket:"
CLAIM_TAG = "|claimed="

_USER_ID = re.compile(r"^\d{10,30}$")
_CLAIM_TAG = re.compile(r"\|claimed=(\d{10,30})(?!\d)")


class TicketStatus(str, Enum):
    UNCLAIMED = "unclaimed"
    CLAIMED = "claimed"


@dataclass(frozen=True, slots=True)
class TicketState:
    panel_id: str
    opener_id: int
    claimer_id: int | None = None

    @property
    def status(self) -> TicketStatus:
        return TicketStatus.CLAIMED if self.claimer_id is not None else TicketStatus.UNCLAIMED

    @property
    def is_claimed(self) -> bool:
        return self.claimer_id is not None


def _check_user_id(user_id: int | str) -> str:
    text = str(user_id)
    if not _USER_ID.match(text):
        raise ValueError(f"Not a valid user id: {user_id!r}")
    return text


def _check_panel_id(panel_id: str) -> str:
    if not panel_id or ":" in panel_id or "|" in panel_id:
        raise ValueError(f"Not a valid panel id: {panel_id!r}")
    return panel_id


def panel_prefix(panel_id: str) -> str:
    return f"{STATE_PREFIX}{_check_panel_id(panel_id)}:"


def encode(panel_id: str, opener_id: int | str) -> str:
    return f"{panel_prefix(panel_id)}{_check_user_id(opener_id)}"


def belongs_to_panel(state: str | None, panel_id: str) -> bool:
    if not state:
        return False
    try:
        return state.startswith(panel_prefix(panel_id))
    except ValueError:
        return False


def panel_id_of(state: str | None) -> str | None:
    if not state or not state.startswith(STATE_PREFIX):
        return None
    panel_id, sep, _ = state[len(STATE_PREFIX) :].partition(":")
    if not sep or not panel_id or "|" in panel_id:
        return None
    return panel_id


def parse_claimer(state: str | None) -> int | None:
    if not state:
        return None
    match = _CLAIM_TAG.search(state)
    return int(match.group(1)) if match else None


def parse(state: str | None, expected_panel_id: str) -> TicketState | None:
    """Decode ``state`` for ``expected_panel_id``; ``None`` means the state is invalid."""
    if state is None or not belongs_to_panel(state, expected_panel_id):
        return None
    rest = state[len(panel_prefix(expected_panel_id)) :]
    opener = rest.split("|", 1)[0]
    if not _USER_ID.match(opener):
        return None
    # A malformed claim tag reads as unclaimed.
    return TicketState(
        panel_id=expected_panel_id,
        opener_id=int(opener),
        claimer_id=parse_claimer(rest),
    )


def mark_claimed(state: str, claimer_id: int | str) -> str:
    """Append the claim tag unless one is already present; the first claim wins."""
    if parse_claimer(state) is not None:
        return state
    return f"{state}{CLAIM_TAG}{_check_user_id(claimer_id)}"
