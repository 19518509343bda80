from __future__ import annotations

DEFAULT_BUTTON_LABEL = "Open Ticket"
DEFAULT_TICKET_NAME = "ticket"
DEFAULT_PANEL_TITLE = "Support Tickets"
DEFAULT_AVAILABILITY = "We’ll respond as soon as possible."
MAX_CLAIM_ROLES = 3

PANEL_COLOR = 0x5865F2
TICKET_COLOR = 0x57F287
TRANSCRIPT_COLOR = 0xED4245
VOUCH_COLOR = 0x57F287
DEFAULT_PANEL_COLOR = PANEL_COLOR

STATUS_UNCLAIMED = "Unclaimed"
STATUS_CLAIMED = "Claimed"
