from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

import discord

if TYPE_CHECKING:
    from services.ticket_state import TicketState

VIEW = "view_channel"
SEND = "send_messages"
READ_HISTORY = "read_message_history"
ATTACH = "attach_files"
EMBED = "embed_links"
MANAGE_CHANNELS = "manage_channels"
MANAGE_MESSAGES = "manage_messages"

PARTICIPANT_ALLOW = frozenset({VIEW, SEND, READ_HISTORY, ATTACH, EMBED})
CLAIM_ROLE_ALLOW = frozenset({VIEW, READ_HISTORY})
CLAIM_ROLE_DENY = frozenset({SEND})
BOT_ALLOW = frozenset({VIEW, SEND, READ_HISTORY, ATTACH, EMBED, MANAGE_CHANNELS, MANAGE_MESSAGES})


class PrincipalKind(str, Enum):
    ROLE = "role"
    MEMBER = "member"


@dataclass(frozen=True, slots=True)
class PermissionRule:
    target_id: int
    kind: PrincipalKind
    allow: frozenset[str] = frozenset()
    deny: frozenset[str] = frozenset()


@dataclass(frozen=True, slots=True)
class Access:
    view: bool
    send: bool


def plan_ticket_overwrites(
    everyone_id: int,
    opener_id: int,
    claim_role_ids: Iterable[int],
    claimer_id: int | None = None,
    bot_member_id: int | None = None,
) -> list[PermissionRule]:
    """Full overwrite set for a ticket channel in its current state.

    The result always replaces the channel's overwrites wholesale. Claim roles
    never get send rights; only the opener and the recorded claimer do.
    """
    rules: dict[tuple[PrincipalKind, int], PermissionRule] = {}

    def put(rule: PermissionRule) -> None:
        rules[(rule.kind, rule.target_id)] = rule

    put(PermissionRule(everyone_id, PrincipalKind.ROLE, deny=frozenset({VIEW})))
    for role_id in claim_role_ids:
        if role_id == everyone_id:
            continue
        put(PermissionRule(role_id, PrincipalKind.ROLE, allow=CLAIM_ROLE_ALLOW, deny=CLAIM_ROLE_DENY))
    put(PermissionRule(opener_id, PrincipalKind.MEMBER, allow=PARTICIPANT_ALLOW))
    if claimer_id is not None:
        put(PermissionRule(claimer_id, PrincipalKind.MEMBER, allow=PARTICIPANT_ALLOW))
    if bot_member_id is not None and bot_member_id not in (opener_id, claimer_id):
        put(PermissionRule(bot_member_id, PrincipalKind.MEMBER, allow=BOT_ALLOW))
    return list(rules.values())


def plan_for_state(
    state: TicketState,
    everyone_id: int,
    claim_role_ids: Iterable[int],
    bot_member_id: int | None = None,
) -> list[PermissionRule]:
    return plan_ticket_overwrites(
        everyone_id=everyone_id,
        opener_id=state.opener_id,
        claim_role_ids=claim_role_ids,
        claimer_id=state.claimer_id,
        bot_member_id=bot_member_id,
    )


def effective_access(
    rules: Iterable[PermissionRule],
    everyone_id: int,
    member_id: int,
    role_ids: Iterable[int],
    base: Iterable[str] = (VIEW, SEND),
) -> Access:
    """Resolve overwrites in the platform's order: everyone, roles, then member."""
    granted = set(base)
    by_key = {(rule.kind, rule.target_id): rule for rule in rules}

    everyone = by_key.get((PrincipalKind.ROLE, everyone_id))
    if everyone:
        granted -= everyone.deny
        granted |= everyone.allow

    role_deny: set[str] = set()
    role_allow: set[str] = set()
    for role_id in set(role_ids):
        rule = by_key.get((PrincipalKind.ROLE, role_id))
        if rule and role_id != everyone_id:
            role_deny |= rule.deny
            role_allow |= rule.allow
    granted -= role_deny
    granted |= role_allow

    member = by_key.get((PrincipalKind.MEMBER, member_id))
    if member:
        granted -= member.deny
        granted |= member.allow

    view = VIEW in granted
    return Access(view=view, send=view and SEND in granted)


def to_permission_overwrite(rule: PermissionRule) -> discord.PermissionOverwrite:
    values: dict[str, bool] = {name: True for name in rule.allow}
    values.update({name: False for name in rule.deny})
    return discord.PermissionOverwrite(**values)


def to_discord_overwrites(
    rules: Iterable[PermissionRule], guild: discord.Guild
) -> dict[discord.abc.Snowflake, discord.PermissionOverwrite]:
    overwrites: dict[discord.abc.Snowflake, discord.PermissionOverwrite] = {}
    for rule in rules:
        target: discord.abc.Snowflake
        if rule.kind is PrincipalKind.ROLE and rule.target_id == guild.id:
            target = guild.default_role
        elif rule.kind is PrincipalKind.ROLE:
            target = discord.Object(id=rule.target_id, type=discord.Role)
        else:
            target = discord.Object(id=rule.target_id, type=discord.Member)
        overwrites[target] = to_permission_overwrite(rule)
    return overwrites
