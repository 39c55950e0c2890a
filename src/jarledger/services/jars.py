"""Jar lifecycle: creation with the free-tier guard, deletion, sharing and access."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Iterable, Optional

from ..constants import DEFAULT_JAR_COLOR, DEFAULT_JAR_EMOJI, JAR_NAME_MAX_LENGTH
from ..domain.repositories.ledger import LedgerStore
from ..errors import InvalidJar, JarNotFound, TierLimitExceeded
from ..logging_config import get_logger
from ..models.jar import Jar, JarMember, MemberRole
from .money import ZERO, AmountLike, to_amount

logger = get_logger(__name__)

FREE_TIER_JAR_LIMIT = 3

_HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")


def check_jar_limit(is_pro: bool, existing_count: int, limit: int = FREE_TIER_JAR_LIMIT) -> None:
    """Raise ``TierLimitExceeded`` when a free user already owns ``limit`` jars."""

    if not is_pro and existing_count >= limit:
        raise TierLimitExceeded(limit=limit, existing=existing_count)


def sort_jars(jars: Iterable[Jar]) -> list[Jar]:
    """Display order: position, then creation time. Positions may have gaps."""

    return sorted(jars, key=lambda j: (j.position, j.created_at, j.id or 0))


def _normalize_name(name: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise InvalidJar("Please enter a jar name")
    if len(cleaned) > JAR_NAME_MAX_LENGTH:
        raise InvalidJar(f"Jar name cannot exceed {JAR_NAME_MAX_LENGTH} characters")
    return cleaned


def _normalize_color(color: str) -> str:
    if not _HEX_COLOR.match(color or ""):
        raise InvalidJar(f"Color must look like #RRGGBB, got {color!r}")
    return color.upper()


def create_jar(
    store: LedgerStore,
    *,
    owner_id: int,
    name: str,
    emoji: str = DEFAULT_JAR_EMOJI,
    color: str = DEFAULT_JAR_COLOR,
    target_amount: Optional[AmountLike] = None,
    free_tier_limit: int = FREE_TIER_JAR_LIMIT,
) -> Jar:
    """Validate and insert a jar at the end of the owner's list.

    The tier flag is read fresh and the jar count is taken by the store inside
    the insert, so stale counts from another session cannot bypass the limit.
    """

    jar = Jar(
        owner_id=owner_id,
        name=_normalize_name(name),
        emoji=(emoji or "").strip() or DEFAULT_JAR_EMOJI,
        color=_normalize_color(color),
        balance=ZERO,
        target_amount=to_amount(target_amount) if target_amount is not None else None,
        is_shared=False,
    )
    tier = store.get_user_tier(owner_id)

    def guard(existing_count: int) -> None:
        check_jar_limit(tier.is_pro, existing_count, limit=free_tier_limit)

    try:
        created = store.insert_jar(jar, guard=guard)
    except TierLimitExceeded:
        logger.info("Jar limit reached", extra={"owner_id": owner_id, "limit": free_tier_limit})
        raise
    logger.info(
        "Jar created",
        extra={"jar_id": created.id, "owner_id": owner_id, "position": created.position},
    )
    return created


def resolve_jar(store: LedgerStore, jar_id: Optional[int], *, user_id: int, write: bool = True) -> Jar:
    """Return the jar if ``user_id`` may read it (or write it when ``write``).

    Owners have full access; accepted members need the editor role to write.
    Inaccessible jars are reported exactly like missing ones.
    """

    if jar_id is None:
        raise JarNotFound(jar_id)
    jar = store.get_jar(jar_id)
    if jar is None:
        raise JarNotFound(jar_id)
    if jar.owner_id == user_id:
        return jar
    member = store.get_member(jar_id, user_id)
    if member is None or not member.is_accepted:
        raise JarNotFound(jar_id)
    if write and not member.can_write:
        raise JarNotFound(jar_id)
    return jar


def delete_jar(store: LedgerStore, jar_id: int, *, user_id: int) -> None:
    """Owner-only delete; the jar's transactions go with it."""

    jar = store.get_jar(jar_id)
    if jar is None or jar.owner_id != user_id:
        raise JarNotFound(jar_id)
    store.delete_jar_cascade(jar_id)
    logger.info("Jar deleted", extra={"jar_id": jar_id, "owner_id": user_id})


def share_jar(
    store: LedgerStore,
    jar_id: int,
    *,
    user_id: int,
    member_user_id: int,
    role: str = MemberRole.VIEWER.value,
) -> JarMember:
    """Invite another user to a jar the caller owns.

    Re-inviting an existing member changes their role and keeps acceptance.
    """

    if role not in (MemberRole.EDITOR.value, MemberRole.VIEWER.value):
        raise InvalidJar(f"Invalid role: {role}")
    jar = store.get_jar(jar_id)
    if jar is None or jar.owner_id != user_id:
        raise JarNotFound(jar_id)
    if member_user_id == user_id:
        raise InvalidJar("The owner already has access to this jar")
    store.get_user_tier(member_user_id)

    existing = store.get_member(jar_id, member_user_id)
    if existing is not None:
        existing.role = role
        member = store.update_member(existing)
    else:
        member = store.add_member(JarMember(jar_id=jar_id, user_id=member_user_id, role=role))

    if not jar.is_shared:
        jar.is_shared = True
        store.update_jar(jar)
    logger.info(
        "Jar shared",
        extra={"jar_id": jar_id, "member_user_id": member_user_id, "role": role},
    )
    return member


def accept_share(store: LedgerStore, jar_id: int, *, user_id: int) -> JarMember:
    member = store.get_member(jar_id, user_id)
    if member is None:
        raise JarNotFound(jar_id)
    if member.accepted_at is None:
        member.accepted_at = datetime.now(timezone.utc)
        member = store.update_member(member)
    return member
