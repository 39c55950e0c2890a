"""Read-side helpers: history, activity, goal progress and reconciliation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from decimal import Decimal
from typing import Iterable, Optional

from ..domain.repositories.ledger import LedgerStore
from ..logging_config import get_logger
from ..models.jar import Jar
from ..models.transaction import Transaction, TransactionType
from . import jars as jar_service
from .money import ZERO, quantize

logger = get_logger(__name__)

DEFAULT_HISTORY_LIMIT = 50
DEFAULT_ACTIVITY_LIMIT = 100

_TYPE_DISPLAY = {
    TransactionType.FILL: ("Added", "➕", "+"),
    TransactionType.SPEND: ("Spent", "➖", "-"),
    TransactionType.TRANSFER_IN: ("Transfer in", "📥", "+"),
    TransactionType.TRANSFER_OUT: ("Transfer out", "📤", "-"),
}


@dataclass(frozen=True, slots=True)
class TransactionDisplay:
    label: str
    icon: str
    sign: str


@dataclass(frozen=True, slots=True)
class Reconciliation:
    """Cached jar balance compared with the balance replayed from its ledger."""

    jar_id: int
    cached: Decimal
    derived: Decimal
    transaction_count: int
    repaired: bool = False

    @property
    def drift(self) -> Decimal:
        return self.cached - self.derived

    @property
    def in_sync(self) -> bool:
        return self.drift == 0


def jar_history(
    store: LedgerStore, jar_id: int, *, user_id: int, limit: Optional[int] = DEFAULT_HISTORY_LIMIT
) -> list[Transaction]:
    """Newest-first ledger rows for a jar the caller can read."""

    jar_service.resolve_jar(store, jar_id, user_id=user_id, write=False)
    return store.list_transactions(jar_id, limit=limit)


def activity_feed(
    store: LedgerStore, *, user_id: int, limit: Optional[int] = DEFAULT_ACTIVITY_LIMIT
) -> list[Transaction]:
    """Everything the user recorded across jars, newest first."""

    return store.list_user_transactions(user_id, limit=limit)


def total_balance(jars: Iterable[Jar]) -> Decimal:
    return quantize(sum((j.balance for j in jars), ZERO))


def goal_progress(jar: Jar, cap: bool = True) -> Optional[float]:
    """Percent of ``target_amount`` reached, ``None`` when the jar has no goal.

    Balances may exceed the goal; ``cap`` limits the value to 100 for display.
    """

    if not jar.target_amount:
        return None
    progress = float(Decimal(jar.balance) / Decimal(jar.target_amount) * 100)
    return min(progress, 100.0) if cap else progress


def goal_reached(jar: Jar) -> bool:
    progress = goal_progress(jar, cap=False)
    return progress is not None and progress >= 100


def describe_transaction(txn: Transaction) -> TransactionDisplay:
    try:
        label, icon, sign = _TYPE_DISPLAY[TransactionType(txn.type)]
    except (ValueError, KeyError):
        return TransactionDisplay("Transaction", "💰", "")
    return TransactionDisplay(label, icon, sign)


def _as_utc(moment: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is written in UTC.
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def day_label(moment: datetime, now: Optional[datetime] = None, tz: Optional[tzinfo] = None) -> str:
    """``Today``, ``Yesterday`` or a short ``Mar 5`` style date.

    Days are compared in ``tz``, the machine's local zone when omitted.
    """

    moment = _as_utc(moment).astimezone(tz)
    now = _as_utc(now or datetime.now(timezone.utc)).astimezone(tz)
    day = moment.date()
    if day == now.date():
        return "Today"
    if day == (now - timedelta(days=1)).date():
        return "Yesterday"
    return f"{moment:%b} {day.day}"


def derive_balance(transactions: Iterable[Transaction]) -> Decimal:
    """Replay rows in the order they were applied, with the ledger's zero floor.

    Ids follow apply order; ``occurred_at`` comes from the caller's clock.
    """

    ordered = sorted(transactions, key=lambda t: t.id or 0)
    balance = ZERO
    for txn in ordered:
        amount = Decimal(txn.amount)
        if TransactionType(txn.type).is_inflow:
            balance += amount
        else:
            balance = max(ZERO, balance - amount)
    return quantize(balance)


def reconcile_jar(store: LedgerStore, jar_id: int, *, user_id: int, repair: bool = False) -> Reconciliation:
    """Compare the cached balance with the ledger; optionally rewrite the cache.

    Repair is owner/editor only since it writes.
    """

    jar = jar_service.resolve_jar(store, jar_id, user_id=user_id, write=repair)
    rows = store.list_transactions(jar_id)
    cached = quantize(Decimal(jar.balance))
    derived = derive_balance(rows)
    repaired = False
    if cached != derived:
        logger.warning(
            "Jar balance drift detected",
            extra={"jar_id": jar_id, "cached": str(cached), "derived": str(derived)},
        )
        if repair:
            store.update_jar_balance(jar_id, derived)
            repaired = True
    return Reconciliation(
        jar_id=jar_id,
        cached=cached,
        derived=derived,
        transaction_count=len(rows),
        repaired=repaired,
    )
