"""Ledger operation processor: fill, spend and transfer.

Each request is turned into an ``OperationPlan`` (pure, no I/O beyond reading
the jars involved) and submitted to the store, which applies the balance deltas
and ledger rows as one unit keyed by an operation key. Retries reuse the key,
so an attempt whose acknowledgement was lost is replayed instead of applied
twice.

Balance decreases are floored at zero while the ledger row keeps the full
requested amount: the history shows what was asked for, the jar shows what is
left.
"""

from __future__ import annotations

import hashlib
import time
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Optional

from ..config import BaseConfig
from ..domain.operations import OperationPlan, OperationResult, Posting
from ..domain.repositories.ledger import LedgerStore
from ..errors import InvalidDestination, InvalidOperationKey, PersistenceFailure
from ..logging_config import get_logger
from ..models.jar import Jar
from ..models.operation import OperationKind
from ..models.transaction import Transaction, TransactionType
from . import jars as jar_service
from .money import AmountLike, to_amount

logger = get_logger(__name__)

NOTE_MAX_LENGTH = 255
OPERATION_KEY_MAX_LENGTH = 64


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_operation_key() -> str:
    return uuid.uuid4().hex


def _clean_note(note: Optional[str]) -> Optional[str]:
    if note is None:
        return None
    cleaned = note.strip()
    return cleaned[:NOTE_MAX_LENGTH] or None


def _fingerprint(kind: OperationKind, jar_ids: tuple[int, ...], amount: Decimal, note: Optional[str]) -> str:
    raw = "|".join([kind.value, ",".join(str(j) for j in jar_ids), str(amount), note or ""])
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def transfer_notes(source_name: str, destination_name: str) -> tuple[str, str]:
    """Cross-referencing notes for the outgoing and incoming transfer rows."""

    out_note = f"Transfer to {destination_name}"
    in_note = f"Transfer from {source_name}"
    return out_note[:NOTE_MAX_LENGTH], in_note[:NOTE_MAX_LENGTH]


def _single_posting_plan(
    kind: OperationKind,
    txn_type: TransactionType,
    jar: Jar,
    amount: Decimal,
    note: Optional[str],
    *,
    user_id: Optional[int],
    operation_id: str,
    now: datetime,
) -> OperationPlan:
    delta = amount if txn_type is TransactionType.FILL else -amount
    record = Transaction(
        jar_id=jar.id,
        user_id=user_id,
        type=txn_type.value,
        amount=amount,
        note=note,
        occurred_at=now,
        created_at=now,
    )
    return OperationPlan(
        operation_id=operation_id,
        kind=kind,
        user_id=user_id,
        fingerprint=_fingerprint(kind, (jar.id,), amount, note),
        postings=(Posting(jar_id=jar.id, delta=delta, transaction=record),),
    )


def plan_fill(
    jar: Jar,
    amount: Decimal,
    note: Optional[str] = None,
    *,
    user_id: Optional[int],
    operation_id: str,
    now: datetime,
) -> OperationPlan:
    return _single_posting_plan(
        OperationKind.FILL, TransactionType.FILL, jar, amount, note,
        user_id=user_id, operation_id=operation_id, now=now,
    )


def plan_spend(
    jar: Jar,
    amount: Decimal,
    note: Optional[str] = None,
    *,
    user_id: Optional[int],
    operation_id: str,
    now: datetime,
) -> OperationPlan:
    return _single_posting_plan(
        OperationKind.SPEND, TransactionType.SPEND, jar, amount, note,
        user_id=user_id, operation_id=operation_id, now=now,
    )


def plan_transfer(
    source: Jar,
    destination: Jar,
    amount: Decimal,
    note: Optional[str] = None,
    *,
    user_id: Optional[int],
    operation_id: str,
    now: datetime,
) -> OperationPlan:
    """Two postings, ``transfer_out`` first, sharing one timestamp.

    The caller's ``note`` goes to ``memo`` on both rows.
    """

    if source.id == destination.id:
        raise InvalidDestination("Cannot transfer a jar into itself")
    out_note, in_note = transfer_notes(source.name, destination.name)
    outgoing = Transaction(
        jar_id=source.id,
        user_id=user_id,
        type=TransactionType.TRANSFER_OUT.value,
        amount=amount,
        note=out_note,
        memo=note,
        occurred_at=now,
        created_at=now,
    )
    incoming = Transaction(
        jar_id=destination.id,
        user_id=user_id,
        type=TransactionType.TRANSFER_IN.value,
        amount=amount,
        note=in_note,
        memo=note,
        occurred_at=now,
        created_at=now,
    )
    return OperationPlan(
        operation_id=operation_id,
        kind=OperationKind.TRANSFER,
        user_id=user_id,
        fingerprint=_fingerprint(OperationKind.TRANSFER, (source.id, destination.id), amount, note),
        postings=(
            Posting(jar_id=source.id, delta=-amount, transaction=outgoing),
            Posting(jar_id=destination.id, delta=amount, transaction=incoming),
        ),
    )


class JarLedger:
    """Caller-facing ledger API bound to one store."""

    def __init__(
        self,
        store: LedgerStore,
        *,
        max_attempts: int = 3,
        retry_backoff: float = 0.05,
        free_tier_limit: int = jar_service.FREE_TIER_JAR_LIMIT,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.store = store
        self.max_attempts = max_attempts
        self.retry_backoff = retry_backoff
        self.free_tier_limit = free_tier_limit
        self._clock = clock
        self._sleep = sleep

    @classmethod
    def from_config(cls, store: LedgerStore, config: BaseConfig) -> "JarLedger":
        return cls(
            store,
            max_attempts=config.MAX_WRITE_ATTEMPTS,
            retry_backoff=config.RETRY_BACKOFF_SECONDS,
            free_tier_limit=config.FREE_TIER_JAR_LIMIT,
        )

    # -- jar lifecycle ----------------------------------------------------

    def create_jar(self, owner_id: int, name: str, emoji: Optional[str] = None,
                   color: Optional[str] = None, target_amount: Optional[AmountLike] = None) -> Jar:
        kwargs = {}
        if emoji is not None:
            kwargs["emoji"] = emoji
        if color is not None:
            kwargs["color"] = color
        return jar_service.create_jar(
            self.store,
            owner_id=owner_id,
            name=name,
            target_amount=target_amount,
            free_tier_limit=self.free_tier_limit,
            **kwargs,
        )

    def delete_jar(self, jar_id: int, *, user_id: int) -> None:
        jar_service.delete_jar(self.store, jar_id, user_id=user_id)

    # -- operations -------------------------------------------------------

    def fill(
        self,
        jar_id: int,
        amount: AmountLike,
        note: Optional[str] = None,
        *,
        user_id: int,
        operation_key: Optional[str] = None,
    ) -> Transaction:
        """Add ``amount`` to the jar and record a ``fill`` row."""
        value = to_amount(amount)
        jar = jar_service.resolve_jar(self.store, jar_id, user_id=user_id)
        plan = plan_fill(
            jar, value, _clean_note(note),
            user_id=user_id, operation_id=self._operation_key(operation_key), now=self._clock(),
        )
        return self._submit(plan).transactions[0]

    def spend(
        self,
        jar_id: int,
        amount: AmountLike,
        note: Optional[str] = None,
        *,
        user_id: int,
        operation_key: Optional[str] = None,
    ) -> Transaction:
        """Take ``amount`` out of the jar, flooring the balance at zero."""
        value = to_amount(amount)
        jar = jar_service.resolve_jar(self.store, jar_id, user_id=user_id)
        plan = plan_spend(
            jar, value, _clean_note(note),
            user_id=user_id, operation_id=self._operation_key(operation_key), now=self._clock(),
        )
        return self._submit(plan).transactions[0]

    def transfer(
        self,
        from_jar_id: int,
        to_jar_id: Optional[int],
        amount: AmountLike,
        note: Optional[str] = None,
        *,
        user_id: int,
        operation_key: Optional[str] = None,
    ) -> tuple[Transaction, Transaction]:
        """Move ``amount`` between two jars of the same owner.

        Returns the ``(transfer_out, transfer_in)`` pair.
        """
        value = to_amount(amount)
        if to_jar_id is None:
            raise InvalidDestination("Please select a destination jar")
        if to_jar_id == from_jar_id:
            raise InvalidDestination("Cannot transfer a jar into itself")
        source = jar_service.resolve_jar(self.store, from_jar_id, user_id=user_id)
        destination = jar_service.resolve_jar(self.store, to_jar_id, user_id=user_id)
        if source.owner_id != destination.owner_id:
            raise InvalidDestination("Transfers are only allowed between jars of the same owner")
        plan = plan_transfer(
            source, destination, value, _clean_note(note),
            user_id=user_id, operation_id=self._operation_key(operation_key), now=self._clock(),
        )
        outgoing, incoming = self._submit(plan).transactions
        return outgoing, incoming

    @staticmethod
    def _operation_key(operation_key: Optional[str]) -> str:
        if operation_key is None:
            return new_operation_key()
        key = operation_key.strip()
        if not key or len(key) > OPERATION_KEY_MAX_LENGTH:
            raise InvalidOperationKey(f"Operation key must be 1-{OPERATION_KEY_MAX_LENGTH} characters")
        return key

    def _submit(self, plan: OperationPlan) -> OperationResult:
        """Apply ``plan``, retrying retryable storage failures with the same key."""
        extra = {
            "operation_id": plan.operation_id,
            "kind": plan.kind.value,
            "jar_ids": list(plan.jar_ids),
            "user_id": plan.user_id,
        }
        for attempt in range(1, self.max_attempts + 1):
            try:
                result = self.store.apply_operation(plan)
            except PersistenceFailure as exc:
                if not exc.retryable or attempt >= self.max_attempts:
                    logger.error(
                        "Ledger operation failed after %d attempt(s): %s", attempt, exc, extra=extra
                    )
                    raise
                logger.warning(
                    "Ledger operation attempt %d failed, retrying: %s", attempt, exc, extra=extra
                )
                self._sleep(self.retry_backoff * attempt)
                continue

            if result.replayed:
                logger.info("Ledger operation replayed", extra=extra)
            else:
                logger.info(
                    "Ledger operation applied",
                    extra={**extra, "balances": {k: str(v) for k, v in result.balances.items()}},
                )
            return result
        raise AssertionError("unreachable")  # pragma: no cover
