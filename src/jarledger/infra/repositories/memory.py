"""In-process ledger store guarded by a single lock.

Implements both ``LedgerStore`` and ``UserRepository``; used by the test-suite
and by ``create_app_context(in_memory=True)``.
"""

from __future__ import annotations

import threading
from decimal import Decimal
from itertools import count
from typing import Optional, Sequence, TypeVar

from sqlmodel import SQLModel

from ...domain.operations import OperationPlan, OperationResult, UserTier
from ...domain.repositories.ledger import JarGuard
from ...errors import JarNotFound, OperationKeyConflict, PersistenceFailure, UserNotFound
from ...models.jar import Jar, JarMember
from ...models.operation import LedgerOperation
from ...models.transaction import Transaction, TransactionType
from ...models.user import User

ModelT = TypeVar("ModelT", bound=SQLModel)

ZERO = Decimal("0.00")


def _copy(record: ModelT) -> ModelT:
    return type(record)(**record.model_dump())


def _newest_first(rows: list[Transaction]) -> list[Transaction]:
    return sorted(rows, key=lambda t: (t.occurred_at, t.id or 0), reverse=True)


class InMemoryLedgerStore:
    """Dictionary-backed store; callers only ever see copies of stored rows."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._ids = {name: count(1) for name in ("user", "jar", "transaction", "member")}
        self.users: dict[int, User] = {}
        self.jars: dict[int, Jar] = {}
        self.transactions: dict[int, Transaction] = {}
        self.members: dict[int, JarMember] = {}
        self.operations: dict[str, LedgerOperation] = {}

    # -- users ------------------------------------------------------------

    def get_by_id(self, user_id: int) -> Optional[User]:
        with self._lock:
            user = self.users.get(user_id)
            return _copy(user) if user else None

    def get_by_email(self, email: str) -> Optional[User]:
        with self._lock:
            for user in self.users.values():
                if user.email == email:
                    return _copy(user)
            return None

    def create(self, user: User) -> User:
        with self._lock:
            if any(existing.email == user.email for existing in self.users.values()):
                raise PersistenceFailure(f"Email {user.email!r} already registered")
            stored = _copy(user)
            stored.id = next(self._ids["user"])
            self.users[stored.id] = stored
            return _copy(stored)

    def update(self, user: User) -> User:
        with self._lock:
            if user.id not in self.users:
                raise UserNotFound(user.id)
            self.users[user.id] = _copy(user)
            return _copy(user)

    def get_user_tier(self, user_id: int) -> UserTier:
        with self._lock:
            user = self.users.get(user_id)
            if user is None:
                raise UserNotFound(user_id)
            return UserTier(user_id=user_id, is_pro=user.is_pro)

    # -- jars -------------------------------------------------------------

    def get_jar(self, jar_id: int) -> Optional[Jar]:
        with self._lock:
            jar = self.jars.get(jar_id)
            return _copy(jar) if jar else None

    def list_jars(self, owner_id: int, order_by_position: bool = True) -> list[Jar]:
        with self._lock:
            rows = [_copy(j) for j in self.jars.values() if j.owner_id == owner_id]
        if order_by_position:
            return sorted(rows, key=lambda j: (j.position, j.created_at, j.id or 0))
        return sorted(rows, key=lambda j: j.id or 0)

    def count_jars(self, owner_id: int) -> int:
        with self._lock:
            return sum(1 for j in self.jars.values() if j.owner_id == owner_id)

    def insert_jar(self, jar: Jar, guard: Optional[JarGuard] = None) -> Jar:
        with self._lock:
            if jar.owner_id not in self.users:
                raise UserNotFound(jar.owner_id)
            existing = self.count_jars(jar.owner_id)
            if guard is not None:
                guard(existing)
            stored = _copy(jar)
            stored.id = next(self._ids["jar"])
            stored.position = existing
            self.jars[stored.id] = stored
            return _copy(stored)

    def update_jar(self, jar: Jar) -> Jar:
        with self._lock:
            stored = self.jars.get(jar.id)
            if stored is None:
                raise JarNotFound(jar.id)
            for field in ("name", "emoji", "color", "target_amount", "is_shared"):
                setattr(stored, field, getattr(jar, field))
            return _copy(stored)

    def update_jar_balance(self, jar_id: int, new_balance: Decimal) -> None:
        with self._lock:
            stored = self.jars.get(jar_id)
            if stored is None:
                raise JarNotFound(jar_id)
            stored.balance = max(ZERO, new_balance)

    def increment_balance(self, jar_id: int, delta: Decimal) -> Decimal:
        with self._lock:
            stored = self.jars.get(jar_id)
            if stored is None:
                raise JarNotFound(jar_id)
            stored.balance = max(ZERO, stored.balance + delta)
            return stored.balance

    def delete_jar_cascade(self, jar_id: int) -> None:
        with self._lock:
            for txn_id in [t.id for t in self.transactions.values() if t.jar_id == jar_id]:
                del self.transactions[txn_id]
            for member_id in [m.id for m in self.members.values() if m.jar_id == jar_id]:
                del self.members[member_id]
            self.jars.pop(jar_id, None)

    # -- transactions -----------------------------------------------------

    def _append(self, record: Transaction) -> Transaction:
        stored = _copy(record)
        stored.id = next(self._ids["transaction"])
        self.transactions[stored.id] = stored
        return stored

    def insert_transaction(self, record: Transaction) -> Transaction:
        return self.insert_transactions([record])[0]

    def insert_transactions(self, records: Sequence[Transaction]) -> list[Transaction]:
        with self._lock:
            missing = [r.jar_id for r in records if r.jar_id not in self.jars]
            if missing:
                raise JarNotFound(missing[0])
            return [_copy(self._append(record)) for record in records]

    def list_transactions(self, jar_id: int, limit: Optional[int] = None) -> list[Transaction]:
        with self._lock:
            rows = _newest_first([_copy(t) for t in self.transactions.values() if t.jar_id == jar_id])
        return rows[:limit] if limit is not None else rows

    def list_user_transactions(self, user_id: int, limit: Optional[int] = None) -> list[Transaction]:
        with self._lock:
            rows = _newest_first(
                [_copy(t) for t in self.transactions.values() if t.user_id == user_id]
            )
        return rows[:limit] if limit is not None else rows

    # -- operations -------------------------------------------------------

    def apply_operation(self, plan: OperationPlan) -> OperationResult:
        with self._lock:
            existing = self.operations.get(plan.operation_id)
            if existing is not None:
                return self._replay(existing, plan)

            # Validate every jar before the first mutation so a failure leaves no trace.
            for jar_id in plan.jar_ids:
                if jar_id not in self.jars:
                    raise JarNotFound(jar_id)

            balances: dict[int, Decimal] = {}
            for posting in plan.postings:
                jar = self.jars[posting.jar_id]
                jar.balance = max(ZERO, jar.balance + posting.delta)
                balances[posting.jar_id] = jar.balance

            rows = []
            for posting in plan.postings:
                record = _copy(posting.transaction)
                record.operation_id = plan.operation_id
                rows.append(_copy(self._append(record)))

            self.operations[plan.operation_id] = LedgerOperation(
                id=plan.operation_id,
                kind=plan.kind.value,
                user_id=plan.user_id,
                fingerprint=plan.fingerprint,
            )
            return OperationResult(
                operation_id=plan.operation_id, transactions=tuple(rows), balances=balances
            )

    def _replay(self, existing: LedgerOperation, plan: OperationPlan) -> OperationResult:
        if existing.fingerprint != plan.fingerprint:
            raise OperationKeyConflict(plan.operation_id)
        rows = sorted(
            (_copy(t) for t in self.transactions.values() if t.operation_id == plan.operation_id),
            key=lambda t: (0 if t.type == TransactionType.TRANSFER_OUT.value else 1, t.id or 0),
        )
        if len(rows) != len(plan.postings):
            # The rows went with a deleted jar; the key cannot be answered.
            raise OperationKeyConflict(plan.operation_id)
        balances = {jar_id: self.jars[jar_id].balance for jar_id in plan.jar_ids if jar_id in self.jars}
        return OperationResult(
            operation_id=plan.operation_id,
            transactions=tuple(rows),
            replayed=True,
            balances=balances,
        )

    # -- members ----------------------------------------------------------

    def add_member(self, member: JarMember) -> JarMember:
        with self._lock:
            if member.jar_id not in self.jars:
                raise JarNotFound(member.jar_id)
            stored = _copy(member)
            stored.id = next(self._ids["member"])
            self.members[stored.id] = stored
            return _copy(stored)

    def get_member(self, jar_id: int, user_id: int) -> Optional[JarMember]:
        with self._lock:
            for member in self.members.values():
                if member.jar_id == jar_id and member.user_id == user_id:
                    return _copy(member)
            return None

    def update_member(self, member: JarMember) -> JarMember:
        with self._lock:
            stored = self.members.get(member.id)
            if stored is None:
                raise JarNotFound(member.jar_id)
            stored.role = member.role
            stored.accepted_at = member.accepted_at
            return _copy(stored)
