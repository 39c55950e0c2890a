"""Data access contract consumed by the jar ledger."""

from __future__ import annotations

from decimal import Decimal
from typing import Callable, Optional, Protocol, Sequence

from ...models.jar import Jar, JarMember
from ...models.transaction import Transaction
from ..operations import OperationPlan, OperationResult, UserTier

JarGuard = Callable[[int], None]
"""Called with the owner's current jar count inside the jar insert; raises to abort."""


class LedgerStore(Protocol):
    """Storage for jars, their ledger rows, and operation keys.

    Single-row methods mirror the hosted backend's table API. ``apply_operation``
    and ``insert_transactions`` are the multi-row writes and must be atomic.
    """

    def get_jar(self, jar_id: int) -> Optional[Jar]:
        """Return the jar or None."""
        ...

    def list_jars(self, owner_id: int, order_by_position: bool = True) -> list[Jar]:
        """List jars owned by ``owner_id``."""
        ...

    def count_jars(self, owner_id: int) -> int:
        """Authoritative count of jars owned by ``owner_id``."""
        ...

    def insert_jar(self, jar: Jar, guard: Optional[JarGuard] = None) -> Jar:
        """Insert a jar with ``position`` set to the owner's current jar count."""
        ...

    def update_jar(self, jar: Jar) -> Jar:
        """Persist appearance/flag changes; balance is not written here."""
        ...

    def update_jar_balance(self, jar_id: int, new_balance: Decimal) -> None:
        """Overwrite the cached balance (reconciliation only)."""
        ...

    def increment_balance(self, jar_id: int, delta: Decimal) -> Decimal:
        """Apply ``delta`` relative to the stored balance, floored at zero."""
        ...

    def insert_transaction(self, record: Transaction) -> Transaction:
        """Append one ledger row."""
        ...

    def insert_transactions(self, records: Sequence[Transaction]) -> list[Transaction]:
        """Append several ledger rows atomically."""
        ...

    def list_transactions(self, jar_id: int, limit: Optional[int] = None) -> list[Transaction]:
        """Ledger rows for a jar, newest first."""
        ...

    def list_user_transactions(self, user_id: int, limit: Optional[int] = None) -> list[Transaction]:
        """Ledger rows recorded by a user, newest first."""
        ...

    def apply_operation(self, plan: OperationPlan) -> OperationResult:
        """Apply every posting of ``plan`` in one unit, or replay a known key."""
        ...

    def delete_jar_cascade(self, jar_id: int) -> None:
        """Delete the jar's transactions and memberships, then the jar."""
        ...

    def get_user_tier(self, user_id: int) -> UserTier:
        """Return the user's subscription tier."""
        ...

    def add_member(self, member: JarMember) -> JarMember:
        """Create a membership row."""
        ...

    def get_member(self, jar_id: int, user_id: int) -> Optional[JarMember]:
        """Return the membership of ``user_id`` in ``jar_id``."""
        ...

    def update_member(self, member: JarMember) -> JarMember:
        """Persist membership changes."""
        ...
