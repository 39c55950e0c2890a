"""Value objects exchanged between the ledger processor and its stores."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from ..models.operation import OperationKind
from ..models.transaction import Transaction


@dataclass(frozen=True, slots=True)
class Posting:
    """A balance delta on one jar plus the ledger row recording it.

    ``delta`` is signed (negative for spend/transfer-out) and is applied with a
    floor at zero; ``transaction.amount`` stays the positive requested amount.
    """

    jar_id: int
    delta: Decimal
    transaction: Transaction


@dataclass(frozen=True, slots=True)
class OperationPlan:
    """Everything a store needs to apply one operation atomically."""

    operation_id: str
    kind: OperationKind
    user_id: Optional[int]
    fingerprint: str
    postings: tuple[Posting, ...]

    @property
    def jar_ids(self) -> tuple[int, ...]:
        return tuple(p.jar_id for p in self.postings)


@dataclass(frozen=True, slots=True)
class OperationResult:
    operation_id: str
    transactions: tuple[Transaction, ...]
    replayed: bool = False
    balances: dict[int, Decimal] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class UserTier:
    user_id: int
    is_pro: bool
