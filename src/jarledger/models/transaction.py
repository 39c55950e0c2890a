"""SQLModel definitions for jar ledger entries."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel


class TransactionType(str, Enum):
    FILL = "fill"
    SPEND = "spend"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"

    @property
    def is_inflow(self) -> bool:
        return self in (TransactionType.FILL, TransactionType.TRANSFER_IN)


class Transaction(SQLModel, table=True):
    """An immutable ledger entry; direction lives in ``type``, never in the sign."""

    __tablename__: ClassVar[str] = "transaction"
    # Ids are never reused, so they follow the order rows were applied.
    __table_args__ = {"sqlite_autoincrement": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    jar_id: int = Field(foreign_key="jar.id", nullable=False, index=True)
    user_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)
    type: str = Field(nullable=False, max_length=16)
    amount: Decimal = Field(
        max_digits=12, decimal_places=2, nullable=False, description="Always positive"
    )
    note: Optional[str] = Field(default=None, max_length=255)
    # Caller text for transfers; ``note`` keeps the fixed "Transfer to/from" wording.
    memo: Optional[str] = Field(default=None, max_length=255)
    occurred_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    operation_id: Optional[str] = Field(
        default=None, foreign_key="ledger_operation.id", index=True, max_length=64
    )

    @property
    def kind(self) -> TransactionType:
        return TransactionType(self.type)
