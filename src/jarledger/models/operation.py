"""Idempotency records for submitted ledger operations."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel


class OperationKind(str, Enum):
    FILL = "fill"
    SPEND = "spend"
    TRANSFER = "transfer"


class LedgerOperation(SQLModel, table=True):
    """One row per applied operation, keyed by the client-generated operation key."""

    __tablename__: ClassVar[str] = "ledger_operation"

    id: str = Field(primary_key=True, max_length=64)
    kind: str = Field(nullable=False, max_length=16)
    user_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)
    # Identifies the request so a reused key with different inputs is rejected.
    fingerprint: str = Field(nullable=False, max_length=255)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
