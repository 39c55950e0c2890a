"""Jar (envelope) and membership tables."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel


class Jar(SQLModel, table=True):
    """A named envelope holding a non-negative balance."""

    __tablename__: ClassVar[str] = "jar"
    # A deleted jar's id is never handed to a new jar.
    __table_args__ = {"sqlite_autoincrement": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    owner_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    name: str = Field(nullable=False, max_length=64)
    emoji: str = Field(default="💰", max_length=16)
    color: str = Field(default="#FF6B6B", max_length=7)
    balance: Decimal = Field(
        default=Decimal("0.00"), max_digits=12, decimal_places=2, nullable=False
    )
    target_amount: Optional[Decimal] = Field(
        default=None,
        max_digits=12,
        decimal_places=2,
        description="Savings goal used for progress display only",
    )
    is_shared: bool = Field(default=False, nullable=False)
    # Append-only ordering; gaps after deletion are expected.
    position: int = Field(default=0, nullable=False)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


class MemberRole(str, Enum):
    OWNER = "owner"
    EDITOR = "editor"
    VIEWER = "viewer"


class JarMember(SQLModel, table=True):
    """Another user invited to a shared jar."""

    __tablename__: ClassVar[str] = "jar_member"

    id: Optional[int] = Field(default=None, primary_key=True)
    jar_id: int = Field(foreign_key="jar.id", nullable=False, index=True)
    user_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    role: str = Field(default=MemberRole.VIEWER.value, nullable=False, max_length=16)
    invited_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    accepted_at: Optional[datetime] = Field(default=None)

    @property
    def is_accepted(self) -> bool:
        return self.accepted_at is not None

    @property
    def can_write(self) -> bool:
        return self.is_accepted and self.role in (MemberRole.OWNER.value, MemberRole.EDITOR.value)
