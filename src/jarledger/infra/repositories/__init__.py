"""Concrete repository implementations."""

from .ledger import SQLModelLedgerStore
from .memory import InMemoryLedgerStore
from .user import SQLModelUserRepository

__all__ = [
    "InMemoryLedgerStore",
    "SQLModelLedgerStore",
    "SQLModelUserRepository",
]
