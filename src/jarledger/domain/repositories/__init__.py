"""Repository protocol definitions for domain layer."""

from .ledger import JarGuard, LedgerStore
from .user import UserRepository

__all__ = ["JarGuard", "LedgerStore", "UserRepository"]
