"""SQLModel table exports."""

from .jar import Jar, JarMember, MemberRole
from .operation import LedgerOperation, OperationKind
from .transaction import Transaction, TransactionType
from .user import User

__all__ = [
    "Jar",
    "JarMember",
    "LedgerOperation",
    "MemberRole",
    "OperationKind",
    "Transaction",
    "TransactionType",
    "User",
]
