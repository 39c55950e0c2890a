"""Exception taxonomy raised by ledger operations."""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for every error surfaced by the ledger core."""


class InvalidAmount(LedgerError, ValueError):
    """Amount was non-positive, non-numeric, or rounds to zero cents."""


class InvalidJar(LedgerError, ValueError):
    """Jar attributes (name, color, role) failed validation."""


class InvalidDestination(LedgerError, ValueError):
    """Transfer destination is missing, equals the source, or has another owner."""


class JarNotFound(LedgerError, LookupError):
    """Jar does not exist or is not accessible to the caller."""

    def __init__(self, jar_id: int | None):
        super().__init__(f"Jar {jar_id} not found")
        self.jar_id = jar_id


class TierLimitExceeded(LedgerError):
    """Free-tier user already owns the maximum number of jars."""

    def __init__(self, limit: int, existing: int):
        super().__init__(
            f"You've reached the free limit of {limit} jars. Upgrade to Pro for unlimited jars."
        )
        self.limit = limit
        self.existing = existing


class InvalidOperationKey(LedgerError, ValueError):
    """Operation key is blank or longer than the column allows."""


class OperationKeyConflict(LedgerError):
    """An operation key was reused for a different request."""

    def __init__(self, operation_id: str):
        super().__init__(f"Operation key {operation_id!r} was already used for a different request")
        self.operation_id = operation_id


class PersistenceFailure(LedgerError):
    """The storage layer failed; nothing from the failed attempt was persisted."""

    def __init__(self, message: str, *, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


class UserNotFound(LedgerError, LookupError):
    """No profile row exists for the user id."""

    def __init__(self, user_id: int | None):
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id
