"""Profile and tier management for already-authenticated users."""

from __future__ import annotations

from typing import Optional

from ..domain.repositories.user import UserRepository
from ..errors import UserNotFound
from ..logging_config import get_logger
from ..models.user import User

logger = get_logger(__name__)


def normalize_email(email: str) -> str:
    cleaned = (email or "").strip().lower()
    if "@" not in cleaned or cleaned.startswith("@") or cleaned.endswith("@"):
        raise ValueError(f"Invalid email: {email!r}")
    return cleaned


def register_user(repo: UserRepository, email: str, display_name: Optional[str] = None) -> User:
    """Create the profile row for an identity, or return the existing one."""

    email = normalize_email(email)
    existing = repo.get_by_email(email)
    if existing is not None:
        return existing
    user = repo.create(User(email=email, display_name=(display_name or "").strip() or None))
    logger.info("User registered", extra={"user_id": user.id})
    return user


def get_user(repo: UserRepository, user_id: int) -> User:
    user = repo.get_by_id(user_id)
    if user is None:
        raise UserNotFound(user_id)
    return user


def update_display_name(repo: UserRepository, user_id: int, display_name: Optional[str]) -> User:
    user = get_user(repo, user_id)
    user.display_name = (display_name or "").strip() or None
    return repo.update(user)


def set_pro(
    repo: UserRepository,
    user_id: int,
    is_pro: bool = True,
    billing_customer_id: Optional[str] = None,
) -> User:
    """Flip the pro flag once billing has confirmed; payment itself happens elsewhere."""

    user = get_user(repo, user_id)
    user.is_pro = is_pro
    if billing_customer_id is not None:
        user.billing_customer_id = billing_customer_id
    updated = repo.update(user)
    logger.info("User tier changed", extra={"user_id": user_id, "is_pro": is_pro})
    return updated
