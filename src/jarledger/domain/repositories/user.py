"""User repository protocol."""

from __future__ import annotations

from typing import Optional, Protocol

from ...models.user import User


class UserRepository(Protocol):
    """Repository for user profile rows."""

    def get_by_id(self, user_id: int) -> Optional[User]:
        """Retrieve a user by ID."""
        ...

    def get_by_email(self, email: str) -> Optional[User]:
        """Retrieve a user by normalized email."""
        ...

    def create(self, user: User) -> User:
        """Create a new user."""
        ...

    def update(self, user: User) -> User:
        """Update an existing user."""
        ...
