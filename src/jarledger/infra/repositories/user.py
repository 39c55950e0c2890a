"""SQLModel implementation of User repository."""

from __future__ import annotations

from typing import Callable, Optional

from sqlmodel import Session, select

from ...errors import UserNotFound
from ...models.user import User
from .ledger import translate_errors


class SQLModelUserRepository:
    """SQLModel-based user repository implementation."""

    def __init__(self, session_factory: Callable[[], Session]):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    def get_by_id(self, user_id: int) -> Optional[User]:
        """Retrieve a user by ID."""
        with translate_errors("get_user"), self.session_factory() as session:
            user = session.get(User, user_id)
            if user:
                session.expunge(user)
            return user

    def get_by_email(self, email: str) -> Optional[User]:
        """Retrieve a user by normalized email."""
        with translate_errors("get_user_by_email"), self.session_factory() as session:
            user = session.exec(select(User).where(User.email == email)).first()
            if user:
                session.expunge(user)
            return user

    def create(self, user: User) -> User:
        """Create a new user."""
        with translate_errors("create_user"), self.session_factory() as session:
            row = User(**user.model_dump(exclude={"id"}))
            session.add(row)
            session.commit()
            session.refresh(row)
            session.expunge(row)
            return row

    def update(self, user: User) -> User:
        """Update an existing user."""
        with translate_errors("update_user"), self.session_factory() as session:
            row = session.get(User, user.id)
            if row is None:
                raise UserNotFound(user.id)
            row.display_name = user.display_name
            row.avatar_url = user.avatar_url
            row.is_pro = user.is_pro
            row.billing_customer_id = user.billing_customer_id
            session.add(row)
            session.commit()
            session.refresh(row)
            session.expunge(row)
            return row
