"""Pytest configuration and shared fixtures for jar ledger tests.

Provides an isolated SQLite database per test, the in-memory store, and
factories for users and jars. Tests that take the ``backend`` fixture run once
against each store implementation.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import pytest

from jarledger.config import BaseConfig
from jarledger.infra.database import create_db_engine, create_session_factory, init_database
from jarledger.infra.repositories import (
    InMemoryLedgerStore,
    SQLModelLedgerStore,
    SQLModelUserRepository,
)
from jarledger.logging_config import teardown_logging
from jarledger.models import Jar, User
from jarledger.services import users as user_service
from jarledger.services.ledger import JarLedger


@dataclass
class Backend:
    """A store, its user repository, and a ledger bound to them."""

    name: str
    store: Any
    users: Any
    ledger: JarLedger


# =============================================================================
# Configuration / Database Fixtures
# =============================================================================


@pytest.fixture
def config(tmp_path, monkeypatch) -> BaseConfig:
    """Configuration rooted in the test's temporary directory."""

    monkeypatch.setenv("JARLEDGER_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("JARLEDGER_DATABASE_URL", raising=False)
    monkeypatch.setenv("JARLEDGER_RETRY_BACKOFF_SECONDS", "0")
    return BaseConfig()


@pytest.fixture
def db_engine(config):
    """File-backed SQLite database with all tables created.

    A file (not ``:memory:``) so concurrent tests get one shared database
    across connections.
    """

    engine = create_db_engine(config)
    init_database(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture
def sql_store(session_factory) -> SQLModelLedgerStore:
    return SQLModelLedgerStore(session_factory)


@pytest.fixture
def memory_store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture(params=["sqlmodel", "memory"])
def backend(request) -> Backend:
    """Run the test against both store implementations."""

    if request.param == "sqlmodel":
        factory = request.getfixturevalue("session_factory")
        store = SQLModelLedgerStore(factory)
        users = SQLModelUserRepository(factory)
    else:
        store = InMemoryLedgerStore()
        users = store
    return Backend(
        name=request.param,
        store=store,
        users=users,
        ledger=JarLedger(store, max_attempts=3, retry_backoff=0),
    )


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    teardown_logging()


# =============================================================================
# Test Data Factories
# =============================================================================


@pytest.fixture
def user_factory(backend):
    """Factory for profile rows; ``is_pro`` flips the tier after creation."""

    counter = {"n": 0}

    def _create_user(email: str | None = None, *, is_pro: bool = False) -> User:
        counter["n"] += 1
        user = user_service.register_user(backend.users, email or f"user{counter['n']}@example.com")
        if is_pro:
            user = user_service.set_pro(backend.users, user.id, True)
        return user

    return _create_user


@pytest.fixture
def user(user_factory) -> User:
    return user_factory("owner@example.com")


@pytest.fixture
def jar_factory(backend, user):
    """Factory for jars; a non-zero ``balance`` is funded with a fill."""

    def _create_jar(
        name: str = "Groceries",
        *,
        balance: Decimal | str | int = 0,
        owner: User | None = None,
        target_amount=None,
    ) -> Jar:
        owner = owner or user
        jar = backend.ledger.create_jar(owner.id, name, target_amount=target_amount)
        if Decimal(str(balance)) > 0:
            backend.ledger.fill(jar.id, balance, "Opening balance", user_id=owner.id)
            jar = backend.store.get_jar(jar.id)
        return jar

    return _create_jar


@pytest.fixture
def balance(backend):
    """Current cached balance of a jar."""

    def _balance(jar_id: int) -> Decimal:
        return backend.store.get_jar(jar_id).balance

    return _balance
