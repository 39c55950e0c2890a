"""Application context for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from .config import BaseConfig
from .domain.repositories import LedgerStore, UserRepository
from .infra.database import bootstrap_database
from .infra.repositories import InMemoryLedgerStore, SQLModelLedgerStore, SQLModelUserRepository
from .services.ledger import JarLedger


@dataclass
class AppContext:
    """Configuration, stores and the ledger wired together."""

    config: BaseConfig
    store: LedgerStore
    user_repo: UserRepository
    ledger: JarLedger
    engine: Optional[Any] = None
    session_factory: Optional[Callable[[], Any]] = None

    def dispose(self) -> None:
        if self.engine is not None:
            self.engine.dispose()


def create_app_context(config: Optional[BaseConfig] = None, *, in_memory: bool = False) -> AppContext:
    """Create and initialize the application context.

    ``in_memory`` skips the database entirely and keeps all state in-process.
    """

    if config is None:
        config = BaseConfig()

    if in_memory:
        memory_store = InMemoryLedgerStore()
        return AppContext(
            config=config,
            store=memory_store,
            user_repo=memory_store,
            ledger=JarLedger.from_config(memory_store, config),
        )

    engine, session_factory = bootstrap_database(config)
    store = SQLModelLedgerStore(session_factory)

    return AppContext(
        config=config,
        store=store,
        user_repo=SQLModelUserRepository(session_factory),
        ledger=JarLedger.from_config(store, config),
        engine=engine,
        session_factory=session_factory,
    )
