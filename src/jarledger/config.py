"""Application configuration objects and helpers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

load_dotenv()

ENV_PREFIX = "JARLEDGER_"


def _env(name: str, default: str | None = None) -> str | None:
    return os.getenv(f"{ENV_PREFIX}{name}", default)


def _env_bool(name: str, default: bool = False) -> bool:
    """Interpret environment variable values as booleans."""

    value = _env(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = _env(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {value!r}") from exc


def _env_float(name: str, default: float) -> float:
    value = _env(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name} must be a number, got {value!r}") from exc


class BaseConfig:
    """Base configuration shared across environments."""

    APP_NAME = "JarLedger"
    DB_FILENAME = "jarledger.db"
    SQLITE_TIMEOUT_SECONDS = 30

    def __init__(self) -> None:
        self.DATA_DIR = self._resolve_data_dir()
        self.DEV_MODE = _env_bool("DEV_MODE", default=True)
        self.DATABASE_URL = _env("DATABASE_URL") or self._build_sqlite_url()
        self.FREE_TIER_JAR_LIMIT = _env_int("FREE_TIER_JAR_LIMIT", 3)
        self.MAX_WRITE_ATTEMPTS = _env_int("MAX_WRITE_ATTEMPTS", 3)
        self.RETRY_BACKOFF_SECONDS = _env_float("RETRY_BACKOFF_SECONDS", 0.05)
        self.HISTORY_LIMIT = _env_int("HISTORY_LIMIT", 50)
        self.ACTIVITY_LIMIT = _env_int("ACTIVITY_LIMIT", 100)
        if self.MAX_WRITE_ATTEMPTS < 1:
            raise ValueError(f"{ENV_PREFIX}MAX_WRITE_ATTEMPTS must be at least 1.")
        if self.FREE_TIER_JAR_LIMIT < 0:
            raise ValueError(f"{ENV_PREFIX}FREE_TIER_JAR_LIMIT cannot be negative.")

    def _resolve_data_dir(self) -> Path:
        """Return the directory where the SQLite file and logs live."""

        data_root = _env("DATA_DIR", "instance")
        path = Path(data_root).expanduser().resolve()
        path.mkdir(parents=True, exist_ok=True)
        return path

    def _build_sqlite_url(self) -> str:
        db_path = self.DATA_DIR / self.DB_FILENAME
        return f"sqlite:///{db_path}"

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    def sqlalchemy_engine_options(self) -> dict[str, Any]:
        """Expose engine kwargs for SQLModel to consume."""

        engine_options: dict[str, Any] = {}
        if self.is_sqlite:
            # Writers wait on the file lock instead of failing straight away.
            engine_options["connect_args"] = {
                "check_same_thread": False,
                "timeout": self.SQLITE_TIMEOUT_SECONDS,
            }
        else:
            engine_options["pool_pre_ping"] = True
        return engine_options


class DevConfig(BaseConfig):
    """Development configuration using local SQLite."""

    DEBUG = True
    TESTING = False
