"""Environment-driven configuration."""

from __future__ import annotations

import pytest

from jarledger.config import BaseConfig
from jarledger.context import create_app_context


def test_defaults_use_sqlite_in_data_dir(config, tmp_path):
    assert config.DATA_DIR == tmp_path.resolve()
    assert config.DATABASE_URL == f"sqlite:///{tmp_path.resolve() / 'jarledger.db'}"
    assert config.is_sqlite
    assert config.FREE_TIER_JAR_LIMIT == 3
    assert config.MAX_WRITE_ATTEMPTS == 3
    assert config.HISTORY_LIMIT == 50
    assert config.ACTIVITY_LIMIT == 100

    options = config.sqlalchemy_engine_options()
    assert options["connect_args"]["check_same_thread"] is False
    assert options["connect_args"]["timeout"] == BaseConfig.SQLITE_TIMEOUT_SECONDS


def test_environment_overrides(config, monkeypatch):
    monkeypatch.setenv("JARLEDGER_DATABASE_URL", "postgresql://ledger@localhost/jars")
    monkeypatch.setenv("JARLEDGER_FREE_TIER_JAR_LIMIT", "5")
    monkeypatch.setenv("JARLEDGER_MAX_WRITE_ATTEMPTS", "7")
    monkeypatch.setenv("JARLEDGER_DEV_MODE", "off")

    cfg = BaseConfig()

    assert cfg.DATABASE_URL == "postgresql://ledger@localhost/jars"
    assert not cfg.is_sqlite
    assert cfg.sqlalchemy_engine_options() == {"pool_pre_ping": True}
    assert cfg.FREE_TIER_JAR_LIMIT == 5
    assert cfg.MAX_WRITE_ATTEMPTS == 7
    assert cfg.DEV_MODE is False


@pytest.mark.parametrize(
    "name, value",
    [
        ("JARLEDGER_MAX_WRITE_ATTEMPTS", "0"),
        ("JARLEDGER_MAX_WRITE_ATTEMPTS", "many"),
        ("JARLEDGER_FREE_TIER_JAR_LIMIT", "-1"),
        ("JARLEDGER_RETRY_BACKOFF_SECONDS", "soon"),
    ],
)
def test_invalid_values_are_rejected(config, monkeypatch, name, value):
    monkeypatch.setenv(name, value)

    with pytest.raises(ValueError):
        BaseConfig()


def test_ledger_picks_up_config(config, monkeypatch):
    monkeypatch.setenv("JARLEDGER_FREE_TIER_JAR_LIMIT", "1")
    monkeypatch.setenv("JARLEDGER_MAX_WRITE_ATTEMPTS", "4")

    app = create_app_context(BaseConfig())
    try:
        assert app.ledger.free_tier_limit == 1
        assert app.ledger.max_attempts == 4
        assert app.engine is not None
    finally:
        app.dispose()


def test_in_memory_context(config):
    app = create_app_context(config, in_memory=True)

    assert app.engine is None
    assert app.store is app.user_repo
