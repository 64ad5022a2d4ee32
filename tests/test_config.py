"""Tests for environment-driven configuration."""

from __future__ import annotations

import pytest

from budgetbook.config import BaseConfig, DevConfig


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in (
        "BUDGETBOOK_DATABASE_URL",
        "BUDGETBOOK_DEV_MODE",
        "BUDGETBOOK_HORIZON_BACK",
        "BUDGETBOOK_HORIZON_AHEAD",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("BUDGETBOOK_DATA_DIR", str(tmp_path / "data"))
    return tmp_path / "data"


def test_defaults(clean_env):
    config = BaseConfig()

    assert config.DATA_DIR == clean_env.resolve()
    assert config.DATA_DIR.is_dir()
    assert config.DATABASE_URL == f"sqlite:///{clean_env.resolve() / 'budgetbook.db'}"
    assert config.DEV_MODE is True
    assert (config.HORIZON_BACK, config.HORIZON_AHEAD) == (1, 11)
    assert config.sqlalchemy_engine_options() == {"connect_args": {"check_same_thread": False}}


def test_environment_overrides(clean_env, monkeypatch):
    monkeypatch.setenv("BUDGETBOOK_DATABASE_URL", "postgresql+psycopg://ledger@localhost/ledger")
    monkeypatch.setenv("BUDGETBOOK_DEV_MODE", "off")
    monkeypatch.setenv("BUDGETBOOK_HORIZON_BACK", "3")
    monkeypatch.setenv("BUDGETBOOK_HORIZON_AHEAD", " 6 ")

    config = BaseConfig()

    assert not config.is_sqlite
    assert config.DEV_MODE is False
    assert (config.HORIZON_BACK, config.HORIZON_AHEAD) == (3, 6)
    assert config.sqlalchemy_engine_options() == {"pool_pre_ping": True}


@pytest.mark.parametrize("value", ["soon", "-1"])
def test_bad_horizon_is_rejected(clean_env, monkeypatch, value):
    monkeypatch.setenv("BUDGETBOOK_HORIZON_AHEAD", value)
    with pytest.raises(ValueError, match="BUDGETBOOK_HORIZON_AHEAD"):
        BaseConfig()


def test_dev_config(clean_env):
    config = DevConfig()
    assert config.DEBUG is True
    assert config.TESTING is False
