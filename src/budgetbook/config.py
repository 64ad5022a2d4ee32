"""Application configuration objects and helpers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    """Interpret environment variable values as booleans."""

    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    """Interpret environment variable values as non-negative integers."""

    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        parsed = int(value.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {value!r}") from exc
    if parsed < 0:
        raise ValueError(f"{name} must not be negative, got {parsed}")
    return parsed


class BaseConfig:
    """Base configuration shared across environments."""

    APP_NAME = "BudgetBook"
    DB_FILENAME = "budgetbook.db"
    ENV_PREFIX = "BUDGETBOOK_"

    def __init__(self) -> None:
        self.DATA_DIR = self._resolve_data_dir()
        self.DEV_MODE = _env_bool("BUDGETBOOK_DEV_MODE", default=True)
        self.DATABASE_URL = os.getenv("BUDGETBOOK_DATABASE_URL", self._build_sqlite_url())
        # Biller schedules are generated lazily for this window around the current month.
        self.HORIZON_BACK = _env_int("BUDGETBOOK_HORIZON_BACK", 1)
        self.HORIZON_AHEAD = _env_int("BUDGETBOOK_HORIZON_AHEAD", 11)

    def _resolve_data_dir(self) -> Path:
        """Return the directory where the SQLite file and logs live."""

        data_root = os.getenv("BUDGETBOOK_DATA_DIR", "instance")
        path = Path(data_root).expanduser().resolve()
        path.mkdir(parents=True, exist_ok=True)
        return path

    def _build_sqlite_url(self) -> str:
        """Construct the default SQLite URL inside the data directory."""

        db_path = self.DATA_DIR / self.DB_FILENAME
        return f"sqlite:///{db_path}"

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    def sqlalchemy_engine_options(self) -> dict[str, Any]:
        """Expose engine kwargs for SQLModel to consume."""

        engine_options: dict[str, Any] = {}
        if self.is_sqlite:
            engine_options["connect_args"] = {"check_same_thread": False}
        else:
            engine_options["pool_pre_ping"] = True
        return engine_options


class DevConfig(BaseConfig):
    """Development configuration using local SQLite."""

    DEBUG = True
    TESTING = False
