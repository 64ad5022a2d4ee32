"""BudgetBook payment obligation and schedule ledger."""

from __future__ import annotations

from .config import BaseConfig, DevConfig
from .context import LedgerContext, create_ledger_context

__all__ = ["BaseConfig", "DevConfig", "LedgerContext", "create_ledger_context"]
