"""Service module exports."""

from . import (
    backfill,
    balances,
    billing_cycles,
    budgeting,
    obligations,
    reconciliation,
    schedules,
)

__all__ = [
    "backfill",
    "balances",
    "billing_cycles",
    "budgeting",
    "obligations",
    "reconciliation",
    "schedules",
]
