"""Ledger error taxonomy."""

from __future__ import annotations

from typing import Any

from sqlalchemy.exc import IntegrityError

# Column whose uniqueness guarantees a schedule is settled at most once.
SETTLEMENT_COLUMN = "payment_schedule_id"
SETTLEMENT_CONSTRAINT = "uq_transaction_payment_schedule"


class LedgerError(Exception):
    """Base exception for all ledger errors."""

    def __init__(self, message: str, *, entity: str | None = None, key: Any = None) -> None:
        super().__init__(message)
        self.entity = entity
        self.key = key


class ValidationError(LedgerError):
    """Malformed or missing input, rejected before any write."""


class DuplicatePayment(LedgerError):
    """The schedule already has a settling transaction."""


class NotFound(LedgerError):
    """A referenced obligation, account, schedule or transaction does not exist."""


class ConstraintViolation(LedgerError):
    """Any other uniqueness or foreign-key violation raised by storage."""


def translate_integrity_error(exc: IntegrityError, *, entity: str, key: Any = None) -> LedgerError:
    """Map a storage constraint failure onto the ledger taxonomy."""

    detail = str(getattr(exc, "orig", None) or exc)
    if SETTLEMENT_CONSTRAINT in detail or f"transaction.{SETTLEMENT_COLUMN}" in detail:
        return DuplicatePayment(
            f"Payment schedule {key} is already settled by another transaction",
            entity="payment_schedule",
            key=key,
        )
    return ConstraintViolation(f"{entity} {key!r} violates a storage constraint: {detail}", entity=entity, key=key)
