"""SQLModel implementation of Transaction repository."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Session, select

from ...errors import NotFound
from ...periods import as_utc
from ...models.transaction import Transaction
from ..database import SessionFactory


def load_transaction(session: Session, transaction_id: int, *, user_id: str) -> Transaction:
    transaction = session.exec(
        select(Transaction)
        .where(Transaction.id == transaction_id)
        .where(Transaction.user_id == user_id)
    ).first()
    if transaction is None:
        raise NotFound(
            f"Transaction {transaction_id} not found", entity="transaction", key=transaction_id
        )
    return transaction


class SQLModelTransactionRepository:
    """SQLModel-based transaction repository implementation.

    Writes live in the reconciliation service so that balances and schedules
    move in the same unit of work.
    """

    def __init__(self, session_factory: SessionFactory):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    def get_by_id(self, transaction_id: int, *, user_id: str) -> Optional[Transaction]:
        """Retrieve a transaction by ID."""
        with self.session_factory() as session:
            obj = session.exec(
                select(Transaction)
                .where(Transaction.id == transaction_id)
                .where(Transaction.user_id == user_id)
            ).first()
            if obj:
                session.expunge(obj)
            return obj

    def list_all(self, *, user_id: str, limit: int = 100, offset: int = 0) -> list[Transaction]:
        """List all transactions with pagination."""
        with self.session_factory() as session:
            statement = (
                select(Transaction)
                .where(Transaction.user_id == user_id)
                .order_by(Transaction.occurred_at.desc(), Transaction.id.desc())  # type: ignore
                .offset(offset)
                .limit(limit)
            )
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def filter_by_date_range(
        self, start_date: datetime, end_date: datetime, *, user_id: str
    ) -> list[Transaction]:
        """Get transactions within a date range."""
        with self.session_factory() as session:
            statement = (
                select(Transaction)
                .where(Transaction.user_id == user_id)
                .where(Transaction.occurred_at >= as_utc(start_date))
                .where(Transaction.occurred_at <= as_utc(end_date))
                .order_by(Transaction.occurred_at.desc())  # type: ignore
            )
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def filter_by_account(self, account_id: int, *, user_id: str) -> list[Transaction]:
        """Get all transactions for a specific account."""
        with self.session_factory() as session:
            statement = (
                select(Transaction)
                .where(Transaction.user_id == user_id)
                .where(Transaction.account_id == account_id)
                .order_by(Transaction.occurred_at.desc())  # type: ignore
            )
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def get_by_schedule(self, schedule_id: int, *, user_id: str) -> Optional[Transaction]:
        """Return the transaction settling a schedule, if any."""
        with self.session_factory() as session:
            obj = session.exec(
                select(Transaction)
                .where(Transaction.user_id == user_id)
                .where(Transaction.payment_schedule_id == schedule_id)
            ).first()
            if obj:
                session.expunge(obj)
            return obj
