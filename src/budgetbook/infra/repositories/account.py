"""SQLModel implementation of Account repository."""

from __future__ import annotations

from typing import Optional

from sqlmodel import Session, select

from ...errors import NotFound, ValidationError
from ...models.account import ACCOUNT_CLASSIFICATIONS, ACCOUNT_TYPES, Account
from ..database import SessionFactory

# Balance is materialized and only moves with transactions.
_IMMUTABLE_FIELDS = {"id", "user_id", "balance", "created_at"}


def _validate(account: Account) -> None:
    if not (account.bank or "").strip():
        raise ValidationError("Account bank name is required", entity="account", key=account.id)
    if account.classification not in ACCOUNT_CLASSIFICATIONS:
        raise ValidationError(
            f"Unknown account classification {account.classification!r}",
            entity="account",
            key=account.id,
        )
    if account.account_type not in ACCOUNT_TYPES:
        raise ValidationError(
            f"Account type must be debit or credit, got {account.account_type!r}",
            entity="account",
            key=account.id,
        )
    if account.credit_limit is not None and account.credit_limit < 0:
        raise ValidationError("Credit limit cannot be negative", entity="account", key=account.id)


def load_account(session: Session, account_id: int, *, user_id: str) -> Account:
    """Fetch an owned account inside an open session or raise NotFound."""

    account = session.exec(
        select(Account).where(Account.id == account_id, Account.user_id == user_id)
    ).first()
    if account is None:
        raise NotFound(f"Account {account_id} not found", entity="account", key=account_id)
    return account


class SQLModelAccountRepository:
    """SQLModel-based account repository implementation."""

    def __init__(self, session_factory: SessionFactory):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    def get_by_id(self, account_id: int, *, user_id: str) -> Optional[Account]:
        """Retrieve an account by ID."""
        with self.session_factory() as session:
            obj = session.exec(
                select(Account).where(Account.id == account_id, Account.user_id == user_id)
            ).first()
            if obj:
                session.expunge(obj)
            return obj

    def list_all(self, *, user_id: str) -> list[Account]:
        """List all accounts."""
        with self.session_factory() as session:
            statement = (
                select(Account)
                .where(Account.user_id == user_id)
                .order_by(Account.bank, Account.id)  # type: ignore
            )
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def create(self, account: Account, *, user_id: str) -> Account:
        """Create a new account."""
        _validate(account)
        with self.session_factory() as session:
            account.user_id = user_id
            session.add(account)
            session.commit()
            session.refresh(account)
            session.expunge(account)
            return account

    def update(self, account: Account, *, user_id: str) -> Account:
        """Update an existing account."""
        _validate(account)
        with self.session_factory() as session:
            existing = load_account(session, account.id, user_id=user_id)
            existing.sqlmodel_update(account.model_dump(exclude=_IMMUTABLE_FIELDS))
            session.add(existing)
            session.commit()
            session.refresh(existing)
            session.expunge(existing)
            return existing

    def delete(self, account_id: int, *, user_id: str) -> None:
        """Delete an account by ID."""
        with self.session_factory() as session:
            account = session.exec(
                select(Account).where(Account.id == account_id, Account.user_id == user_id)
            ).first()
            if account:
                session.delete(account)
                session.commit()
