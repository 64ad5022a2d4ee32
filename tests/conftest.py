"""Pytest configuration and shared fixtures for BudgetBook tests.

Every test gets its own SQLite file with foreign-key enforcement turned on,
so cascades and ``SET NULL`` rules behave the way they do in production.
"""

from __future__ import annotations

import tempfile
from datetime import date
from pathlib import Path

import pytest
from sqlmodel import SQLModel, create_engine

from budgetbook.infra.database import create_session_factory, enable_sqlite_foreign_keys
from budgetbook.infra.notifications import ChangeFeed
from budgetbook.infra.repositories import SQLModelAccountRepository

# Import all models to ensure they're registered with SQLModel metadata
from budgetbook.models import Account, Biller, Installment, PaymentSchedule, SavingsGoal, Transaction  # noqa: F401

USER_ID = "user-1"
OTHER_USER_ID = "user-2"


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture(scope="function")
def db_engine():
    """Create an isolated SQLite database file for each test.

    Yields:
        Engine: engine with foreign keys enforced and all tables created
    """
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    engine = enable_sqlite_foreign_keys(create_engine(f"sqlite:///{db_path}", echo=False))
    SQLModel.metadata.create_all(engine)

    yield engine

    engine.dispose()
    db_path.unlink(missing_ok=True)


@pytest.fixture
def feed() -> ChangeFeed:
    return ChangeFeed()


@pytest.fixture(scope="function")
def session_factory(db_engine, feed):
    """Transactional session factory wired to the change feed."""

    return create_session_factory(db_engine, feed)


@pytest.fixture
def user_id() -> str:
    return USER_ID


@pytest.fixture
def other_user_id() -> str:
    return OTHER_USER_ID


# =============================================================================
# Test Data Factories
# =============================================================================


def _persist(session_factory, row):
    """Insert an obligation row as it stood before any schedules were generated."""
    with session_factory() as session:
        session.add(row)
        session.commit()
        session.refresh(row)
        session.expunge(row)
    return row


@pytest.fixture
def account_factory(session_factory):
    """Factory for creating test accounts.

    Returns:
        Callable: Function that creates and persists Account instances
    """

    repo = SQLModelAccountRepository(session_factory)

    def _create_account(
        bank: str = "Test Bank",
        *,
        account_type: str = "debit",
        classification: str | None = None,
        balance: float = 0.0,
        credit_limit: float | None = None,
        billing_date: date | None = None,
        owner: str = USER_ID,
    ) -> Account:
        if classification is None:
            classification = "credit" if account_type == "credit" else "checking"
        account = Account(
            bank=bank,
            account_type=account_type,
            classification=classification,
            balance=balance,
            credit_limit=credit_limit,
            billing_date=billing_date,
        )
        return repo.create(account, user_id=owner)

    return _create_account


@pytest.fixture
def biller_factory(session_factory):
    """Factory for creating billers without generating schedules."""

    def _create_biller(
        name: str = "Electric",
        *,
        expected_amount: float = 80.0,
        due_day: int = 10,
        timing: str = "1/2",
        activation_period: str = "2026-01",
        deactivation_period: str | None = None,
        status: str = "active",
        linked_account_id: int | None = None,
        category: str = "Utilities",
        owner: str = USER_ID,
    ) -> Biller:
        biller = Biller(
            user_id=owner,
            name=name,
            category=category,
            expected_amount=expected_amount,
            due_day=due_day,
            timing=timing,
            activation_period=activation_period,
            deactivation_period=deactivation_period,
            status=status,
            linked_account_id=linked_account_id,
        )
        return _persist(session_factory, biller)

    return _create_biller


@pytest.fixture
def installment_factory(session_factory):
    """Factory for creating installments without generating schedules."""

    def _create_installment(
        name: str = "Laptop",
        *,
        monthly_amount: float = 100.0,
        term_months: int = 3,
        start_date: date | None = date(2026, 1, 1),
        total_amount: float | None = None,
        timing: str | None = None,
        account_id: int | None = None,
        owner: str = USER_ID,
    ) -> Installment:
        installment = Installment(
            user_id=owner,
            name=name,
            monthly_amount=monthly_amount,
            term_months=term_months,
            start_date=start_date,
            total_amount=total_amount if total_amount is not None else max(monthly_amount * term_months, 0.0),
            timing=timing,
            account_id=account_id,
        )
        return _persist(session_factory, installment)

    return _create_installment
