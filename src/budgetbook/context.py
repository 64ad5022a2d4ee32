"""Ledger context for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy.engine import Engine

from .config import BaseConfig
from .domain.repositories import (
    AccountRepository,
    BillerRepository,
    InstallmentRepository,
    PaymentScheduleRepository,
    SavingsGoalRepository,
    TransactionRepository,
)
from .infra.database import SessionFactory, create_db_engine, create_session_factory, init_database
from .infra.notifications import ChangeFeed
from .infra.repositories import (
    SQLModelAccountRepository,
    SQLModelBillerRepository,
    SQLModelInstallmentRepository,
    SQLModelPaymentScheduleRepository,
    SQLModelSavingsGoalRepository,
    SQLModelTransactionRepository,
)
from .services.schedules import Window, visible_window


@dataclass
class LedgerContext:
    """Centralized ledger context with storage, change feed and repositories."""

    # Configuration
    config: BaseConfig

    # Storage
    engine: Engine
    session_factory: SessionFactory
    feed: ChangeFeed

    # Repositories
    account_repo: AccountRepository
    biller_repo: BillerRepository
    installment_repo: InstallmentRepository
    schedule_repo: PaymentScheduleRepository
    savings_repo: SavingsGoalRepository
    transaction_repo: TransactionRepository

    def window(self, today: Optional[date] = None) -> Window:
        """Biller generation window around *today* from the configured horizon."""

        return visible_window(
            today, back=self.config.HORIZON_BACK, ahead=self.config.HORIZON_AHEAD
        )

    def dispose(self) -> None:
        self.engine.dispose()


def create_ledger_context(
    config: Optional[BaseConfig] = None, *, engine: Optional[Engine] = None
) -> LedgerContext:
    """Create and initialize the ledger context."""

    if config is None:
        config = BaseConfig()

    # Create database engine
    if engine is None:
        engine = create_db_engine(config)

    # Initialize schema
    init_database(engine)

    feed = ChangeFeed()
    session_factory = create_session_factory(engine, feed)

    return LedgerContext(
        config=config,
        engine=engine,
        session_factory=session_factory,
        feed=feed,
        account_repo=SQLModelAccountRepository(session_factory),
        biller_repo=SQLModelBillerRepository(session_factory),
        installment_repo=SQLModelInstallmentRepository(session_factory),
        schedule_repo=SQLModelPaymentScheduleRepository(session_factory),
        savings_repo=SQLModelSavingsGoalRepository(session_factory),
        transaction_repo=SQLModelTransactionRepository(session_factory),
    )
