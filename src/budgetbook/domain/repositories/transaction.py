"""Transaction repository protocol."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from ...models.transaction import Transaction


class TransactionRepository(Protocol):
    """Read access to transactions; writes go through reconciliation."""

    def get_by_id(self, transaction_id: int, *, user_id: str) -> Optional[Transaction]:
        """Retrieve a transaction by ID."""
        ...

    def list_all(self, *, user_id: str, limit: int = 100, offset: int = 0) -> list[Transaction]:
        """List all transactions with pagination."""
        ...

    def filter_by_date_range(
        self, start_date: datetime, end_date: datetime, *, user_id: str
    ) -> list[Transaction]:
        """Get transactions within a date range."""
        ...

    def filter_by_account(self, account_id: int, *, user_id: str) -> list[Transaction]:
        """Get all transactions for a specific account."""
        ...

    def get_by_schedule(self, schedule_id: int, *, user_id: str) -> Optional[Transaction]:
        """Return the transaction settling a schedule, if any."""
        ...
