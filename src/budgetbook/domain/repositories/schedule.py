"""Payment schedule repository protocol."""

from __future__ import annotations

from typing import Optional, Protocol

from ...models.schedule import PaymentSchedule


class PaymentScheduleRepository(Protocol):
    """Reads and non-settlement edits of schedule rows.

    Rows are created by schedule generation and their settlement fields are
    only written by reconciliation.
    """

    def get_by_id(self, schedule_id: int, *, user_id: str) -> Optional[PaymentSchedule]:
        """Retrieve a schedule by ID."""
        ...

    def list_all(self, *, user_id: str) -> list[PaymentSchedule]:
        """List every schedule owned by the user ordered by period."""
        ...

    def list_by_obligation(
        self,
        *,
        user_id: str,
        biller_id: Optional[int] = None,
        installment_id: Optional[int] = None,
    ) -> list[PaymentSchedule]:
        """List the schedules of one biller or installment ordered by period."""
        ...

    def list_by_period(self, period: str, *, user_id: str) -> list[PaymentSchedule]:
        """List all schedules for a period."""
        ...

    def update(self, schedule: PaymentSchedule, *, user_id: str) -> PaymentSchedule:
        """Update expected amount, timing or receipt."""
        ...

    def delete(self, schedule_id: int, *, user_id: str) -> None:
        """Delete an unsettled schedule."""
        ...
