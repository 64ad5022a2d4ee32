"""Per-period obligation view used by budgeting screens."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlmodel import select

from .. import periods
from ..errors import ValidationError
from ..infra.database import SessionFactory
from ..models.biller import TIMINGS, Biller
from ..models.installment import Installment
from ..models.schedule import PaymentSchedule
from .schedules import (
    DEFAULT_INSTALLMENT_DUE_DAY,
    STATUS_OVERDUE,
    STATUS_PENDING,
    in_biller_lifetime,
    schedule_status,
    timing_for_day,
)

BILLER = "biller"
INSTALLMENT = "installment"


@dataclass(slots=True)
class ObligationLine:
    """One obligation as it stands in one period."""

    kind: str
    obligation_id: int
    name: str
    timing: str
    expected_amount: float
    due_date: date
    status: str
    schedule: Optional[PaymentSchedule] = None

    @property
    def amount_paid(self) -> float:
        if self.schedule is None or self.schedule.amount_paid is None:
            return 0.0
        return self.schedule.amount_paid

    @property
    def remaining(self) -> float:
        return max(0.0, round(self.expected_amount - self.amount_paid, 2))


def _line(
    *,
    kind: str,
    obligation_id: int,
    name: str,
    timing: Optional[str],
    due_day: int,
    period: str,
    expected_amount: float,
    schedule: Optional[PaymentSchedule],
    today: date,
) -> ObligationLine:
    due = periods.day_in_period(period, due_day)
    if schedule is not None:
        status = schedule_status(schedule, due_day=due_day, today=today)
        expected_amount = schedule.expected_amount
    else:
        status = STATUS_OVERDUE if today > due else STATUS_PENDING
    return ObligationLine(
        kind=kind,
        obligation_id=obligation_id,
        name=name,
        timing=timing or timing_for_day(due_day),
        expected_amount=expected_amount,
        due_date=due,
        status=status,
        schedule=schedule,
    )


def obligations_for_period(
    session_factory: SessionFactory,
    *,
    user_id: str,
    period: str,
    timing: Optional[str] = None,
    today: Optional[date] = None,
) -> list[ObligationLine]:
    """List what a user owes in *period*, optionally for one half of the month.

    Billers appear while they are live or when a row exists for the period.
    Schedule-driven installments appear for the periods of their term; the
    others appear every period at their monthly amount.
    """

    periods.parse_period(period)
    if timing is not None and timing not in TIMINGS:
        raise ValidationError(f"Invalid timing {timing!r}", entity="budget_view", key=timing)
    today = today or date.today()

    with session_factory() as session:
        rows = session.exec(
            select(PaymentSchedule).where(
                PaymentSchedule.user_id == user_id, PaymentSchedule.period == period
            )
        ).all()
        by_biller = {row.biller_id: row for row in rows if row.biller_id is not None}
        by_installment = {row.installment_id: row for row in rows if row.installment_id is not None}

        lines: list[ObligationLine] = []
        billers = session.exec(
            select(Biller).where(Biller.user_id == user_id).order_by(Biller.name)  # type: ignore
        ).all()
        for biller in billers:
            schedule = by_biller.get(biller.id)
            if schedule is None and not in_biller_lifetime(biller, period):
                continue
            lines.append(
                _line(
                    kind=BILLER,
                    obligation_id=biller.id,
                    name=biller.name,
                    timing=biller.timing,
                    due_day=biller.due_day,
                    period=period,
                    expected_amount=biller.expected_amount,
                    schedule=schedule,
                    today=today,
                )
            )

        installments = session.exec(
            select(Installment)
            .where(Installment.user_id == user_id)
            .order_by(Installment.name)  # type: ignore
        ).all()
        for installment in installments:
            schedule = by_installment.get(installment.id)
            if schedule is None and installment.is_schedule_driven:
                continue
            lines.append(
                _line(
                    kind=INSTALLMENT,
                    obligation_id=installment.id,
                    name=installment.name,
                    timing=installment.timing,
                    due_day=DEFAULT_INSTALLMENT_DUE_DAY,
                    period=period,
                    expected_amount=installment.monthly_amount,
                    schedule=schedule,
                    today=today,
                )
            )
        session.expunge_all()

    if timing is not None:
        lines = [line for line in lines if line.timing == timing]
    return lines
