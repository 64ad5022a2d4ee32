"""Credit-card billing cycles and the amounts owed for them.

A biller linked to a credit account owes, for period ``P``, whatever was
charged to the card during the cycle that closed in ``P-1``. The cycle runs
from the billing day of ``P-2`` to the day before the billing day of ``P-1``
(billing days past the end of a month are clamped to its last day).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from sqlmodel import Session, select

from .. import periods
from ..models.account import Account
from ..models.biller import Biller
from ..models.schedule import PaymentSchedule
from ..models.transaction import Transaction
from .balances import to_cents


@dataclass(slots=True, frozen=True)
class BillingCycle:
    """An inclusive date window on a credit account statement."""

    start: date
    end: date

    @property
    def label(self) -> str:
        return f"{self.start:%b} {self.start.day} - {self.end:%b} {self.end.day}, {self.end.year}"

    def contains(self, moment: date | datetime) -> bool:
        day = moment.date() if isinstance(moment, datetime) else moment
        return self.start <= day <= self.end


def cycle_starting_in(period: str, billing_day: int) -> BillingCycle:
    """Return the cycle that opens on the billing day of *period*."""

    start = periods.day_in_period(period, billing_day)
    next_start = periods.day_in_period(periods.add_months(period, 1), billing_day)
    return BillingCycle(start=start, end=next_start - timedelta(days=1))


def cycle_for_period(period: str, billing_day: int) -> BillingCycle:
    """Return the cycle whose statement is paid in *period*."""

    return cycle_starting_in(periods.add_months(period, -2), billing_day)


def recent_cycles(today: date, billing_day: int, count: int = 6) -> list[BillingCycle]:
    """Return the last *count* cycles, oldest first, ending with the one open today."""

    if count <= 0:
        return []
    current = periods.period_of(today)
    if today.day < min(billing_day, periods.month_days(current)):
        current = periods.add_months(current, -1)
    return [
        cycle_starting_in(periods.add_months(current, -offset), billing_day)
        for offset in range(count - 1, -1, -1)
    ]


def cycle_total(
    transactions: Iterable[Transaction],
    cycle: BillingCycle,
    *,
    excluded_ids: Iterable[int] = (),
) -> float:
    """Sum the charges (outflows) that landed inside *cycle*."""

    excluded = set(excluded_ids)
    total = sum(
        -tx.amount
        for tx in transactions
        if tx.amount < 0 and tx.id not in excluded and cycle.contains(tx.occurred_at)
    )
    return to_cents(total)


def linked_credit_account(session: Session, biller: Biller) -> Optional[Account]:
    """Return the biller's linked account when it can drive amounts."""

    if biller.linked_account_id is None:
        return None
    account = session.get(Account, biller.linked_account_id)
    if account is None or account.user_id != biller.user_id:
        return None
    if not account.is_credit or account.billing_day is None:
        return None
    return account


def linked_amounts(
    session: Session,
    biller: Biller,
    targets: Iterable[str],
    *,
    as_of: Optional[date] = None,
) -> dict[str, float]:
    """Compute per-period amounts for a biller from its linked credit account.

    Charges that settle installment schedules are excluded since those are
    tracked by their own obligations. With *as_of*, periods whose cycle has
    not opened yet are left out. Returns an empty mapping when the biller
    has no usable link.
    """

    target_periods = sorted(set(targets))
    account = linked_credit_account(session, biller)
    if account is None or not target_periods:
        return {}

    billing_day = account.billing_day
    cycles = {p: cycle_for_period(p, billing_day) for p in target_periods}
    if as_of is not None:
        cycles = {p: c for p, c in cycles.items() if c.start <= as_of}
    if not cycles:
        return {}
    window_start = min(c.start for c in cycles.values())
    window_end = max(c.end for c in cycles.values())

    lower, upper = periods.day_bounds(window_start, window_end)
    transactions = list(
        session.exec(
            select(Transaction)
            .where(Transaction.account_id == account.id)
            .where(Transaction.occurred_at >= lower)
            .where(Transaction.occurred_at <= upper)
        ).all()
    )
    schedule_ids = {tx.payment_schedule_id for tx in transactions if tx.payment_schedule_id}
    installment_schedule_ids: set[int] = set()
    if schedule_ids:
        installment_schedule_ids = set(
            session.exec(
                select(PaymentSchedule.id)
                .where(PaymentSchedule.id.in_(schedule_ids))  # type: ignore[union-attr]
                .where(PaymentSchedule.installment_id.is_not(None))  # type: ignore[union-attr]
            ).all()
        )
    excluded = [tx.id for tx in transactions if tx.payment_schedule_id in installment_schedule_ids]

    return {
        period: cycle_total(transactions, cycle, excluded_ids=excluded)
        for period, cycle in cycles.items()
    }
