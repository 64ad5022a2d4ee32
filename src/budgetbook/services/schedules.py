"""Schedule generation and payment status.

Installments get their whole schedule at once. Billers are open-ended and
are only materialized for the visible horizon around the current month.
Every insert is ``ON CONFLICT DO NOTHING`` on ``(parent, period)`` so that
generation can be re-run as a repair step without creating duplicates.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Mapping, Optional, Sequence

from sqlalchemy import insert
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from .. import periods
from ..errors import ValidationError, translate_integrity_error
from ..infra.database import SessionFactory
from ..infra.repositories.biller import load_biller
from ..infra.repositories.installment import load_installment
from ..infra.repositories.schedule import obligation_filter
from ..logging_config import get_logger
from ..models.biller import TIMINGS, Biller
from ..models.installment import Installment
from ..models.schedule import PaymentSchedule
from . import billing_cycles
from .balances import to_cents

logger = get_logger(__name__)

STATUS_PENDING = "pending"
STATUS_OVERDUE = "overdue"
STATUS_PARTIAL = "partial"
STATUS_PAID = "paid"

DEFAULT_INSTALLMENT_DUE_DAY = 15
DEFAULT_HORIZON_BACK = 1
DEFAULT_HORIZON_AHEAD = 11

Window = tuple[str, str]


@dataclass(slots=True)
class GenerationResult:
    """Periods touched by one generation run."""

    inserted: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)

    def merge(self, other: "GenerationResult") -> "GenerationResult":
        self.inserted.extend(other.inserted)
        self.skipped.extend(other.skipped)
        self.updated.extend(other.updated)
        self.removed.extend(other.removed)
        return self

    @property
    def counts(self) -> dict[str, int]:
        return {
            "inserted": len(self.inserted),
            "skipped": len(self.skipped),
            "updated": len(self.updated),
            "removed": len(self.removed),
        }


def visible_window(
    today: Optional[date] = None,
    *,
    back: int = DEFAULT_HORIZON_BACK,
    ahead: int = DEFAULT_HORIZON_AHEAD,
) -> Window:
    """Return the ``(first, last)`` periods biller schedules are kept for."""

    return periods.horizon(today or date.today(), back=back, ahead=ahead)


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


def installment_periods(installment: Installment) -> list[str]:
    """Periods an installment owes, in order; empty for always-visible plans."""

    if not installment.is_schedule_driven:
        return []
    start = periods.period_of(installment.start_date)
    return [periods.add_months(start, offset) for offset in range(installment.term_months)]


def in_biller_lifetime(biller: Biller, period: str) -> bool:
    if periods.months_between(biller.activation_period, period) < 0:
        return False
    if biller.deactivation_period is None:
        return biller.is_active
    return periods.months_between(period, biller.deactivation_period) >= 0


def biller_periods(biller: Biller, window: Window) -> list[str]:
    """Periods inside *window* during which the biller is live.

    The deactivation period itself is still owed. An inactive biller with
    no deactivation period generates nothing.
    """

    if not biller.is_active and biller.deactivation_period is None:
        return []
    window_start, window_end = window
    first = max(biller.activation_period, window_start, key=periods.ordinal)
    last = window_end
    if biller.deactivation_period is not None:
        last = min(biller.deactivation_period, window_end, key=periods.ordinal)
    if periods.months_between(first, last) < 0:
        return []
    return list(periods.iter_periods(first, last))


def _schedule_row(
    *,
    user_id: str,
    period: str,
    expected_amount: float,
    timing: Optional[str],
    biller_id: Optional[int] = None,
    installment_id: Optional[int] = None,
) -> dict[str, Any]:
    # Column defaults live on the model, so core inserts must carry timestamps.
    now = datetime.now(timezone.utc)
    return {
        "user_id": user_id,
        "biller_id": biller_id,
        "installment_id": installment_id,
        "period": period,
        "expected_amount": to_cents(expected_amount),
        "timing": timing,
        "created_at": now,
        "updated_at": now,
    }


def plan_installment_rows(installment: Installment) -> list[dict[str, Any]]:
    return [
        _schedule_row(
            user_id=installment.user_id,
            installment_id=installment.id,
            period=period,
            expected_amount=installment.monthly_amount,
            timing=installment.timing,
        )
        for period in installment_periods(installment)
    ]


def plan_biller_rows(
    biller: Biller,
    target_periods: Sequence[str],
    *,
    amount_overrides: Optional[Mapping[str, float]] = None,
) -> list[dict[str, Any]]:
    """Rows for *target_periods*, using an override amount where one is supplied."""

    overrides = amount_overrides or {}
    return [
        _schedule_row(
            user_id=biller.user_id,
            biller_id=biller.id,
            period=period,
            expected_amount=overrides.get(period, biller.expected_amount),
            timing=biller.timing,
        )
        for period in target_periods
    ]


# ---------------------------------------------------------------------------
# Idempotent insert
# ---------------------------------------------------------------------------


def validate_schedule_row(row: Mapping[str, Any]) -> None:
    """Reject a row with ambiguous parent linkage or a malformed period."""

    has_biller = row.get("biller_id") is not None
    has_installment = row.get("installment_id") is not None
    if has_biller == has_installment:
        raise ValidationError(
            "Schedule must reference exactly one of biller_id or installment_id",
            entity="payment_schedule",
            key=(row.get("biller_id"), row.get("installment_id"), row.get("period")),
        )
    periods.parse_period(row.get("period"))
    amount = row.get("expected_amount")
    if amount is None or amount < 0:
        raise ValidationError(
            "Expected amount cannot be negative",
            entity="payment_schedule",
            key=row.get("period"),
        )


def _insert_ignoring_conflict(session: Session, row: dict[str, Any], conflict_columns: list[str]) -> bool:
    """Insert *row* unless ``(parent, period)`` exists; return True when inserted."""

    table = PaymentSchedule.__table__
    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        statement = sqlite.insert(table).values(**row).on_conflict_do_nothing(
            index_elements=conflict_columns
        )
    elif dialect == "postgresql":
        statement = postgresql.insert(table).values(**row).on_conflict_do_nothing(
            index_elements=conflict_columns
        )
    else:
        return _insert_in_savepoint(session, table, row, conflict_columns)
    return session.execute(statement).rowcount == 1


def _insert_in_savepoint(session: Session, table, row: dict[str, Any], conflict_columns: list[str]) -> bool:
    try:
        with session.begin_nested():
            session.execute(insert(table).values(**row))
    except IntegrityError as exc:
        clauses = [getattr(PaymentSchedule, column) == row[column] for column in conflict_columns]
        if session.exec(select(PaymentSchedule.id).where(*clauses)).first() is None:
            raise translate_integrity_error(
                exc, entity="payment_schedule", key=row.get("period")
            ) from exc
        return False
    return True


def upsert_schedules(session: Session, rows: Sequence[Mapping[str, Any]]) -> GenerationResult:
    """Insert schedule rows, treating an existing ``(parent, period)`` as a skip.

    The whole batch is validated before the first insert.
    """

    for row in rows:
        validate_schedule_row(row)

    result = GenerationResult()
    for row in rows:
        parent_column = "biller_id" if row.get("biller_id") is not None else "installment_id"
        period = row["period"]
        if _insert_ignoring_conflict(session, dict(row), [parent_column, "period"]):
            result.inserted.append(period)
        else:
            result.skipped.append(period)
            logger.debug(
                "Schedule already exists, skipped",
                extra={parent_column: row[parent_column], "period": period},
            )
    return result


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


def generate_for_installment(session: Session, installment: Installment) -> GenerationResult:
    """Create every missing row of an installment's term."""

    result = upsert_schedules(session, plan_installment_rows(installment))
    logger.info(
        "Installment schedules generated",
        extra={"installment_id": installment.id, **result.counts},
    )
    return result


def biller_amounts(
    session: Session,
    biller: Biller,
    target_periods: Sequence[str],
    amount_overrides: Optional[Mapping[str, float]] = None,
    *,
    today: Optional[date] = None,
) -> dict[str, float]:
    """Explicit overrides win; otherwise a linked credit account supplies them."""

    if amount_overrides is not None:
        return dict(amount_overrides)
    return billing_cycles.linked_amounts(
        session, biller, target_periods, as_of=today or date.today()
    )


def generate_for_biller(
    session: Session,
    biller: Biller,
    *,
    window: Optional[Window] = None,
    amount_overrides: Optional[Mapping[str, float]] = None,
    today: Optional[date] = None,
) -> GenerationResult:
    """Create the biller's missing rows inside *window*."""

    target = biller_periods(biller, window or visible_window(today))
    overrides = biller_amounts(session, biller, target, amount_overrides, today=today)
    result = upsert_schedules(session, plan_biller_rows(biller, target, amount_overrides=overrides))
    logger.info("Biller schedules generated", extra={"biller_id": biller.id, **result.counts})
    return result


def generate_schedules(
    session_factory: SessionFactory,
    *,
    user_id: str,
    biller_id: Optional[int] = None,
    installment_id: Optional[int] = None,
    window: Optional[Window] = None,
    amount_overrides: Optional[Mapping[str, float]] = None,
) -> GenerationResult:
    """Generate schedules for exactly one obligation."""

    obligation_filter(biller_id=biller_id, installment_id=installment_id)
    with session_factory() as session:
        if installment_id is not None:
            installment = load_installment(session, installment_id, user_id=user_id)
            return generate_for_installment(session, installment)
        biller = load_biller(session, biller_id, user_id=user_id)
        return generate_for_biller(
            session, biller, window=window, amount_overrides=amount_overrides
        )


def _existing_rows(session: Session, clause) -> list[PaymentSchedule]:
    return list(session.exec(select(PaymentSchedule).where(clause)).all())


def _refresh_unpaid(
    session: Session,
    existing: Sequence[PaymentSchedule],
    planned: Mapping[str, Mapping[str, Any]],
    result: GenerationResult,
    *,
    keep=lambda schedule: False,
) -> None:
    """Align unpaid rows with *planned*; settled rows are history and stay as they are."""

    for schedule in existing:
        if schedule.is_paid:
            continue
        row = planned.get(schedule.period)
        if row is None:
            if keep(schedule):
                continue
            session.delete(schedule)
            result.removed.append(schedule.period)
            continue
        if schedule.expected_amount != row["expected_amount"] or schedule.timing != row["timing"]:
            schedule.expected_amount = row["expected_amount"]
            schedule.timing = row["timing"]
            session.add(schedule)
            result.updated.append(schedule.period)
    session.flush()


def regenerate_for_installment(session: Session, installment: Installment) -> GenerationResult:
    """Bring an edited installment's unpaid rows in line with its terms.

    Raises ``ValidationError`` when a settled row would fall outside the
    edited plan.
    """

    planned_rows = plan_installment_rows(installment)
    planned = {row["period"]: row for row in planned_rows}
    result = GenerationResult()
    existing = _existing_rows(session, PaymentSchedule.installment_id == installment.id)
    orphaned = sorted(s.period for s in existing if s.is_paid and s.period not in planned)
    if orphaned:
        raise ValidationError(
            f"Settled periods {', '.join(orphaned)} fall outside the edited plan",
            entity="installment",
            key=installment.id,
        )
    _refresh_unpaid(session, existing, planned, result)
    result.merge(upsert_schedules(session, planned_rows))
    logger.info(
        "Installment schedules regenerated",
        extra={"installment_id": installment.id, **result.counts},
    )
    return result


def regenerate_for_biller(
    session: Session,
    biller: Biller,
    *,
    window: Optional[Window] = None,
    today: Optional[date] = None,
) -> GenerationResult:
    """Bring an edited biller's unpaid rows in line with it.

    Rows outside *window* but inside the biller's lifetime are kept as-is.
    """

    target = biller_periods(biller, window or visible_window(today))
    overrides = biller_amounts(session, biller, target, today=today)
    planned_rows = plan_biller_rows(biller, target, amount_overrides=overrides)
    planned = {row["period"]: row for row in planned_rows}
    result = GenerationResult()
    existing = _existing_rows(session, PaymentSchedule.biller_id == biller.id)
    _refresh_unpaid(
        session,
        existing,
        planned,
        result,
        keep=lambda schedule: in_biller_lifetime(biller, schedule.period),
    )
    result.merge(upsert_schedules(session, planned_rows))
    logger.info("Biller schedules regenerated", extra={"biller_id": biller.id, **result.counts})
    return result


def sync_linked_biller(
    session_factory: SessionFactory,
    biller_id: int,
    *,
    user_id: str,
    today: Optional[date] = None,
) -> list[str]:
    """Refresh unpaid rows of a linked biller from its card's billing cycles.

    Returns the periods whose expected amount changed.
    """

    with session_factory() as session:
        biller = load_biller(session, biller_id, user_id=user_id)
        unpaid = [
            schedule
            for schedule in _existing_rows(session, PaymentSchedule.biller_id == biller.id)
            if not schedule.is_paid
        ]
        amounts = billing_cycles.linked_amounts(
            session, biller, [schedule.period for schedule in unpaid], as_of=today or date.today()
        )
        changed: list[str] = []
        for schedule in unpaid:
            amount = amounts.get(schedule.period)
            if amount is None or amount == schedule.expected_amount:
                continue
            schedule.expected_amount = amount
            session.add(schedule)
            changed.append(schedule.period)
        if changed:
            logger.info(
                "Linked biller amounts refreshed",
                extra={"biller_id": biller_id, "periods": changed},
            )
        return changed


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


def timing_for_day(day: int) -> str:
    """Half-month bucket for a due day: days 1-21 fall in the first half."""

    return TIMINGS[0] if 1 <= day <= 21 else TIMINGS[1]


def due_date(schedule: PaymentSchedule, due_day: int = DEFAULT_INSTALLMENT_DUE_DAY) -> date:
    return periods.day_in_period(schedule.period, due_day)


def schedule_status(
    schedule: PaymentSchedule,
    *,
    due_day: int = DEFAULT_INSTALLMENT_DUE_DAY,
    today: Optional[date] = None,
) -> str:
    """Classify a row as pending, overdue, partial or paid."""

    if schedule.is_paid:
        if schedule.amount_paid + 0.005 >= schedule.expected_amount:
            return STATUS_PAID
        return STATUS_PARTIAL
    if (today or date.today()) > due_date(schedule, due_day):
        return STATUS_OVERDUE
    return STATUS_PENDING
