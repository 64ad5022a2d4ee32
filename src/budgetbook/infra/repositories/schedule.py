"""SQLModel implementation of PaymentSchedule repository."""

from __future__ import annotations

from typing import Optional

from sqlmodel import Session, select

from ...errors import NotFound, ValidationError
from ...models.schedule import PaymentSchedule
from ..database import SessionFactory


def load_schedule(session: Session, schedule_id: int, *, user_id: str) -> PaymentSchedule:
    schedule = session.exec(
        select(PaymentSchedule).where(
            PaymentSchedule.id == schedule_id, PaymentSchedule.user_id == user_id
        )
    ).first()
    if schedule is None:
        raise NotFound(
            f"Payment schedule {schedule_id} not found", entity="payment_schedule", key=schedule_id
        )
    return schedule


def reject_schedule_edits(existing, edited, fields, *, entity: str) -> None:
    """Raise when *edited* changes any of *fields* on the stored obligation."""

    changed = [name for name in fields if getattr(edited, name) != getattr(existing, name)]
    if changed:
        raise ValidationError(
            f"Changing {', '.join(changed)} reshapes the schedule; use update_{entity}",
            entity=entity,
            key=existing.id,
        )


def obligation_filter(*, biller_id: Optional[int], installment_id: Optional[int]):
    """Return the WHERE clause selecting one obligation's rows."""

    if (biller_id is None) == (installment_id is None):
        raise ValidationError(
            "Exactly one of biller_id or installment_id must be given",
            entity="payment_schedule",
            key=(biller_id, installment_id),
        )
    if biller_id is not None:
        return PaymentSchedule.biller_id == biller_id
    return PaymentSchedule.installment_id == installment_id


class SQLModelPaymentScheduleRepository:
    """SQLModel-based payment schedule repository implementation."""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def get_by_id(self, schedule_id: int, *, user_id: str) -> Optional[PaymentSchedule]:
        with self.session_factory() as session:
            obj = session.exec(
                select(PaymentSchedule).where(
                    PaymentSchedule.id == schedule_id, PaymentSchedule.user_id == user_id
                )
            ).first()
            if obj:
                session.expunge(obj)
            return obj

    def list_all(self, *, user_id: str) -> list[PaymentSchedule]:
        with self.session_factory() as session:
            statement = (
                select(PaymentSchedule)
                .where(PaymentSchedule.user_id == user_id)
                .order_by(PaymentSchedule.period, PaymentSchedule.id)  # type: ignore
            )
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def list_by_obligation(
        self,
        *,
        user_id: str,
        biller_id: Optional[int] = None,
        installment_id: Optional[int] = None,
    ) -> list[PaymentSchedule]:
        """List one obligation's schedules in period order."""
        clause = obligation_filter(biller_id=biller_id, installment_id=installment_id)
        with self.session_factory() as session:
            statement = (
                select(PaymentSchedule)
                .where(PaymentSchedule.user_id == user_id)
                .where(clause)
                .order_by(PaymentSchedule.period)  # type: ignore
            )
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def list_by_period(self, period: str, *, user_id: str) -> list[PaymentSchedule]:
        with self.session_factory() as session:
            statement = (
                select(PaymentSchedule)
                .where(PaymentSchedule.user_id == user_id)
                .where(PaymentSchedule.period == period)
                .order_by(PaymentSchedule.id)  # type: ignore
            )
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def update(self, schedule: PaymentSchedule, *, user_id: str) -> PaymentSchedule:
        """Update the planning fields of a schedule.

        Parent, period and settlement fields are never changed here.
        """
        if schedule.expected_amount is None or schedule.expected_amount < 0:
            raise ValidationError(
                "Expected amount cannot be negative", entity="payment_schedule", key=schedule.id
            )
        with self.session_factory() as session:
            existing = load_schedule(session, schedule.id, user_id=user_id)
            existing.expected_amount = schedule.expected_amount
            existing.timing = schedule.timing
            if existing.is_paid:
                # receipts can be attached after settlement
                existing.receipt = schedule.receipt
            session.add(existing)
            session.commit()
            session.refresh(existing)
            session.expunge(existing)
            return existing

    def delete(self, schedule_id: int, *, user_id: str) -> None:
        """Delete an unsettled schedule row."""
        with self.session_factory() as session:
            schedule = session.exec(
                select(PaymentSchedule).where(
                    PaymentSchedule.id == schedule_id, PaymentSchedule.user_id == user_id
                )
            ).first()
            if schedule is None:
                return
            if schedule.is_paid:
                raise ValidationError(
                    "Settled schedules cannot be deleted; delete the settling transaction first",
                    entity="payment_schedule",
                    key=schedule_id,
                )
            session.delete(schedule)
            session.commit()
