"""SQLModel implementation of Installment repository."""

from __future__ import annotations

from typing import Optional

from sqlmodel import Session, select

from ...errors import NotFound, ValidationError
from ...models.biller import TIMINGS
from ...models.installment import Installment
from ..database import SessionFactory
from .account import load_account
from .schedule import reject_schedule_edits

# Fields copied into or deciding schedule rows.
SCHEDULE_FIELDS = ("monthly_amount", "term_months", "start_date", "timing")


def validate_installment(installment: Installment) -> None:
    if not (installment.name or "").strip():
        raise ValidationError("Installment name is required", entity="installment", key=installment.id)
    if installment.monthly_amount is None or installment.monthly_amount < 0:
        raise ValidationError("Monthly amount cannot be negative", entity="installment", key=installment.id)
    if installment.total_amount is None or installment.total_amount < 0:
        raise ValidationError("Total amount cannot be negative", entity="installment", key=installment.id)
    if installment.term_months is None:
        raise ValidationError("Term length is required", entity="installment", key=installment.id)
    if installment.timing is not None and installment.timing not in TIMINGS:
        raise ValidationError(f"Invalid timing {installment.timing!r}", entity="installment", key=installment.id)


def load_installment(session: Session, installment_id: int, *, user_id: str) -> Installment:
    installment = session.exec(
        select(Installment).where(Installment.id == installment_id, Installment.user_id == user_id)
    ).first()
    if installment is None:
        raise NotFound(
            f"Installment {installment_id} not found", entity="installment", key=installment_id
        )
    return installment


class SQLModelInstallmentRepository:
    """SQLModel-based installment repository implementation."""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def get_by_id(self, installment_id: int, *, user_id: str) -> Optional[Installment]:
        with self.session_factory() as session:
            obj = session.exec(
                select(Installment).where(
                    Installment.id == installment_id, Installment.user_id == user_id
                )
            ).first()
            if obj:
                session.expunge(obj)
            return obj

    def list_all(self, *, user_id: str) -> list[Installment]:
        with self.session_factory() as session:
            statement = (
                select(Installment)
                .where(Installment.user_id == user_id)
                .order_by(Installment.name)  # type: ignore
            )
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def list_by_account(self, account_id: int, *, user_id: str) -> list[Installment]:
        with self.session_factory() as session:
            statement = (
                select(Installment)
                .where(Installment.user_id == user_id)
                .where(Installment.account_id == account_id)
                .order_by(Installment.name)  # type: ignore
            )
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def update(self, installment: Installment, *, user_id: str) -> Installment:
        """Update descriptive fields.

        Plans are created and reshaped through ``services.obligations`` so
        that their schedule rows follow; changing a field in
        ``SCHEDULE_FIELDS`` here raises ``ValidationError``.
        """
        validate_installment(installment)
        with self.session_factory() as session:
            existing = load_installment(session, installment.id, user_id=user_id)
            reject_schedule_edits(existing, installment, SCHEDULE_FIELDS, entity="installment")
            if installment.account_id is not None:
                load_account(session, installment.account_id, user_id=user_id)
            # paid_amount follows settlements, never direct edits
            existing.sqlmodel_update(
                installment.model_dump(exclude={"id", "user_id", "paid_amount"})
            )
            session.add(existing)
            session.commit()
            session.refresh(existing)
            session.expunge(existing)
            return existing

    def delete(self, installment_id: int, *, user_id: str) -> None:
        """Delete an installment; its schedules cascade."""
        with self.session_factory() as session:
            installment = session.exec(
                select(Installment).where(
                    Installment.id == installment_id, Installment.user_id == user_id
                )
            ).first()
            if installment:
                session.delete(installment)
                session.commit()
