"""SQLModel implementation of Biller repository."""

from __future__ import annotations

from typing import Optional

from sqlmodel import Session, select

from ... import periods
from ...errors import NotFound, ValidationError
from ...models.biller import BILLER_ACTIVE, BILLER_INACTIVE, TIMINGS, Biller
from ..database import SessionFactory
from .schedule import reject_schedule_edits

# Fields copied into or deciding schedule rows.
SCHEDULE_FIELDS = (
    "expected_amount",
    "timing",
    "activation_period",
    "deactivation_period",
    "status",
    "linked_account_id",
)


def validate_biller(biller: Biller) -> None:
    """Reject malformed billers before any write."""

    if not (biller.name or "").strip():
        raise ValidationError("Biller name is required", entity="biller", key=biller.id)
    if not 1 <= int(biller.due_day or 0) <= 31:
        raise ValidationError("Biller due day must be 1-31", entity="biller", key=biller.id)
    if biller.timing not in TIMINGS:
        raise ValidationError(f"Invalid timing {biller.timing!r}", entity="biller", key=biller.id)
    if biller.status not in (BILLER_ACTIVE, BILLER_INACTIVE):
        raise ValidationError(f"Invalid status {biller.status!r}", entity="biller", key=biller.id)
    if biller.expected_amount is None or biller.expected_amount < 0:
        raise ValidationError("Expected amount cannot be negative", entity="biller", key=biller.id)
    periods.parse_period(biller.activation_period)
    if biller.deactivation_period is not None:
        if periods.months_between(biller.activation_period, biller.deactivation_period) < 0:
            raise ValidationError(
                "Deactivation period precedes activation period",
                entity="biller",
                key=biller.id,
            )


def load_biller(session: Session, biller_id: int, *, user_id: str) -> Biller:
    biller = session.exec(
        select(Biller).where(Biller.id == biller_id, Biller.user_id == user_id)
    ).first()
    if biller is None:
        raise NotFound(f"Biller {biller_id} not found", entity="biller", key=biller_id)
    return biller


class SQLModelBillerRepository:
    """SQLModel-based biller repository implementation."""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def get_by_id(self, biller_id: int, *, user_id: str) -> Optional[Biller]:
        """Retrieve a biller by ID."""
        with self.session_factory() as session:
            obj = session.exec(
                select(Biller).where(Biller.id == biller_id, Biller.user_id == user_id)
            ).first()
            if obj:
                session.expunge(obj)
            return obj

    def list_all(self, *, user_id: str) -> list[Biller]:
        """List all billers."""
        with self.session_factory() as session:
            statement = (
                select(Biller).where(Biller.user_id == user_id).order_by(Biller.name)  # type: ignore
            )
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def list_active(self, *, user_id: str) -> list[Biller]:
        """List billers that still generate schedules."""
        with self.session_factory() as session:
            statement = (
                select(Biller)
                .where(Biller.user_id == user_id)
                .where(Biller.status == BILLER_ACTIVE)
                .order_by(Biller.name)  # type: ignore
            )
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def update(self, biller: Biller, *, user_id: str) -> Biller:
        """Update name, category or due day.

        Anything in ``SCHEDULE_FIELDS`` goes through
        ``services.obligations.update_biller`` so unpaid rows follow it.
        """
        validate_biller(biller)
        with self.session_factory() as session:
            existing = load_biller(session, biller.id, user_id=user_id)
            reject_schedule_edits(existing, biller, SCHEDULE_FIELDS, entity="biller")
            existing.sqlmodel_update(biller.model_dump(exclude={"id", "user_id"}))
            session.add(existing)
            session.commit()
            session.refresh(existing)
            session.expunge(existing)
            return existing

    def delete(self, biller_id: int, *, user_id: str) -> None:
        """Delete a biller; its schedules cascade."""
        with self.session_factory() as session:
            biller = session.exec(
                select(Biller).where(Biller.id == biller_id, Biller.user_id == user_id)
            ).first()
            if biller:
                session.delete(biller)
                session.commit()
