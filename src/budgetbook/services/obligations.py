"""Obligation lifecycle: creating, editing and retiring billers and installments.

Each operation writes the obligation and its schedule rows in one unit of
work, so an installment never exists without its full term of rows.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from sqlmodel import select

from .. import periods
from ..errors import ValidationError
from ..infra.database import SessionFactory
from ..infra.repositories.account import load_account
from ..infra.repositories.biller import load_biller, validate_biller
from ..infra.repositories.installment import load_installment, validate_installment
from ..logging_config import get_logger
from ..models.biller import BILLER_INACTIVE, Biller
from ..models.installment import Installment
from ..models.schedule import PaymentSchedule
from .schedules import (
    GenerationResult,
    Window,
    generate_for_biller,
    generate_for_installment,
    regenerate_for_biller,
    regenerate_for_installment,
)

logger = get_logger(__name__)


def create_installment(
    session_factory: SessionFactory, installment: Installment, *, user_id: str
) -> tuple[Installment, GenerationResult]:
    """Create an installment and its whole schedule."""

    validate_installment(installment)
    with session_factory() as session:
        if installment.account_id is not None:
            load_account(session, installment.account_id, user_id=user_id)
        installment.user_id = user_id
        installment.paid_amount = 0.0
        session.add(installment)
        session.flush()
        result = generate_for_installment(session, installment)
        session.commit()
        session.refresh(installment)
        session.expunge(installment)
        return installment, result


def update_installment(
    session_factory: SessionFactory, installment: Installment, *, user_id: str
) -> tuple[Installment, GenerationResult]:
    """Save edits and regenerate unpaid rows; settled rows are kept."""

    validate_installment(installment)
    with session_factory() as session:
        existing = load_installment(session, installment.id, user_id=user_id)
        if installment.account_id is not None:
            load_account(session, installment.account_id, user_id=user_id)
        existing.sqlmodel_update(installment.model_dump(exclude={"id", "user_id", "paid_amount"}))
        session.add(existing)
        session.flush()
        result = regenerate_for_installment(session, existing)
        session.commit()
        session.refresh(existing)
        session.expunge(existing)
        return existing, result


def delete_installment(session_factory: SessionFactory, installment_id: int, *, user_id: str) -> None:
    """Delete an installment; its schedules cascade and settling transactions are unlinked."""

    with session_factory() as session:
        installment = load_installment(session, installment_id, user_id=user_id)
        session.delete(installment)
        logger.info("Installment deleted", extra={"installment_id": installment_id})


def create_biller(
    session_factory: SessionFactory,
    biller: Biller,
    *,
    user_id: str,
    window: Optional[Window] = None,
) -> tuple[Biller, GenerationResult]:
    """Create a biller and its rows for the visible window."""

    validate_biller(biller)
    with session_factory() as session:
        if biller.linked_account_id is not None:
            load_account(session, biller.linked_account_id, user_id=user_id)
        biller.user_id = user_id
        session.add(biller)
        session.flush()
        result = generate_for_biller(session, biller, window=window)
        session.commit()
        session.refresh(biller)
        session.expunge(biller)
        return biller, result


def update_biller(
    session_factory: SessionFactory,
    biller: Biller,
    *,
    user_id: str,
    window: Optional[Window] = None,
) -> tuple[Biller, GenerationResult]:
    """Save edits and bring the biller's unpaid rows in line with them."""

    validate_biller(biller)
    with session_factory() as session:
        existing = load_biller(session, biller.id, user_id=user_id)
        if biller.linked_account_id is not None:
            load_account(session, biller.linked_account_id, user_id=user_id)
        existing.sqlmodel_update(biller.model_dump(exclude={"id", "user_id"}))
        session.add(existing)
        session.flush()
        result = regenerate_for_biller(session, existing, window=window)
        session.commit()
        session.refresh(existing)
        session.expunge(existing)
        return existing, result


def deactivate_biller(
    session_factory: SessionFactory,
    biller_id: int,
    *,
    user_id: str,
    period: Optional[str] = None,
) -> Biller:
    """Stop a biller after *period* (default: the current month).

    History is kept: settled rows and rows up to *period* stay, unpaid rows
    after it are removed.
    """

    last = period or periods.period_of(date.today())
    with session_factory() as session:
        biller = load_biller(session, biller_id, user_id=user_id)
        if periods.months_between(biller.activation_period, last) < 0:
            raise ValidationError(
                "Deactivation period precedes activation period",
                entity="biller",
                key=biller_id,
            )
        biller.status = BILLER_INACTIVE
        biller.deactivation_period = last
        session.add(biller)

        future = session.exec(
            select(PaymentSchedule).where(
                PaymentSchedule.biller_id == biller_id,
                PaymentSchedule.period > last,
                PaymentSchedule.amount_paid.is_(None),  # type: ignore[union-attr]
            )
        ).all()
        for schedule in future:
            session.delete(schedule)
        session.commit()
        session.refresh(biller)
        session.expunge(biller)
        logger.info(
            "Biller deactivated",
            extra={"biller_id": biller_id, "period": last, "removed": len(future)},
        )
        return biller


def delete_biller(session_factory: SessionFactory, biller_id: int, *, user_id: str) -> None:
    """Delete a biller and, by cascade, every one of its schedules."""

    with session_factory() as session:
        biller = load_biller(session, biller_id, user_id=user_id)
        session.delete(biller)
        logger.info("Biller deleted", extra={"biller_id": biller_id})


def retire_biller(
    session_factory: SessionFactory,
    biller_id: int,
    *,
    user_id: str,
    period: Optional[str] = None,
) -> Optional[Biller]:
    """Deactivate a biller that has schedule rows, delete one that has none.

    Returns the deactivated biller, or None when it was deleted.
    """

    with session_factory() as session:
        load_biller(session, biller_id, user_id=user_id)
        has_rows = (
            session.exec(
                select(PaymentSchedule.id).where(PaymentSchedule.biller_id == biller_id).limit(1)
            ).first()
            is not None
        )
    if has_rows:
        return deactivate_biller(session_factory, biller_id, user_id=user_id, period=period)
    delete_biller(session_factory, biller_id, user_id=user_id)
    return None
