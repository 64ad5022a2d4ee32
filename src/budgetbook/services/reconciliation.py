"""Transaction writes and schedule settlement.

A schedule is paid exactly when one transaction references it. Creating,
editing and deleting transactions keep three things in step inside a single
unit of work: the transaction rows, the settled schedule's mirror fields and
the balances of the accounts involved.

Double payment is prevented by the unique constraint on
``transaction.payment_schedule_id``: the transaction row is flushed first
and a constraint failure surfaces as :class:`DuplicatePayment`. There is no
read-then-write check, so two concurrent settlements of the same schedule
cannot both succeed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from .. import periods
from ..errors import DuplicatePayment, NotFound, ValidationError, translate_integrity_error
from ..infra.database import SessionFactory
from ..infra.repositories.account import load_account
from ..infra.repositories.schedule import load_schedule
from ..infra.repositories.transaction import load_transaction
from ..logging_config import get_logger
from ..models.biller import Biller
from ..models.installment import Installment
from ..models.schedule import PaymentSchedule
from ..models.transaction import (
    CASH_IN,
    LOAN,
    PAIRED_KINDS,
    PAYMENT,
    TRANSACTION_KINDS,
    Transaction,
)
from . import billing_cycles
from .balances import adjust_balance, signed_amount, to_cents

logger = get_logger(__name__)

# Money arriving in (or lent from) an account never pays a bill.
NON_SETTLING_KINDS = (CASH_IN, LOAN)


@dataclass
class TransactionInput:
    """User-supplied fields of a transaction.

    ``amount`` is a positive magnitude; the sign stored on the row follows
    from ``kind``. Paired kinds move money from ``account_id`` to
    ``destination_account_id``.
    """

    name: str
    amount: float
    account_id: Optional[int] = None
    kind: str = PAYMENT
    occurred_at: Optional[datetime] = None
    notes: str = ""
    payment_schedule_id: Optional[int] = None
    receipt: Optional[str] = None
    destination_account_id: Optional[int] = None


def validate_transaction_input(data: TransactionInput) -> float:
    """Check *data* before any write and return the signed amount."""

    if not (data.name or "").strip():
        raise ValidationError("Transaction name is required", entity="transaction")
    if data.kind not in TRANSACTION_KINDS:
        raise ValidationError(f"Unknown transaction kind {data.kind!r}", entity="transaction", key=data.kind)
    amount = signed_amount(data.kind, data.amount)
    if data.kind in PAIRED_KINDS:
        if data.account_id is None or data.destination_account_id is None:
            raise ValidationError(
                f"A {data.kind} needs both a source and a destination account",
                entity="transaction",
                key=data.kind,
            )
        if data.account_id == data.destination_account_id:
            raise ValidationError(
                "Source and destination accounts must differ",
                entity="transaction",
                key=data.account_id,
            )
    elif data.destination_account_id is not None:
        raise ValidationError(
            f"A {data.kind} does not take a destination account",
            entity="transaction",
            key=data.kind,
        )
    if data.payment_schedule_id is not None and data.kind in NON_SETTLING_KINDS:
        raise ValidationError(
            f"A {data.kind} cannot settle a payment schedule",
            entity="transaction",
            key=data.payment_schedule_id,
        )
    return amount


def _check_references(session: Session, data: TransactionInput, *, user_id: str) -> None:
    """Resolve every referenced row as the owner sees it, so strangers' ids are NotFound."""

    for account_id in (data.account_id, data.destination_account_id):
        if account_id is not None:
            load_account(session, account_id, user_id=user_id)
    if data.payment_schedule_id is not None:
        load_schedule(session, data.payment_schedule_id, user_id=user_id)


def _flush_settlement(session: Session, schedule_id: Optional[int]) -> None:
    try:
        session.flush()
    except IntegrityError as exc:
        error = translate_integrity_error(exc, entity="transaction", key=schedule_id)
        if isinstance(error, DuplicatePayment):
            logger.warning("Duplicate payment rejected", extra={"payment_schedule_id": schedule_id})
        raise error from exc


def _settle(session: Session, schedule: PaymentSchedule, txn: Transaction, receipt: Optional[str]) -> None:
    """Mirror *txn* onto *schedule*."""

    paid = to_cents(abs(txn.amount))
    schedule.amount_paid = paid
    schedule.date_paid = txn.occurred_at.date()
    schedule.receipt = receipt
    schedule.account_id = txn.account_id

    if schedule.installment_id is not None:
        installment = session.get(Installment, schedule.installment_id)
        if installment is not None:
            installment.paid_amount = to_cents((installment.paid_amount or 0.0) + paid)
            session.add(installment)
    elif schedule.biller_id is not None:
        biller = session.get(Biller, schedule.biller_id)
        if biller is not None:
            # Freeze the statement amount so later card activity can't rewrite history.
            snapshot = billing_cycles.linked_amounts(session, biller, [schedule.period])
            if schedule.period in snapshot:
                schedule.expected_amount = snapshot[schedule.period]

    session.add(schedule)
    logger.info(
        "Schedule settled",
        extra={"payment_schedule_id": schedule.id, "transaction_id": txn.id, "amount_paid": paid},
    )


def _revert(session: Session, schedule: PaymentSchedule) -> None:
    """Return *schedule* to unpaid and undo its effect on the installment."""

    if schedule.installment_id is not None and schedule.amount_paid:
        installment = session.get(Installment, schedule.installment_id)
        if installment is not None:
            installment.paid_amount = max(
                0.0, to_cents((installment.paid_amount or 0.0) - schedule.amount_paid)
            )
            session.add(installment)
    schedule.clear_settlement()
    session.add(schedule)
    logger.info("Schedule settlement reverted", extra={"payment_schedule_id": schedule.id})


def _partner(session: Session, txn: Transaction) -> Optional[Transaction]:
    if txn.kind not in PAIRED_KINDS or txn.related_transaction_id is None:
        return None
    return session.exec(
        select(Transaction).where(
            Transaction.id == txn.related_transaction_id, Transaction.user_id == txn.user_id
        )
    ).first()


def _source_leg(session: Session, txn: Transaction) -> tuple[Transaction, Optional[Transaction]]:
    """Return ``(outflow leg, inflow leg)``; edits always go through the outflow leg."""

    partner = _partner(session, txn)
    if partner is not None and txn.amount > 0:
        return partner, txn
    return txn, partner


def _apply(
    session: Session,
    txn: Transaction,
    data: TransactionInput,
    *,
    user_id: str,
    partner: Optional[Transaction] = None,
) -> Transaction:
    """Write balances, the inflow leg and the settlement for a flushed *txn*."""

    schedule = None
    if data.payment_schedule_id is not None:
        schedule = load_schedule(session, data.payment_schedule_id, user_id=user_id)

    adjust_balance(session, txn.account_id, txn.amount, user_id=user_id)

    if data.kind in PAIRED_KINDS:
        if partner is None:
            partner = Transaction(user_id=user_id, related_transaction_id=txn.id)
        partner.name = txn.name
        partner.occurred_at = txn.occurred_at
        partner.amount = -txn.amount
        partner.account_id = data.destination_account_id
        partner.kind = txn.kind
        partner.notes = txn.notes
        session.add(partner)
        session.flush()
        txn.related_transaction_id = partner.id
        session.add(txn)
        adjust_balance(session, partner.account_id, partner.amount, user_id=user_id)

    if schedule is not None:
        _settle(session, schedule, txn, data.receipt)
    session.flush()
    return txn


def _unwind(session: Session, txn: Transaction, partner: Optional[Transaction], *, user_id: str) -> None:
    """Undo the balance and settlement effects of an existing transaction."""

    for leg in (txn, partner):
        if leg is None:
            continue
        if leg.account_id is not None:
            adjust_balance(session, leg.account_id, leg.amount, user_id=user_id, reverse=True)
        if leg.payment_schedule_id is not None:
            schedule = session.get(PaymentSchedule, leg.payment_schedule_id)
            if schedule is not None:
                _revert(session, schedule)


def create_transaction(
    session_factory: SessionFactory, data: TransactionInput, *, user_id: str
) -> Transaction:
    """Record a transaction, moving balances and settling its schedule atomically.

    Raises:
        ValidationError: malformed input, rejected before any write.
        NotFound: an account or the schedule does not belong to ``user_id``.
        DuplicatePayment: the schedule already has a settling transaction.
    """

    amount = validate_transaction_input(data)
    occurred_at = periods.as_utc(data.occurred_at) if data.occurred_at else datetime.now(timezone.utc)
    with session_factory() as session:
        _check_references(session, data, user_id=user_id)
        txn = Transaction(
            user_id=user_id,
            name=data.name.strip(),
            occurred_at=occurred_at,
            amount=amount,
            account_id=data.account_id,
            kind=data.kind,
            notes=data.notes or "",
            payment_schedule_id=data.payment_schedule_id,
        )
        session.add(txn)
        _flush_settlement(session, data.payment_schedule_id)
        _apply(session, txn, data, user_id=user_id)
        session.commit()
        session.refresh(txn)
        session.expunge(txn)
        logger.info(
            "Transaction created",
            extra={"transaction_id": txn.id, "kind": txn.kind, "amount": txn.amount},
        )
        return txn


def update_transaction(
    session_factory: SessionFactory,
    transaction_id: int,
    data: TransactionInput,
    *,
    user_id: str,
) -> Transaction:
    """Replace a transaction's fields, re-linking its settlement atomically.

    The old effects (balances, settlement) are unwound and the new ones
    applied in the same unit of work. A paired transaction stays paired;
    switching between paired and single kinds means delete and re-create.
    """

    amount = validate_transaction_input(data)
    with session_factory() as session:
        txn, partner = _source_leg(session, load_transaction(session, transaction_id, user_id=user_id))
        if (txn.kind in PAIRED_KINDS) != (data.kind in PAIRED_KINDS):
            raise ValidationError(
                f"Cannot change a {txn.kind} into a {data.kind}; delete and re-create it",
                entity="transaction",
                key=transaction_id,
            )
        _check_references(session, data, user_id=user_id)

        _unwind(session, txn, partner, user_id=user_id)
        txn.name = data.name.strip()
        if data.occurred_at is not None:
            txn.occurred_at = periods.as_utc(data.occurred_at)
        txn.amount = amount
        txn.account_id = data.account_id
        txn.kind = data.kind
        txn.notes = data.notes or ""
        txn.payment_schedule_id = data.payment_schedule_id
        session.add(txn)
        _flush_settlement(session, data.payment_schedule_id)
        _apply(session, txn, data, user_id=user_id, partner=partner)
        session.commit()
        session.refresh(txn)
        session.expunge(txn)
        logger.info("Transaction updated", extra={"transaction_id": txn.id})
        return txn


def delete_transaction(session_factory: SessionFactory, transaction_id: int, *, user_id: str) -> None:
    """Delete a transaction (and its paired leg), reverting what it settled."""

    with session_factory() as session:
        txn, partner = _source_leg(session, load_transaction(session, transaction_id, user_id=user_id))
        _unwind(session, txn, partner, user_id=user_id)
        for leg in (txn, partner):
            if leg is not None:
                session.delete(leg)
        session.commit()
        logger.info(
            "Transaction deleted",
            extra={"transaction_id": transaction_id, "paired": partner is not None},
        )


def pay_schedule(
    session_factory: SessionFactory,
    schedule_id: int,
    *,
    user_id: str,
    account_id: Optional[int],
    amount: Optional[float] = None,
    occurred_at: Optional[datetime] = None,
    receipt: Optional[str] = None,
    name: Optional[str] = None,
) -> Transaction:
    """Settle a schedule with a payment, defaulting to its expected amount."""

    with session_factory() as session:
        schedule = load_schedule(session, schedule_id, user_id=user_id)
        if amount is None:
            amount = schedule.expected_amount
        if name is None:
            parent = (
                session.get(Biller, schedule.biller_id)
                if schedule.biller_id is not None
                else session.get(Installment, schedule.installment_id)
            )
            if parent is None:
                raise NotFound(
                    f"Obligation for schedule {schedule_id} not found",
                    entity="payment_schedule",
                    key=schedule_id,
                )
            name = f"{parent.name} ({schedule.period})"
    return create_transaction(
        session_factory,
        TransactionInput(
            name=name,
            amount=amount,
            account_id=account_id,
            kind=PAYMENT,
            occurred_at=occurred_at,
            payment_schedule_id=schedule_id,
            receipt=receipt,
        ),
        user_id=user_id,
    )
