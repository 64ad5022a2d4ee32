"""Tests for transaction to schedule settlement."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from budgetbook.errors import DuplicatePayment, NotFound, ValidationError
from budgetbook.infra.repositories import (
    SQLModelAccountRepository,
    SQLModelInstallmentRepository,
    SQLModelPaymentScheduleRepository,
    SQLModelTransactionRepository,
)
from budgetbook.models import Installment
from budgetbook.services import obligations
from budgetbook.services.reconciliation import (
    TransactionInput,
    create_transaction,
    delete_transaction,
    pay_schedule,
    update_transaction,
)
from budgetbook.services.schedules import generate_schedules, schedule_status

UTC = timezone.utc


@pytest.fixture
def schedule_repo(session_factory):
    return SQLModelPaymentScheduleRepository(session_factory)


@pytest.fixture
def transaction_repo(session_factory):
    return SQLModelTransactionRepository(session_factory)


@pytest.fixture
def account_repo(session_factory):
    return SQLModelAccountRepository(session_factory)


@pytest.fixture
def plan(session_factory, user_id):
    """A 3-month, 100/month installment starting January 2026 with its schedule."""
    installment, _ = obligations.create_installment(
        session_factory,
        Installment(
            name="Phone",
            total_amount=300.0,
            monthly_amount=100.0,
            term_months=3,
            start_date=date(2026, 1, 1),
        ),
        user_id=user_id,
    )
    return installment


def _rows(schedule_repo, user_id, installment):
    return schedule_repo.list_by_obligation(user_id=user_id, installment_id=installment.id)


def _payment(schedule_id, account_id, amount=100.0, **kwargs):
    return TransactionInput(
        name=kwargs.pop("name", "Phone payment"),
        amount=amount,
        account_id=account_id,
        payment_schedule_id=schedule_id,
        occurred_at=kwargs.pop("occurred_at", datetime(2026, 2, 3, 9, 30, tzinfo=UTC)),
        **kwargs,
    )


def test_settle_pay_twice_and_revert(
    session_factory, user_id, plan, account_factory, schedule_repo, transaction_repo, account_repo
):
    """Settling, a rejected double payment and the revert on delete."""
    account = account_factory(balance=1000.0)
    rows = _rows(schedule_repo, user_id, plan)
    assert [r.period for r in rows] == ["2026-01", "2026-02", "2026-03"]
    assert all(r.expected_amount == 100.0 and not r.is_paid for r in rows)
    february = rows[1]

    txn = create_transaction(session_factory, _payment(february.id, account.id), user_id=user_id)

    settled = schedule_repo.get_by_id(february.id, user_id=user_id)
    assert settled.is_paid
    assert settled.amount_paid == 100.0
    assert settled.date_paid == date(2026, 2, 3)
    assert settled.account_id == account.id
    assert txn.amount == -100.0

    again = generate_schedules(session_factory, user_id=user_id, installment_id=plan.id)
    assert again.inserted == []
    assert len(_rows(schedule_repo, user_id, plan)) == 3

    with pytest.raises(DuplicatePayment) as excinfo:
        create_transaction(session_factory, _payment(february.id, account.id), user_id=user_id)
    assert excinfo.value.key == february.id
    assert transaction_repo.get_by_schedule(february.id, user_id=user_id).id == txn.id
    assert len(transaction_repo.list_all(user_id=user_id)) == 1
    assert account_repo.get_by_id(account.id, user_id=user_id).balance == 900.0

    delete_transaction(session_factory, txn.id, user_id=user_id)

    reverted = schedule_repo.get_by_id(february.id, user_id=user_id)
    assert reverted is not None
    assert reverted.amount_paid is None
    assert reverted.date_paid is None
    assert reverted.receipt is None
    assert reverted.account_id is None
    assert len(_rows(schedule_repo, user_id, plan)) == 3
    assert account_repo.get_by_id(account.id, user_id=user_id).balance == 1000.0


def test_receipt_is_mirrored_and_cleared(session_factory, user_id, plan, account_factory, schedule_repo):
    account = account_factory()
    january = _rows(schedule_repo, user_id, plan)[0]

    txn = create_transaction(
        session_factory, _payment(january.id, account.id, receipt="receipts/jan.pdf"), user_id=user_id
    )
    assert schedule_repo.get_by_id(january.id, user_id=user_id).receipt == "receipts/jan.pdf"

    delete_transaction(session_factory, txn.id, user_id=user_id)
    assert schedule_repo.get_by_id(january.id, user_id=user_id).receipt is None


def test_installment_paid_amount_follows_settlements(session_factory, user_id, plan, account_factory, schedule_repo):
    """Cumulative paid amount rises on settle and falls on revert."""
    account = account_factory()
    installment_repo = SQLModelInstallmentRepository(session_factory)
    january, february, _ = _rows(schedule_repo, user_id, plan)

    first = create_transaction(session_factory, _payment(january.id, account.id), user_id=user_id)
    create_transaction(session_factory, _payment(february.id, account.id, amount=60.0), user_id=user_id)
    assert installment_repo.get_by_id(plan.id, user_id=user_id).paid_amount == 160.0

    delete_transaction(session_factory, first.id, user_id=user_id)
    assert installment_repo.get_by_id(plan.id, user_id=user_id).paid_amount == 60.0

    partial = schedule_repo.get_by_id(february.id, user_id=user_id)
    assert schedule_status(partial, today=date(2026, 2, 1)) == "partial"


def test_edit_moves_settlement_to_another_schedule(
    session_factory, user_id, plan, account_factory, schedule_repo, account_repo
):
    """Relinking unsettles the old schedule and settles the new one."""
    account = account_factory(balance=500.0)
    _, february, march = _rows(schedule_repo, user_id, plan)
    txn = create_transaction(session_factory, _payment(february.id, account.id), user_id=user_id)

    updated = update_transaction(
        session_factory,
        txn.id,
        _payment(march.id, account.id, amount=120.0, occurred_at=datetime(2026, 3, 2, tzinfo=UTC)),
        user_id=user_id,
    )

    assert updated.payment_schedule_id == march.id
    assert updated.amount == -120.0
    assert not schedule_repo.get_by_id(february.id, user_id=user_id).is_paid
    moved = schedule_repo.get_by_id(march.id, user_id=user_id)
    assert moved.amount_paid == 120.0
    assert moved.date_paid == date(2026, 3, 2)
    assert account_repo.get_by_id(account.id, user_id=user_id).balance == 380.0


def test_edit_onto_settled_schedule_changes_nothing(
    session_factory, user_id, plan, account_factory, schedule_repo, account_repo, transaction_repo
):
    """A rejected relink leaves the original settlement and balances untouched."""
    account = account_factory(balance=500.0)
    january, february, _ = _rows(schedule_repo, user_id, plan)
    first = create_transaction(session_factory, _payment(january.id, account.id), user_id=user_id)
    create_transaction(session_factory, _payment(february.id, account.id), user_id=user_id)

    with pytest.raises(DuplicatePayment):
        update_transaction(session_factory, first.id, _payment(february.id, account.id), user_id=user_id)

    assert schedule_repo.get_by_id(january.id, user_id=user_id).amount_paid == 100.0
    assert transaction_repo.get_by_id(first.id, user_id=user_id).payment_schedule_id == january.id
    assert account_repo.get_by_id(account.id, user_id=user_id).balance == 300.0


def test_edit_can_unlink_a_schedule(session_factory, user_id, plan, account_factory, schedule_repo):
    account = account_factory()
    january = _rows(schedule_repo, user_id, plan)[0]
    txn = create_transaction(session_factory, _payment(january.id, account.id), user_id=user_id)

    update_transaction(session_factory, txn.id, _payment(None, account.id), user_id=user_id)

    assert not schedule_repo.get_by_id(january.id, user_id=user_id).is_paid


@pytest.mark.parametrize(
    "overrides",
    [
        {"amount": 0},
        {"amount": -5.0},
        {"amount": float("nan")},
        {"name": "  "},
        {"kind": "refund"},
        {"kind": "cash_in"},
        {"kind": "loan"},
    ],
)
def test_invalid_input_is_rejected_before_write(
    session_factory, user_id, plan, account_factory, schedule_repo, transaction_repo, overrides
):
    account = account_factory()
    january = _rows(schedule_repo, user_id, plan)[0]
    data = _payment(january.id, account.id)
    for key, value in overrides.items():
        setattr(data, key, value)

    with pytest.raises(ValidationError):
        create_transaction(session_factory, data, user_id=user_id)

    assert transaction_repo.list_all(user_id=user_id) == []
    assert not schedule_repo.get_by_id(january.id, user_id=user_id).is_paid


def test_unknown_references_are_not_found(session_factory, user_id, plan, account_factory, schedule_repo, transaction_repo):
    """Missing or foreign schedules and accounts raise NotFound and write nothing."""
    account = account_factory()
    stranger = account_factory(owner="user-2")
    january = _rows(schedule_repo, user_id, plan)[0]

    with pytest.raises(NotFound):
        create_transaction(session_factory, _payment(9999, account.id), user_id=user_id)
    with pytest.raises(NotFound):
        create_transaction(session_factory, _payment(january.id, stranger.id), user_id=user_id)
    with pytest.raises(NotFound):
        create_transaction(session_factory, _payment(january.id, account.id), user_id="user-2")

    assert transaction_repo.list_all(user_id=user_id) == []
    assert not schedule_repo.get_by_id(january.id, user_id=user_id).is_paid


def test_delete_unknown_transaction(session_factory, user_id):
    with pytest.raises(NotFound):
        delete_transaction(session_factory, 42, user_id=user_id)


def test_pay_schedule_defaults_to_expected_amount(session_factory, user_id, plan, account_factory, schedule_repo):
    account = account_factory(balance=250.0)
    march = _rows(schedule_repo, user_id, plan)[2]

    txn = pay_schedule(session_factory, march.id, user_id=user_id, account_id=account.id)

    assert txn.name == "Phone (2026-03)"
    assert txn.amount == -100.0
    assert schedule_repo.get_by_id(march.id, user_id=user_id).amount_paid == 100.0


def test_unsettled_payment_needs_no_schedule(session_factory, user_id, account_factory, account_repo):
    """Plain spending moves the balance without touching schedules."""
    account = account_factory(balance=50.0)

    txn = create_transaction(
        session_factory,
        TransactionInput(name="Groceries", amount=12.345, account_id=account.id, kind="withdraw"),
        user_id=user_id,
    )

    assert txn.amount == -12.35
    assert txn.payment_schedule_id is None
    assert account_repo.get_by_id(account.id, user_id=user_id).balance == 37.65


def test_timestamps_are_stored_in_utc(session_factory, user_id, account_factory, transaction_repo):
    """Naive times are taken as UTC and offset times are converted."""
    account = account_factory(balance=50.0)
    plus_two = timezone(timedelta(hours=2))

    naive = create_transaction(
        session_factory,
        TransactionInput(name="Lunch", amount=8.0, account_id=account.id, occurred_at=datetime(2026, 4, 2, 12, 15)),
        user_id=user_id,
    )
    offset = create_transaction(
        session_factory,
        TransactionInput(
            name="Dinner", amount=15.0, account_id=account.id, occurred_at=datetime(2026, 4, 2, 20, 45, tzinfo=plus_two)
        ),
        user_id=user_id,
    )

    assert (naive.occurred_at.date(), naive.occurred_at.hour) == (date(2026, 4, 2), 12)
    assert (offset.occurred_at.date(), offset.occurred_at.hour) == (date(2026, 4, 2), 18)
    found = transaction_repo.filter_by_date_range(datetime(2026, 4, 2), datetime(2026, 4, 3), user_id=user_id)
    assert {t.id for t in found} == {naive.id, offset.id}
