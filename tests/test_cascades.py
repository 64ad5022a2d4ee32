"""Deletion semantics across obligations, schedules, accounts and transactions."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from budgetbook.infra.repositories import (
    SQLModelAccountRepository,
    SQLModelBillerRepository,
    SQLModelInstallmentRepository,
    SQLModelPaymentScheduleRepository,
    SQLModelSavingsGoalRepository,
    SQLModelTransactionRepository,
)
from budgetbook.models import Biller, Installment, SavingsGoal
from budgetbook.services import obligations
from budgetbook.services.reconciliation import TransactionInput, create_transaction, delete_transaction

UTC = timezone.utc


@pytest.fixture
def repos(session_factory):
    class _Repos:
        accounts = SQLModelAccountRepository(session_factory)
        billers = SQLModelBillerRepository(session_factory)
        installments = SQLModelInstallmentRepository(session_factory)
        schedules = SQLModelPaymentScheduleRepository(session_factory)
        savings = SQLModelSavingsGoalRepository(session_factory)
        transactions = SQLModelTransactionRepository(session_factory)

    return _Repos


def _biller(session_factory, user_id, **overrides):
    fields = dict(
        name="Water",
        expected_amount=40.0,
        due_day=5,
        timing="1/2",
        activation_period="2026-01",
    )
    fields.update(overrides)
    biller, _ = obligations.create_biller(
        session_factory, Biller(**fields), user_id=user_id, window=("2026-01", "2026-03")
    )
    return biller


def _pay(session_factory, user_id, schedule_id, account_id, amount=40.0):
    return create_transaction(
        session_factory,
        TransactionInput(
            name="Bill",
            amount=amount,
            account_id=account_id,
            payment_schedule_id=schedule_id,
            occurred_at=datetime(2026, 1, 4, tzinfo=UTC),
        ),
        user_id=user_id,
    )


def test_deleting_biller_removes_its_schedules(session_factory, user_id, account_factory, repos):
    """Schedules go with the biller; the settling transaction stays, unlinked."""
    account = account_factory(balance=100.0)
    biller = _biller(session_factory, user_id)
    rows = repos.schedules.list_by_obligation(user_id=user_id, biller_id=biller.id)
    assert len(rows) == 3
    txn = _pay(session_factory, user_id, rows[0].id, account.id)

    obligations.delete_biller(session_factory, biller.id, user_id=user_id)

    assert repos.billers.get_by_id(biller.id, user_id=user_id) is None
    assert repos.schedules.list_all(user_id=user_id) == []
    survivor = repos.transactions.get_by_id(txn.id, user_id=user_id)
    assert survivor is not None
    assert survivor.payment_schedule_id is None
    assert repos.accounts.get_by_id(account.id, user_id=user_id).balance == 60.0


def test_deleting_installment_removes_its_schedules(session_factory, user_id, repos):
    installment, result = obligations.create_installment(
        session_factory,
        Installment(name="Sofa", total_amount=600.0, monthly_amount=100.0, term_months=6, start_date=date(2026, 1, 1)),
        user_id=user_id,
    )
    assert len(result.inserted) == 6

    obligations.delete_installment(session_factory, installment.id, user_id=user_id)

    assert repos.schedules.list_all(user_id=user_id) == []


def test_repository_delete_also_cascades(session_factory, user_id, installment_factory, repos):
    installment = installment_factory(term_months=2)
    obligations.update_installment(session_factory, installment, user_id=user_id)
    assert len(repos.schedules.list_all(user_id=user_id)) == 2

    repos.installments.delete(installment.id, user_id=user_id)

    assert repos.schedules.list_all(user_id=user_id) == []


def test_deleting_settling_account_keeps_paid_schedule(session_factory, user_id, account_factory, installment_factory, repos):
    """The schedule's account reference is nulled but it stays paid."""
    account = account_factory(balance=100.0)
    biller = _biller(session_factory, user_id)
    january = repos.schedules.list_by_obligation(user_id=user_id, biller_id=biller.id)[0]
    txn = _pay(session_factory, user_id, january.id, account.id)
    installment = installment_factory(account_id=account.id)
    goal = repos.savings.create(SavingsGoal(name="Trip", account_id=account.id), user_id=user_id)

    repos.accounts.delete(account.id, user_id=user_id)

    kept = repos.schedules.get_by_id(january.id, user_id=user_id)
    assert kept is not None
    assert kept.account_id is None
    assert kept.is_paid
    assert kept.amount_paid == 40.0
    assert kept.date_paid == date(2026, 1, 4)
    assert repos.transactions.get_by_id(txn.id, user_id=user_id).account_id is None
    assert repos.installments.get_by_id(installment.id, user_id=user_id) is None
    assert repos.savings.get_by_id(goal.id, user_id=user_id) is None


def test_deleting_linked_account_unlinks_biller(session_factory, user_id, account_factory, repos):
    card = account_factory("Card", account_type="credit", billing_date=date(2026, 1, 12))
    biller = _biller(session_factory, user_id, linked_account_id=card.id)

    repos.accounts.delete(card.id, user_id=user_id)

    assert repos.billers.get_by_id(biller.id, user_id=user_id).linked_account_id is None


def test_transaction_delete_after_account_removal_still_reverts(session_factory, user_id, account_factory, repos):
    """A settlement whose account is gone can still be undone."""
    account = account_factory(balance=100.0)
    biller = _biller(session_factory, user_id)
    january = repos.schedules.list_by_obligation(user_id=user_id, biller_id=biller.id)[0]
    txn = _pay(session_factory, user_id, january.id, account.id)
    repos.accounts.delete(account.id, user_id=user_id)

    delete_transaction(session_factory, txn.id, user_id=user_id)

    assert not repos.schedules.get_by_id(january.id, user_id=user_id).is_paid
    assert repos.transactions.get_by_id(txn.id, user_id=user_id) is None
