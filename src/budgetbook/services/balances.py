"""Account balance derivation.

Balances are materialized on :class:`Account` and moved incrementally while
each transaction is written, inside the caller's unit of work. Debit
accounts hold money, so a signed transaction amount is added. Credit
accounts hold debt, so spending (negative amounts) raises the balance and
payments into the card lower it.
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlmodel import Session, select

from ..errors import NotFound, ValidationError
from ..logging_config import get_logger
from ..models.account import Account
from ..models.transaction import INFLOW_KINDS, TRANSACTION_KINDS

logger = get_logger(__name__)


def to_cents(amount: float) -> float:
    """Round to cents using half-up rounding."""

    return float(Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def signed_amount(kind: str, amount: float) -> float:
    """Return the amount signed from the payment account's point of view."""

    if kind not in TRANSACTION_KINDS:
        raise ValidationError(f"Unknown transaction kind {kind!r}", entity="transaction", key=kind)
    if amount is None or not math.isfinite(amount) or amount <= 0:
        raise ValidationError("Transaction amount must be positive", entity="transaction", key=amount)
    magnitude = to_cents(abs(amount))
    return magnitude if kind in INFLOW_KINDS else -magnitude


def balance_delta(account: Account, amount: float) -> float:
    """Balance change caused by a signed transaction amount on *account*."""

    return -amount if account.is_credit else amount


def adjust_balance(
    session: Session,
    account_id: Optional[int],
    amount: float,
    *,
    user_id: str,
    reverse: bool = False,
) -> Optional[Account]:
    """Apply (or undo) a transaction amount to an account balance.

    The row is locked for the rest of the unit of work where the backend
    supports it. A missing account raises NotFound so the whole write aborts.
    """

    if account_id is None:
        return None
    account = session.exec(
        select(Account)
        .where(Account.id == account_id, Account.user_id == user_id)
        .with_for_update()
    ).first()
    if account is None:
        raise NotFound(f"Account {account_id} not found", entity="account", key=account_id)

    delta = balance_delta(account, amount)
    if reverse:
        delta = -delta
    previous = account.balance
    account.balance = to_cents((account.balance or 0.0) + delta)
    session.add(account)
    logger.debug(
        "Account balance adjusted",
        extra={"account_id": account_id, "old_balance": previous, "new_balance": account.balance},
    )
    return account


def available_balance(account: Account) -> float:
    """Spendable amount: remaining credit for credit accounts, balance otherwise."""

    if account.is_credit and account.credit_limit is not None:
        return to_cents(account.credit_limit - account.balance)
    return account.balance
