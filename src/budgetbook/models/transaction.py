"""SQLModel definitions for ledger transactions."""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar, Optional

from sqlalchemy import CheckConstraint, UniqueConstraint
from sqlmodel import Field, SQLModel

PAYMENT = "payment"
WITHDRAW = "withdraw"
TRANSFER = "transfer"
LOAN = "loan"
CASH_IN = "cash_in"
LOAN_PAYMENT = "loan_payment"

TRANSACTION_KINDS = (PAYMENT, WITHDRAW, TRANSFER, LOAN, CASH_IN, LOAN_PAYMENT)
# Kinds written as two linked rows: an outflow leg and an inflow leg.
PAIRED_KINDS = (TRANSFER, LOAN_PAYMENT)
INFLOW_KINDS = (CASH_IN,)

_KIND_SQL = ", ".join(f"'{kind}'" for kind in TRANSACTION_KINDS)


class Transaction(SQLModel, table=True):
    """A record of money moving through an account.

    ``amount`` is signed relative to ``account_id``: negative when money
    leaves the account, positive when it arrives.
    """

    __tablename__: ClassVar[str] = "transaction"
    __table_args__ = (
        UniqueConstraint("payment_schedule_id", name="uq_transaction_payment_schedule"),
        CheckConstraint(f"kind IN ({_KIND_SQL})", name="ck_transaction_kind"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(nullable=False, index=True, max_length=64)
    name: str = Field(nullable=False, max_length=255)
    occurred_at: datetime = Field(nullable=False, index=True)
    amount: float = Field(nullable=False, description="Positive for inflow, negative for outflow")
    account_id: Optional[int] = Field(
        default=None, foreign_key="account.id", ondelete="SET NULL", index=True
    )
    kind: str = Field(default=PAYMENT, nullable=False, max_length=16, index=True)
    notes: str = Field(default="", max_length=1024)
    related_transaction_id: Optional[int] = Field(
        default=None, foreign_key="transaction.id", ondelete="SET NULL", index=True
    )
    payment_schedule_id: Optional[int] = Field(
        default=None, foreign_key="payment_schedule.id", ondelete="SET NULL"
    )
