"""Account model: the money source and destination for every transaction."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, ClassVar, Optional

from sqlalchemy import CheckConstraint
from sqlalchemy.orm import relationship
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:  # pragma: no cover
    from .installment import Installment
    from .savings import SavingsGoal

ACCOUNT_CLASSIFICATIONS = ("checking", "savings", "credit", "loan", "investment")
DEBIT = "debit"
CREDIT = "credit"
ACCOUNT_TYPES = (DEBIT, CREDIT)


class Account(SQLModel, table=True):
    """A bank, credit card, loan or investment account.

    ``balance`` is materialized: it is only ever changed by the balance
    service while a transaction is written. For credit accounts it is the
    amount owed.
    """

    __tablename__: ClassVar[str] = "account"
    __table_args__ = (
        CheckConstraint("account_type IN ('debit', 'credit')", name="ck_account_type"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(nullable=False, index=True, max_length=64)
    bank: str = Field(nullable=False, max_length=128)
    classification: str = Field(default="checking", nullable=False, max_length=32, index=True)
    balance: float = Field(default=0.0, nullable=False)
    account_type: str = Field(default=DEBIT, nullable=False, max_length=16)
    credit_limit: Optional[float] = Field(default=None)
    billing_date: Optional[date] = Field(default=None)
    due_date: Optional[date] = Field(default=None)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    installments: list["Installment"] = Relationship(
        back_populates="account",
        sa_relationship=relationship(
            "Installment",
            back_populates="account",
            cascade="all, delete-orphan",
            passive_deletes=True,
        ),
    )
    savings_goals: list["SavingsGoal"] = Relationship(
        back_populates="account",
        sa_relationship=relationship(
            "SavingsGoal",
            back_populates="account",
            cascade="all, delete-orphan",
            passive_deletes=True,
        ),
    )

    @property
    def is_credit(self) -> bool:
        return self.account_type == CREDIT

    @property
    def billing_day(self) -> Optional[int]:
        return self.billing_date.day if self.billing_date else None
