"""Installment: a fixed-term loan or payment plan."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, ClassVar, Optional

from sqlalchemy.orm import relationship
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:  # pragma: no cover
    from .account import Account
    from .schedule import PaymentSchedule


class Installment(SQLModel, table=True):
    """A plan paid in ``term_months`` equal monthly amounts from ``start_date``."""

    __tablename__: ClassVar[str] = "installment"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(nullable=False, index=True, max_length=64)
    name: str = Field(nullable=False, max_length=128, index=True)
    total_amount: float = Field(default=0.0, nullable=False)
    monthly_amount: float = Field(default=0.0, nullable=False)
    term_months: int = Field(default=0, nullable=False)
    paid_amount: float = Field(default=0.0, nullable=False)
    start_date: Optional[date] = Field(default=None)
    timing: Optional[str] = Field(default=None, max_length=3)
    account_id: Optional[int] = Field(
        default=None, foreign_key="account.id", ondelete="CASCADE", index=True
    )

    account: Optional["Account"] = Relationship(
        back_populates="installments",
        sa_relationship=relationship("Account", back_populates="installments"),
    )
    schedules: list["PaymentSchedule"] = Relationship(
        back_populates="installment",
        sa_relationship=relationship(
            "PaymentSchedule",
            back_populates="installment",
            cascade="all, delete-orphan",
            passive_deletes=True,
        ),
    )

    @property
    def is_schedule_driven(self) -> bool:
        """False when budgeting views should show the installment every period."""

        return self.start_date is not None and self.term_months > 0
