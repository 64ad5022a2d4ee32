"""Biller: an open-ended recurring obligation."""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar, Optional

from sqlalchemy.orm import relationship
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:  # pragma: no cover
    from .schedule import PaymentSchedule

BILLER_ACTIVE = "active"
BILLER_INACTIVE = "inactive"
TIMINGS = ("1/2", "2/2")


class Biller(SQLModel, table=True):
    """A recurring bill such as a utility or subscription.

    Billers have no fixed end, so their schedule rows are generated one
    period at a time for the visible horizon. When ``linked_account_id``
    points at a credit account the expected amount per period comes from that
    account's billing-cycle activity instead of ``expected_amount``.
    """

    __tablename__: ClassVar[str] = "biller"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(nullable=False, index=True, max_length=64)
    name: str = Field(nullable=False, max_length=128, index=True)
    category: str = Field(default="", max_length=64, index=True)
    due_day: int = Field(default=1, ge=1, le=31)
    expected_amount: float = Field(default=0.0, nullable=False)
    timing: str = Field(default="1/2", max_length=3)
    activation_period: str = Field(nullable=False, max_length=7)
    deactivation_period: Optional[str] = Field(default=None, max_length=7)
    status: str = Field(default=BILLER_ACTIVE, max_length=16, index=True)
    linked_account_id: Optional[int] = Field(
        default=None, foreign_key="account.id", ondelete="SET NULL"
    )

    schedules: list["PaymentSchedule"] = Relationship(
        back_populates="biller",
        sa_relationship=relationship(
            "PaymentSchedule",
            back_populates="biller",
            cascade="all, delete-orphan",
            passive_deletes=True,
        ),
    )

    @property
    def is_active(self) -> bool:
        return self.status == BILLER_ACTIVE
