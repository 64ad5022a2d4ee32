"""Payment schedule: one expected payment for one obligation in one period."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, ClassVar, Optional

from sqlalchemy import CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:  # pragma: no cover
    from .biller import Biller
    from .installment import Installment


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PaymentSchedule(SQLModel, table=True):
    """The reconciliation unit of the ledger.

    Exactly one of ``biller_id``/``installment_id`` is set, and a parent has
    at most one row per ``period``. Settlement fields (``amount_paid``,
    ``date_paid``, ``receipt``, ``account_id``) mirror the single transaction
    that references the row and are cleared when that transaction goes away.
    """

    __tablename__: ClassVar[str] = "payment_schedule"
    __table_args__ = (
        CheckConstraint(
            "(biller_id IS NOT NULL AND installment_id IS NULL)"
            " OR (biller_id IS NULL AND installment_id IS NOT NULL)",
            name="ck_payment_schedule_single_parent",
        ),
        UniqueConstraint("biller_id", "period", name="uq_payment_schedule_biller_period"),
        UniqueConstraint(
            "installment_id", "period", name="uq_payment_schedule_installment_period"
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(nullable=False, index=True, max_length=64)
    biller_id: Optional[int] = Field(
        default=None, foreign_key="biller.id", ondelete="CASCADE", index=True
    )
    installment_id: Optional[int] = Field(
        default=None, foreign_key="installment.id", ondelete="CASCADE", index=True
    )
    period: str = Field(nullable=False, max_length=7, index=True)
    expected_amount: float = Field(default=0.0, nullable=False)
    amount_paid: Optional[float] = Field(default=None)
    date_paid: Optional[date] = Field(default=None)
    receipt: Optional[str] = Field(default=None, max_length=512)
    account_id: Optional[int] = Field(
        default=None, foreign_key="account.id", ondelete="SET NULL"
    )
    timing: Optional[str] = Field(default=None, max_length=3)
    created_at: datetime = Field(default_factory=_utcnow, nullable=False)
    updated_at: datetime = Field(
        default_factory=_utcnow,
        nullable=False,
        sa_column_kwargs={"onupdate": _utcnow},
    )

    biller: Optional["Biller"] = Relationship(
        back_populates="schedules",
        sa_relationship=relationship("Biller", back_populates="schedules"),
    )
    installment: Optional["Installment"] = Relationship(
        back_populates="schedules",
        sa_relationship=relationship("Installment", back_populates="schedules"),
    )

    @property
    def is_paid(self) -> bool:
        return self.amount_paid is not None

    def clear_settlement(self) -> None:
        """Return the row to its unpaid state."""

        self.amount_paid = None
        self.date_paid = None
        self.receipt = None
        self.account_id = None
