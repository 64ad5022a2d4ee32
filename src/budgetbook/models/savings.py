"""Savings goals held inside an account."""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar, Optional

from sqlalchemy.orm import relationship
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:  # pragma: no cover
    from .account import Account


class SavingsGoal(SQLModel, table=True):
    """A savings jar tracked against an account."""

    __tablename__: ClassVar[str] = "savings_goal"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(nullable=False, index=True, max_length=64)
    name: str = Field(nullable=False, max_length=128)
    account_id: int = Field(foreign_key="account.id", ondelete="CASCADE", index=True)
    current_balance: float = Field(default=0.0, nullable=False)

    account: Optional["Account"] = Relationship(
        back_populates="savings_goals",
        sa_relationship=relationship("Account", back_populates="savings_goals"),
    )
