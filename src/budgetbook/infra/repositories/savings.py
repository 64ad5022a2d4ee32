"""SQLModel implementation of SavingsGoal repository."""

from __future__ import annotations

from typing import Optional

from sqlmodel import select

from ...errors import NotFound, ValidationError
from ...models.savings import SavingsGoal
from ..database import SessionFactory
from .account import load_account


class SQLModelSavingsGoalRepository:
    """SQLModel-based savings goal repository implementation."""

    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def get_by_id(self, goal_id: int, *, user_id: str) -> Optional[SavingsGoal]:
        with self.session_factory() as session:
            obj = session.exec(
                select(SavingsGoal).where(SavingsGoal.id == goal_id, SavingsGoal.user_id == user_id)
            ).first()
            if obj:
                session.expunge(obj)
            return obj

    def list_all(self, *, user_id: str) -> list[SavingsGoal]:
        with self.session_factory() as session:
            statement = (
                select(SavingsGoal)
                .where(SavingsGoal.user_id == user_id)
                .order_by(SavingsGoal.name)  # type: ignore
            )
            rows = list(session.exec(statement).all())
            session.expunge_all()
            return rows

    def create(self, goal: SavingsGoal, *, user_id: str) -> SavingsGoal:
        if not (goal.name or "").strip():
            raise ValidationError("Savings goal name is required", entity="savings_goal")
        with self.session_factory() as session:
            load_account(session, goal.account_id, user_id=user_id)
            goal.user_id = user_id
            session.add(goal)
            session.commit()
            session.refresh(goal)
            session.expunge(goal)
            return goal

    def update(self, goal: SavingsGoal, *, user_id: str) -> SavingsGoal:
        with self.session_factory() as session:
            existing = session.exec(
                select(SavingsGoal).where(SavingsGoal.id == goal.id, SavingsGoal.user_id == user_id)
            ).first()
            if existing is None:
                raise NotFound(f"Savings goal {goal.id} not found", entity="savings_goal", key=goal.id)
            load_account(session, goal.account_id, user_id=user_id)
            existing.sqlmodel_update(goal.model_dump(exclude={"id", "user_id"}))
            session.add(existing)
            session.commit()
            session.refresh(existing)
            session.expunge(existing)
            return existing

    def delete(self, goal_id: int, *, user_id: str) -> None:
        with self.session_factory() as session:
            goal = session.exec(
                select(SavingsGoal).where(SavingsGoal.id == goal_id, SavingsGoal.user_id == user_id)
            ).first()
            if goal:
                session.delete(goal)
                session.commit()
