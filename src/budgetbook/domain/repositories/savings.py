"""Savings goal repository protocol."""

from __future__ import annotations

from typing import Optional, Protocol

from ...models.savings import SavingsGoal


class SavingsGoalRepository(Protocol):
    def get_by_id(self, goal_id: int, *, user_id: str) -> Optional[SavingsGoal]:
        ...

    def list_all(self, *, user_id: str) -> list[SavingsGoal]:
        ...

    def create(self, goal: SavingsGoal, *, user_id: str) -> SavingsGoal:
        ...

    def update(self, goal: SavingsGoal, *, user_id: str) -> SavingsGoal:
        ...

    def delete(self, goal_id: int, *, user_id: str) -> None:
        ...
