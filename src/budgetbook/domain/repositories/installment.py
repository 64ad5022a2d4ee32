"""Installment repository protocol."""

from __future__ import annotations

from typing import Optional, Protocol

from ...models.installment import Installment


class InstallmentRepository(Protocol):
    def get_by_id(self, installment_id: int, *, user_id: str) -> Optional[Installment]:
        ...

    def list_all(self, *, user_id: str) -> list[Installment]:
        ...

    def list_by_account(self, account_id: int, *, user_id: str) -> list[Installment]:
        ...

    def update(self, installment: Installment, *, user_id: str) -> Installment:
        ...

    def delete(self, installment_id: int, *, user_id: str) -> None:
        ...
