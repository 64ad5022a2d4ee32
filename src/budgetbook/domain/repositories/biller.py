"""Biller repository protocol."""

from __future__ import annotations

from typing import Optional, Protocol

from ...models.biller import Biller


class BillerRepository(Protocol):
    def get_by_id(self, biller_id: int, *, user_id: str) -> Optional[Biller]:
        ...

    def list_all(self, *, user_id: str) -> list[Biller]:
        ...

    def list_active(self, *, user_id: str) -> list[Biller]:
        ...

    def update(self, biller: Biller, *, user_id: str) -> Biller:
        ...

    def delete(self, biller_id: int, *, user_id: str) -> None:
        ...
