"""Account repository protocol."""

from __future__ import annotations

from typing import Optional, Protocol

from ...models.account import Account


class AccountRepository(Protocol):
    """Repository for managing account entities."""

    def get_by_id(self, account_id: int, *, user_id: str) -> Optional[Account]:
        """Retrieve an account by ID."""
        ...

    def list_all(self, *, user_id: str) -> list[Account]:
        """List all accounts owned by the user."""
        ...

    def create(self, account: Account, *, user_id: str) -> Account:
        """Create a new account."""
        ...

    def update(self, account: Account, *, user_id: str) -> Account:
        """Update descriptive fields of an account (never its balance)."""
        ...

    def delete(self, account_id: int, *, user_id: str) -> None:
        """Delete an account; installments and savings goals cascade."""
        ...
