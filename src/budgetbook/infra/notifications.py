"""Row-level change notifications for accounts and transactions.

Balance displays subscribe to the feed instead of polling. Events are
collected while a session flushes and only delivered once the unit of work
commits, so subscribers never observe rolled-back state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from sqlalchemy import event
from sqlmodel import Session, SQLModel

from ..logging_config import get_logger
from ..models.account import Account
from ..models.transaction import Transaction

logger = get_logger(__name__)

INSERT = "insert"
UPDATE = "update"
DELETE = "delete"

_PENDING_KEY = "budgetbook.pending_changes"
_ATTACHED_KEY = "budgetbook.change_feed"


@dataclass(frozen=True)
class ChangeEvent:
    """A committed mutation of a watched row; ``row`` is the full changed row."""

    table: str
    operation: str
    row: dict[str, Any] = field(default_factory=dict)

    @property
    def user_id(self) -> Optional[str]:
        return self.row.get("user_id")


Subscriber = Callable[[ChangeEvent], None]


class ChangeFeed:
    """In-process publish/subscribe channel fed by SQLAlchemy session events."""

    def __init__(self, models: Iterable[type[SQLModel]] = (Account, Transaction)) -> None:
        self._models = tuple(models)
        self._subscribers: list[tuple[Optional[str], Subscriber]] = []

    def subscribe(self, callback: Subscriber, *, user_id: Optional[str] = None) -> Callable[[], None]:
        """Register *callback*; when *user_id* is given only that owner's rows are delivered.

        Returns a function that removes the subscription.
        """

        entry = (user_id, callback)
        self._subscribers.append(entry)

        def _unsubscribe() -> None:
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return _unsubscribe

    def attach(self, session: Session) -> None:
        """Start collecting changes from *session*."""

        if session.info.get(_ATTACHED_KEY) is self:
            return
        session.info[_ATTACHED_KEY] = self
        event.listen(session, "after_flush", self._collect)
        event.listen(session, "after_commit", self._dispatch)
        event.listen(session, "after_rollback", self._discard)

    def publish(self, change: ChangeEvent) -> None:
        for owner, callback in list(self._subscribers):
            if owner is not None and owner != change.user_id:
                continue
            try:
                callback(change)
            except Exception:
                # The write is already committed; a broken listener must not undo it.
                logger.exception(
                    "Change subscriber failed",
                    extra={"table": change.table, "operation": change.operation},
                )

    def _watched(self, obj: object) -> bool:
        return isinstance(obj, self._models)

    def _collect(self, session: Session, flush_context) -> None:
        pending: list[ChangeEvent] = session.info.setdefault(_PENDING_KEY, [])
        for obj in session.new:
            if self._watched(obj):
                pending.append(ChangeEvent(obj.__tablename__, INSERT, obj.model_dump()))
        for obj in session.dirty:
            if self._watched(obj) and session.is_modified(obj, include_collections=False):
                pending.append(ChangeEvent(obj.__tablename__, UPDATE, obj.model_dump()))
        for obj in session.deleted:
            if self._watched(obj):
                pending.append(ChangeEvent(obj.__tablename__, DELETE, obj.model_dump()))

    def _dispatch(self, session: Session) -> None:
        pending: list[ChangeEvent] = session.info.pop(_PENDING_KEY, [])
        for change in pending:
            self.publish(change)

    def _discard(self, session: Session) -> None:
        session.info.pop(_PENDING_KEY, None)
