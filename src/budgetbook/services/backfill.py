"""Idempotent repair of a user's schedules and import of legacy schedule arrays.

Older data kept each biller's schedules as a JSON array on the biller row::

    {"month": "January", "year": "2026", "expectedAmount": 120.0,
     "amountPaid": 120.0, "datePaid": "2026-01-14", "receipt": "jan.pdf",
     "accountId": 3}

Importing such an array goes through the same ``(parent, period)`` upsert as
generation, so re-running an import inserts nothing new. A legacy entry that
was paid gets a settling transaction written alongside it; the legacy
account balance already reflects that payment, so balances are not moved.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

from sqlmodel import Session, select

from .. import periods
from ..errors import NotFound, ValidationError
from ..infra.database import SessionFactory
from ..infra.repositories.biller import load_biller
from ..logging_config import get_logger
from ..models.account import Account
from ..models.biller import Biller
from ..models.installment import Installment
from ..models.schedule import PaymentSchedule
from ..models.transaction import PAYMENT, Transaction
from .balances import to_cents
from .schedules import (
    GenerationResult,
    Window,
    generate_for_biller,
    generate_for_installment,
    plan_biller_rows,
    upsert_schedules,
    visible_window,
)

logger = get_logger(__name__)

LEGACY_NOTE = "Imported from legacy schedule"


@dataclass(slots=True)
class LegacyEntry:
    """One validated element of a legacy schedules array."""

    period: str
    expected_amount: Optional[float]
    amount_paid: float
    date_paid: Optional[date]
    receipt: Optional[str]
    account_id: Optional[int]

    @property
    def is_paid(self) -> bool:
        return self.amount_paid > 0


def _number(raw: Any, field_name: str, index: int) -> Optional[float]:
    if raw is None or raw == "":
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            f"Legacy entry {index}: {field_name} is not a number", entity="legacy_schedule", key=index
        ) from exc
    if not math.isfinite(value) or value < 0:
        raise ValidationError(
            f"Legacy entry {index}: {field_name} must be a non-negative number",
            entity="legacy_schedule",
            key=index,
        )
    return value


def parse_legacy_entry(raw: Mapping[str, Any], index: int = 0) -> LegacyEntry:
    """Validate one legacy element; raises ValidationError on anything malformed."""

    if not isinstance(raw, Mapping):
        raise ValidationError(f"Legacy entry {index} is not an object", entity="legacy_schedule", key=index)
    period = periods.period_from_name(raw.get("month"), raw.get("year"))

    date_paid = None
    if raw.get("datePaid"):
        try:
            date_paid = date.fromisoformat(str(raw["datePaid"])[:10])
        except ValueError as exc:
            raise ValidationError(
                f"Legacy entry {index}: invalid datePaid {raw['datePaid']!r}",
                entity="legacy_schedule",
                key=index,
            ) from exc

    account_id = None
    if raw.get("accountId") not in (None, ""):
        try:
            account_id = int(raw["accountId"])
        except (TypeError, ValueError) as exc:
            raise ValidationError(
                f"Legacy entry {index}: invalid accountId {raw['accountId']!r}",
                entity="legacy_schedule",
                key=index,
            ) from exc

    return LegacyEntry(
        period=period,
        expected_amount=_number(raw.get("expectedAmount"), "expectedAmount", index),
        amount_paid=_number(raw.get("amountPaid"), "amountPaid", index) or 0.0,
        date_paid=date_paid,
        receipt=raw.get("receipt") or None,
        account_id=account_id,
    )


def parse_legacy_entries(raw_entries: Sequence[Mapping[str, Any]]) -> list[LegacyEntry]:
    return [parse_legacy_entry(raw, index) for index, raw in enumerate(raw_entries)]


def load_legacy_file(path: str | Path) -> dict[int, list[LegacyEntry]]:
    """Read ``{"<biller id>": [entries...]}`` from a JSON export and validate it all."""

    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValidationError(f"Legacy file is not valid JSON: {exc}", entity="legacy_schedule", key=str(path)) from exc
    if not isinstance(payload, dict):
        raise ValidationError(
            "Legacy file must map biller ids to schedule arrays", entity="legacy_schedule", key=str(path)
        )
    parsed: dict[int, list[LegacyEntry]] = {}
    for raw_id, entries in payload.items():
        try:
            biller_id = int(raw_id)
        except ValueError as exc:
            raise ValidationError(f"Invalid biller id {raw_id!r}", entity="legacy_schedule", key=raw_id) from exc
        if not isinstance(entries, list):
            raise ValidationError(
                f"Schedules for biller {raw_id} must be a list", entity="legacy_schedule", key=raw_id
            )
        parsed[biller_id] = parse_legacy_entries(entries)
    return parsed


def _owned_account(session: Session, account_id: Optional[int], user_id: str) -> Optional[int]:
    if account_id is None:
        return None
    found = session.exec(
        select(Account.id).where(Account.id == account_id, Account.user_id == user_id)
    ).first()
    if found is None:
        logger.warning("Legacy account reference dropped", extra={"account_id": account_id})
    return found


def _record_legacy_payment(session: Session, biller: Biller, entry: LegacyEntry) -> None:
    schedule = session.exec(
        select(PaymentSchedule).where(
            PaymentSchedule.biller_id == biller.id, PaymentSchedule.period == entry.period
        )
    ).one()
    account_id = _owned_account(session, entry.account_id, biller.user_id)
    paid_on = entry.date_paid or periods.first_day(entry.period)
    txn = Transaction(
        user_id=biller.user_id,
        name=f"{biller.name} ({entry.period})",
        occurred_at=datetime.combine(paid_on, time(12, 0), tzinfo=timezone.utc),
        amount=-to_cents(entry.amount_paid),
        account_id=account_id,
        kind=PAYMENT,
        notes=LEGACY_NOTE,
        payment_schedule_id=schedule.id,
    )
    session.add(txn)
    schedule.amount_paid = to_cents(entry.amount_paid)
    schedule.date_paid = paid_on
    schedule.receipt = entry.receipt
    schedule.account_id = account_id
    session.add(schedule)
    session.flush()


def import_into_biller(session: Session, biller: Biller, entries: Sequence[LegacyEntry]) -> GenerationResult:
    """Upsert legacy entries onto *biller*; only newly inserted rows get their payment."""

    overrides = {e.period: e.expected_amount for e in entries if e.expected_amount is not None}
    unique_periods = list(dict.fromkeys(e.period for e in entries))
    rows = plan_biller_rows(biller, unique_periods, amount_overrides=overrides)
    result = upsert_schedules(session, rows)
    inserted = set(result.inserted)
    for entry in entries:
        if entry.is_paid and entry.period in inserted:
            _record_legacy_payment(session, biller, entry)
            inserted.discard(entry.period)
    logger.info("Legacy schedules imported", extra={"biller_id": biller.id, **result.counts})
    return result


def import_legacy_biller_schedules(
    session_factory: SessionFactory,
    biller_id: int,
    raw_entries: Sequence[Mapping[str, Any]],
    *,
    user_id: str,
) -> GenerationResult:
    """Validate a legacy schedules array and upsert it for one biller."""

    entries = parse_legacy_entries(raw_entries)
    with session_factory() as session:
        biller = load_biller(session, biller_id, user_id=user_id)
        return import_into_biller(session, biller, entries)


def backfill_user(
    session_factory: SessionFactory,
    *,
    user_id: str,
    window: Optional[Window] = None,
    legacy: Optional[Mapping[int, Sequence[LegacyEntry]]] = None,
) -> GenerationResult:
    """Regenerate every schedule a user should have.

    Installments get their full term, billers the visible window, and any
    legacy arrays are imported first so their amounts and payments win over
    generated defaults. Each obligation is its own unit of work.
    """

    window = window or visible_window()
    total = GenerationResult()

    with session_factory() as session:
        biller_ids = list(session.exec(select(Biller.id).where(Biller.user_id == user_id)).all())
        installment_ids = list(
            session.exec(select(Installment.id).where(Installment.user_id == user_id)).all()
        )

    unknown = sorted(set(legacy or {}) - set(biller_ids))
    if unknown:
        raise NotFound(f"Biller {unknown[0]} not found", entity="biller", key=unknown[0])

    for biller_id, entries in (legacy or {}).items():
        with session_factory() as session:
            biller = load_biller(session, biller_id, user_id=user_id)
            total.merge(import_into_biller(session, biller, entries))

    for installment_id in installment_ids:
        with session_factory() as session:
            installment = session.get(Installment, installment_id)
            total.merge(generate_for_installment(session, installment))

    for biller_id in biller_ids:
        with session_factory() as session:
            biller = session.get(Biller, biller_id)
            total.merge(generate_for_biller(session, biller, window=window))

    logger.info("Backfill finished", extra={"user_id": user_id, **total.counts})
    return total
