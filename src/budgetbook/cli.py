"""Command line entry points for BudgetBook."""

from __future__ import annotations

from functools import wraps
from typing import Optional

import click
from sqlalchemy import inspect

from .config import BaseConfig
from .context import LedgerContext, create_ledger_context
from .errors import LedgerError
from .infra.database import init_database
from .logging_config import setup_logging
from .services import backfill, schedules


def _ledger_errors(func):
    """Report ledger errors as click failures instead of tracebacks."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except LedgerError as exc:
            raise click.ClickException(f"{type(exc).__name__}: {exc}") from exc

    return wrapper


def _one_obligation(biller_id: Optional[int], installment_id: Optional[int]) -> None:
    if (biller_id is None) == (installment_id is None):
        raise click.UsageError("Pass exactly one of --biller or --installment.")


@click.group()
@click.pass_context
def main(ctx: click.Context) -> None:
    """BudgetBook payment schedule ledger."""

    config = BaseConfig()
    setup_logging(config)
    ctx.obj = create_ledger_context(config)
    ctx.call_on_close(ctx.obj.dispose)


@main.command("init-db")
@click.pass_obj
def init_db(ledger: LedgerContext) -> None:
    """Create any missing tables.

    Every other command also ensures the schema before it runs.
    """

    init_database(ledger.engine)
    tables = inspect(ledger.engine).get_table_names()
    click.echo(f"Database ready: {ledger.config.DATABASE_URL} ({len(tables)} tables)")


@main.command("generate")
@click.option("--user", "user_id", required=True, help="Owner of the obligation")
@click.option("--biller", "biller_id", type=int, default=None, help="Biller id")
@click.option("--installment", "installment_id", type=int, default=None, help="Installment id")
@click.pass_obj
@_ledger_errors
def generate(
    ledger: LedgerContext, user_id: str, biller_id: Optional[int], installment_id: Optional[int]
) -> None:
    """Generate schedules for one biller or installment."""

    _one_obligation(biller_id, installment_id)
    result = schedules.generate_schedules(
        ledger.session_factory,
        user_id=user_id,
        biller_id=biller_id,
        installment_id=installment_id,
        window=ledger.window(),
    )
    click.echo(f"Inserted {len(result.inserted)}, skipped {len(result.skipped)}")


@main.command("backfill")
@click.option("--user", "user_id", required=True, help="User whose schedules are rebuilt")
@click.option(
    "--legacy-json",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="JSON file mapping biller ids to legacy schedule arrays",
)
@click.pass_obj
@_ledger_errors
def backfill_command(ledger: LedgerContext, user_id: str, legacy_json: Optional[str]) -> None:
    """Regenerate every schedule for a user; safe to run repeatedly."""

    legacy = backfill.load_legacy_file(legacy_json) if legacy_json else None
    result = backfill.backfill_user(
        ledger.session_factory, user_id=user_id, window=ledger.window(), legacy=legacy
    )
    click.echo(f"Backfill complete: inserted {len(result.inserted)}, skipped {len(result.skipped)}")


@main.command("schedules")
@click.option("--user", "user_id", required=True, help="Owner of the obligation")
@click.option("--biller", "biller_id", type=int, default=None, help="Biller id")
@click.option("--installment", "installment_id", type=int, default=None, help="Installment id")
@click.pass_obj
@_ledger_errors
def list_schedules(
    ledger: LedgerContext, user_id: str, biller_id: Optional[int], installment_id: Optional[int]
) -> None:
    """List one obligation's schedules with their status."""

    _one_obligation(biller_id, installment_id)
    due_day = schedules.DEFAULT_INSTALLMENT_DUE_DAY
    if biller_id is not None:
        biller = ledger.biller_repo.get_by_id(biller_id, user_id=user_id)
        if biller is None:
            raise click.ClickException(f"NotFound: Biller {biller_id} not found")
        due_day = biller.due_day
    rows = ledger.schedule_repo.list_by_obligation(
        user_id=user_id, biller_id=biller_id, installment_id=installment_id
    )
    if not rows:
        click.echo("No schedules.")
        return
    for row in rows:
        status = schedules.schedule_status(row, due_day=due_day)
        paid = f"{row.amount_paid:.2f}" if row.amount_paid is not None else "-"
        click.echo(f"{row.period}  expected {row.expected_amount:>10.2f}  paid {paid:>10}  {status}")


if __name__ == "__main__":  # pragma: no cover
    main()
