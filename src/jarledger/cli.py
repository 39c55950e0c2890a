"""Command line entry point for the jar ledger."""

from __future__ import annotations

import functools
from pathlib import Path
from typing import Optional

import click

from .config import BaseConfig
from .context import AppContext, create_app_context
from .errors import LedgerError
from .logging_config import setup_logging, teardown_logging
from .models.transaction import Transaction
from .services import export_csv, reports, users
from .services.jars import sort_jars
from .services.money import format_money


def _handle_errors(func):
    """Report domain and validation errors as click errors instead of tracebacks."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (LedgerError, ValueError) as exc:
            raise click.ClickException(str(exc)) from exc

    return wrapper


def _format_transaction(txn: Transaction) -> str:
    display = reports.describe_transaction(txn)
    when = reports.day_label(txn.occurred_at)
    note = f"  {txn.note}" if txn.note else ""
    if txn.memo:
        note = f"{note} ({txn.memo})"
    return (
        f"{txn.id:>5}  {when:<9} {display.icon} {display.label:<12} "
        f"{display.sign}{format_money(txn.amount)}  jar={txn.jar_id}{note}"
    )


user_id_option = click.option("--user-id", "user_id", type=int, required=True, help="Acting user id")


@click.group()
@click.option("--database-url", default=None, help="Override JARLEDGER_DATABASE_URL")
@click.pass_context
def cli(ctx: click.Context, database_url: Optional[str]) -> None:
    """Envelope budgeting: jars, fills, spends and transfers."""

    config = BaseConfig()
    if database_url:
        config.DATABASE_URL = database_url
    setup_logging(config)
    app = create_app_context(config)
    ctx.obj = app
    ctx.call_on_close(app.dispose)
    ctx.call_on_close(teardown_logging)


@cli.command("init-db")
@click.pass_obj
def init_db(app: AppContext) -> None:
    """Create the database schema."""

    click.echo(f"Database ready: {app.config.DATABASE_URL}")


@cli.command("register")
@click.argument("email")
@click.option("--name", "display_name", default=None, help="Display name")
@click.pass_obj
@_handle_errors
def register(app: AppContext, email: str, display_name: Optional[str]) -> None:
    """Create the profile for EMAIL (or show the existing one)."""

    user = users.register_user(app.user_repo, email, display_name)
    click.echo(f"User {user.id}: {user.email}{' (pro)' if user.is_pro else ''}")


@cli.command("upgrade")
@click.argument("user_id", type=int)
@click.option("--billing-ref", default=None, help="External billing customer reference")
@click.option("--downgrade", is_flag=True, default=False, help="Return the user to the free tier")
@click.pass_obj
@_handle_errors
def upgrade(app: AppContext, user_id: int, billing_ref: Optional[str], downgrade: bool) -> None:
    """Mark USER_ID as pro (or free with --downgrade)."""

    user = users.set_pro(app.user_repo, user_id, not downgrade, billing_ref)
    click.echo(f"User {user.id} is now {'pro' if user.is_pro else 'free'}")


@cli.command("create-jar")
@user_id_option
@click.argument("name")
@click.option("--emoji", default=None)
@click.option("--color", default=None, help="#RRGGBB")
@click.option("--target", default=None, help="Savings goal amount")
@click.pass_obj
@_handle_errors
def create_jar(app: AppContext, user_id: int, name: str, emoji, color, target) -> None:
    """Create a jar called NAME."""

    jar = app.ledger.create_jar(user_id, name, emoji=emoji, color=color, target_amount=target)
    click.echo(f"Created jar {jar.id}: {jar.emoji} {jar.name} (position {jar.position})")


@cli.command("jars")
@user_id_option
@click.pass_obj
@_handle_errors
def list_jars(app: AppContext, user_id: int) -> None:
    """List the user's jars in display order."""

    jars = sort_jars(app.store.list_jars(user_id))
    if not jars:
        click.echo("No jars yet.")
        return
    for jar in jars:
        progress = reports.goal_progress(jar)
        goal = f"  {progress:.0f}% of {format_money(jar.target_amount)}" if progress is not None else ""
        click.echo(f"{jar.id:>4}  {jar.emoji} {jar.name:<20} {format_money(jar.balance):>12}{goal}")
    click.echo(f"Total: {format_money(reports.total_balance(jars))}")


@cli.command("fill")
@user_id_option
@click.argument("jar_id", type=int)
@click.argument("amount")
@click.option("--note", default=None)
@click.option("--key", "operation_key", default=None, help="Idempotency key for safe retries")
@click.pass_obj
@_handle_errors
def fill(app: AppContext, user_id: int, jar_id: int, amount: str, note, operation_key) -> None:
    """Add AMOUNT to JAR_ID."""

    txn = app.ledger.fill(jar_id, amount, note, user_id=user_id, operation_key=operation_key)
    click.echo(_format_transaction(txn))


@cli.command("spend")
@user_id_option
@click.argument("jar_id", type=int)
@click.argument("amount")
@click.option("--note", default=None)
@click.option("--key", "operation_key", default=None, help="Idempotency key for safe retries")
@click.pass_obj
@_handle_errors
def spend(app: AppContext, user_id: int, jar_id: int, amount: str, note, operation_key) -> None:
    """Log AMOUNT spent from JAR_ID."""

    txn = app.ledger.spend(jar_id, amount, note, user_id=user_id, operation_key=operation_key)
    click.echo(_format_transaction(txn))


@cli.command("transfer")
@user_id_option
@click.argument("from_jar_id", type=int)
@click.argument("to_jar_id", type=int)
@click.argument("amount")
@click.option("--note", default=None)
@click.option("--key", "operation_key", default=None, help="Idempotency key for safe retries")
@click.pass_obj
@_handle_errors
def transfer(app: AppContext, user_id: int, from_jar_id: int, to_jar_id: int, amount: str, note, operation_key) -> None:
    """Move AMOUNT from FROM_JAR_ID to TO_JAR_ID."""

    outgoing, incoming = app.ledger.transfer(
        from_jar_id, to_jar_id, amount, note, user_id=user_id, operation_key=operation_key
    )
    click.echo(_format_transaction(outgoing))
    click.echo(_format_transaction(incoming))


@cli.command("history")
@user_id_option
@click.argument("jar_id", type=int)
@click.option("--limit", default=None, type=int)
@click.pass_obj
@_handle_errors
def history(app: AppContext, user_id: int, jar_id: int, limit: Optional[int]) -> None:
    """Show the newest transactions of JAR_ID."""

    rows = reports.jar_history(
        app.store, jar_id, user_id=user_id, limit=limit or app.config.HISTORY_LIMIT
    )
    if not rows:
        click.echo("No transactions yet.")
    for txn in rows:
        click.echo(_format_transaction(txn))


@cli.command("activity")
@user_id_option
@click.option("--limit", default=None, type=int)
@click.pass_obj
@_handle_errors
def activity(app: AppContext, user_id: int, limit: Optional[int]) -> None:
    """Show everything the user recorded, newest first."""

    rows = reports.activity_feed(app.store, user_id=user_id, limit=limit or app.config.ACTIVITY_LIMIT)
    if not rows:
        click.echo("No activity yet.")
    for txn in rows:
        click.echo(_format_transaction(txn))


@cli.command("delete-jar")
@user_id_option
@click.argument("jar_id", type=int)
@click.confirmation_option(prompt="Are you sure? All transactions will be lost.")
@click.pass_obj
@_handle_errors
def delete_jar(app: AppContext, user_id: int, jar_id: int) -> None:
    """Delete JAR_ID and all its transactions."""

    app.ledger.delete_jar(jar_id, user_id=user_id)
    click.echo(f"Deleted jar {jar_id}")


@cli.command("reconcile")
@user_id_option
@click.argument("jar_id", type=int)
@click.option("--repair", is_flag=True, default=False, help="Rewrite the cached balance from the ledger")
@click.pass_obj
@_handle_errors
def reconcile(app: AppContext, user_id: int, jar_id: int, repair: bool) -> None:
    """Compare JAR_ID's balance with its transaction log."""

    result = reports.reconcile_jar(app.store, jar_id, user_id=user_id, repair=repair)
    status = "in sync" if result.in_sync else f"drift {format_money(result.drift)}"
    click.echo(
        f"Jar {jar_id}: cached {format_money(result.cached)}, "
        f"ledger {format_money(result.derived)} ({status})"
    )
    if result.repaired:
        click.echo("Cached balance repaired.")


@cli.command("export")
@user_id_option
@click.argument("jar_id", type=int)
@click.argument("output", type=click.Path(dir_okay=False, path_type=Path))
@click.pass_obj
@_handle_errors
def export(app: AppContext, user_id: int, jar_id: int, output: Path) -> None:
    """Write JAR_ID's full history to OUTPUT as CSV."""

    rows = reports.jar_history(app.store, jar_id, user_id=user_id, limit=None)
    path = export_csv.export_transactions_csv(transactions=rows, output_path=output)
    click.echo(f"Export written: {path} ({len(rows)} rows)")


def main() -> None:  # pragma: no cover - console script shim
    cli()
