"""CLI for the ``spend_tracker`` package.

Typer-based console interface over the ingestion pipeline, the sweep, the
rule table and the reports. ``.env`` in the working directory is loaded with
``python-dotenv`` (without overriding the environment) before any command
runs. Business logic lives in the sibling modules; commands here only wire
sources, sinks and rule stores together and render results.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Annotated, Any, NoReturn

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError

from db.client import init_schema, session_scope

from .config import TrackerConfig, load_config
from .errors import ConfigurationError, SpendTrackerError
from .logging_setup import configure_logging
from .models import PurchaseRecord
from .persistence import SqlPurchaseSink, list_purchases
from .pipeline import run_ingestion
from .report import (
    build_advisor_prompt,
    category_breakdown,
    format_clp,
    monthly_pivot,
    top_purchases,
)
from .rules import (
    CsvRuleSource,
    DbRuleSource,
    load_rules,
    read_rule_seed_file,
    replace_rules,
    seed_default_rules,
)
from .sources import EmlDirectoryMessageSource, ImapMessageSource, MessageSource
from .sweep import recategorize_uncategorized
from .tabular import write_csv

console = Console()

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Turn card purchase notification emails into a categorized spending table. "
        "Loads DATABASE_URL and SPEND_TRACKER_* settings from a local .env."
    ),
)
rules_app = typer.Typer(no_args_is_help=True, help="Inspect and edit keyword rules.")
report_app = typer.Typer(no_args_is_help=True, help="Summaries over stored purchases.")
app.add_typer(rules_app, name="rules")
app.add_typer(report_app, name="report")


# ---- Small module-level helpers used by CLI commands -------------------------


def _fail(message: str) -> NoReturn:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(1)


def _database_url(ctx: typer.Context) -> str:
    obj: dict[str, Any] = ctx.find_root().obj or {}
    url = obj.get("database_url") or os.getenv("DATABASE_URL")
    if not url:
        _fail("DATABASE_URL is not set (pass --database-url or add it to .env).")
    return url


def _load_config() -> TrackerConfig:
    try:
        return load_config()
    except ConfigurationError as e:
        _fail(str(e))


def _message_source(config: TrackerConfig, eml_dir: Path | None) -> MessageSource:
    if eml_dir is not None:
        return EmlDirectoryMessageSource(eml_dir)
    if config.imap is None:
        _fail("no message source: pass --eml-dir or set SPEND_TRACKER_IMAP_HOST.")
    return ImapMessageSource(
        host=config.imap.host,
        port=config.imap.port,
        user=config.imap.user,
        password=config.imap.password,
        mailbox=config.imap.mailbox,
    )


# ---- Commands ----------------------------------------------------------------


@app.command("init-db")
def init_db_cmd(ctx: typer.Context) -> None:
    """Create missing tables (SQLite/dev). Use Alembic for managed databases."""

    url = _database_url(ctx)
    try:
        init_schema(database_url=url)
    except SQLAlchemyError as e:
        _fail(f"schema creation failed: {e}")
    typer.echo("Database schema ready.")


@app.command("ingest")
def ingest_cmd(
    ctx: typer.Context,
    eml_dir: Annotated[
        Path | None,
        typer.Option(
            "--eml-dir",
            help="Read *.eml files from this directory instead of the IMAP mailbox.",
            file_okay=False,
            dir_okay=True,
        ),
    ] = None,
    limit: Annotated[
        int | None,
        typer.Option("--limit", min=0, help="Examine at most N candidate messages."),
    ] = None,
) -> None:
    """Fetch notifications, append new purchases and categorize them."""

    url = _database_url(ctx)
    config = _load_config()
    source = _message_source(config, eml_dir)
    if limit is None:
        limit = config.max_messages

    try:
        with session_scope(database_url=url) as session:
            rules = load_rules(DbRuleSource(session))
            outcome = run_ingestion(
                source, SqlPurchaseSink(session), rules, query=config.query, limit=limit
            )
    except SpendTrackerError as e:
        _fail(str(e))
    except SQLAlchemyError as e:
        _fail(f"database error: {e}")

    stats = (
        f"fetched {outcome.fetched}, already stored {outcome.skipped_known}, "
        f"not notifications {outcome.unparsed}"
    )
    if outcome.nothing_new:
        typer.echo(f"No new purchases ({stats}).")
        return

    typer.echo(f"Appended {len(outcome.appended)} purchases ({stats}).")
    table = Table("Fecha", "Comercio", "Monto", "Categoría")
    for r in outcome.appended:
        table.add_row(r.timestamp, r.merchant, format_clp(r.amount), r.category or "-")
    console.print(table)


@app.command("recategorize")
def recategorize_cmd(ctx: typer.Context) -> None:
    """Fill empty categories using the current keyword rules."""

    url = _database_url(ctx)
    try:
        with session_scope(database_url=url) as session:
            rules = load_rules(DbRuleSource(session))
            updated = recategorize_uncategorized(SqlPurchaseSink(session), rules)
    except SpendTrackerError as e:
        _fail(str(e))
    except SQLAlchemyError as e:
        _fail(f"database error: {e}")
    typer.echo(f"Recategorized {updated} purchases.")


@app.command("export")
def export_cmd(
    ctx: typer.Context,
    csv_path: Annotated[
        Path,
        typer.Option("--csv-path", help="Destination CSV file.", dir_okay=False),
    ],
) -> None:
    """Write every stored purchase to a CSV file with named columns."""

    url = _database_url(ctx)
    try:
        with session_scope(database_url=url) as session:
            records = list_purchases(session)
        count = write_csv(records, csv_path)
    except SpendTrackerError as e:
        _fail(str(e))
    except SQLAlchemyError as e:
        _fail(f"database error: {e}")
    except OSError as e:
        _fail(f"cannot write {csv_path}: {e}")
    typer.echo(f"Exported {count} purchases to {csv_path}.")


# ---- rules -------------------------------------------------------------------


@rules_app.command("list")
def rules_list_cmd(ctx: typer.Context) -> None:
    """Show the active rules in matching order (longest keyword first)."""

    url = _database_url(ctx)
    try:
        with session_scope(database_url=url) as session:
            rules = load_rules(DbRuleSource(session))
    except SQLAlchemyError as e:
        _fail(f"database error: {e}")
    if not rules:
        typer.echo("No rules configured.")
        return
    table = Table("Keyword", "Categoría")
    for rule in rules:
        table.add_row(rule.keyword, rule.category)
    console.print(table)


@rules_app.command("seed-defaults")
def rules_seed_cmd(ctx: typer.Context) -> None:
    """Insert the default rules when the rule table is empty."""

    url = _database_url(ctx)
    try:
        with session_scope(database_url=url) as session:
            inserted = seed_default_rules(session)
    except SQLAlchemyError as e:
        _fail(f"database error: {e}")
    if inserted:
        typer.echo(f"Seeded {inserted} default rules.")
    else:
        typer.echo("Rules already configured; nothing seeded.")


@rules_app.command("import")
def rules_import_cmd(
    ctx: typer.Context,
    file: Annotated[
        Path,
        typer.Option("--file", help="JSON rule file ({'rules': [...]}) or CSV with --csv."),
    ],
    csv_format: Annotated[
        bool,
        typer.Option("--csv", help="Read a two-column CSV (header row first)."),
    ] = False,
) -> None:
    """Replace the rule table with the rules in FILE (order preserved)."""

    url = _database_url(ctx)
    try:
        if csv_format:
            rows = CsvRuleSource(file).rows()
            if rows is None:
                raise ConfigurationError(f"rule file not found: {file}")
            pairs = [(str(r[0]), str(r[1])) for r in rows if len(r) >= 2]
        else:
            pairs = read_rule_seed_file(file)
        with session_scope(database_url=url) as session:
            count = replace_rules(session, pairs)
    except SpendTrackerError as e:
        _fail(str(e))
    except SQLAlchemyError as e:
        _fail(f"database error: {e}")
    typer.echo(f"Imported {count} rules.")


# ---- report ------------------------------------------------------------------


def _stored_records(ctx: typer.Context) -> list[PurchaseRecord]:
    url = _database_url(ctx)
    try:
        with session_scope(database_url=url) as session:
            return list_purchases(session)
    except SpendTrackerError as e:
        _fail(str(e))
    except SQLAlchemyError as e:
        _fail(f"database error: {e}")


@report_app.command("monthly")
def report_monthly_cmd(ctx: typer.Context) -> None:
    """Spend per month and category (categorized purchases only)."""

    pivot = monthly_pivot(_stored_records(ctx))
    if not pivot.months:
        typer.echo("No categorized purchases yet.")
        return
    table = Table("Año", "Mes", *pivot.categories)
    for year, month, values in pivot.rows():
        table.add_row(
            str(year), str(month), *(format_clp(v) if v is not None else "" for v in values)
        )
    console.print(table)


@report_app.command("top")
def report_top_cmd(
    ctx: typer.Context,
    n: Annotated[int, typer.Option("-n", "--count", min=1, help="How many purchases.")] = 5,
) -> None:
    """The largest purchases ever recorded."""

    top = top_purchases(_stored_records(ctx), n)
    if not top:
        typer.echo("No purchases stored.")
        return
    table = Table("Fecha", "Comercio", "Categoría", "Monto")
    for r in top:
        table.add_row(r.timestamp, r.merchant, r.category or "-", format_clp(r.amount))
    console.print(table)


@report_app.command("breakdown")
def report_breakdown_cmd(
    ctx: typer.Context,
    prompt: Annotated[
        bool, typer.Option("--prompt", help="Print an advisor prompt instead of a table.")
    ] = False,
) -> None:
    """Total and share of spend per category."""

    breakdown = category_breakdown(_stored_records(ctx))
    if not breakdown:
        typer.echo("No purchases stored.")
        return
    if prompt:
        typer.echo(build_advisor_prompt(breakdown))
        return
    table = Table("Categoría", "Total", "%")
    for share in breakdown:
        table.add_row(share.category, format_clp(share.total), f"{share.pct:.1f}")
    console.print(table)


@app.callback()
def _root(
    ctx: typer.Context,
    *,
    database_url: str | None = typer.Option(
        None, "--database-url", help="Override DATABASE_URL (falls back to env var)."
    ),
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures package logging.
    """

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging()
    ctx.obj = {"database_url": database_url}


if __name__ == "__main__":  # pragma: no cover
    # Running as a module: `python -m spend_tracker.cli`
    app()
