"""Typer console interface for ``upi_ledger``.

Loads ``.env`` from the working directory with ``python-dotenv`` and configures
logging once in the root callback; commands print with ``rich``. Business logic
lives in ``upi_ledger.pipeline`` and ``upi_ledger.classifier``.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .currency import format_currency, sum_in_inr
from .errors import RulesConfigError, SecretError
from .logging_setup import configure_logging
from .models import Currency, ParsedData, UploadedFile

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="Ingest UPI and wallet payment-history exports and categorize every transaction.",
)
console = Console()
err_console = Console(stderr=True)


def _read_upload(path: Path) -> UploadedFile:
    try:
        return UploadedFile(name=path.name, content=path.read_bytes())
    except FileNotFoundError:
        err_console.print(f"[red]Error:[/red] File not found: {path}")
        raise typer.Exit(1) from None
    except PermissionError:
        err_console.print(f"[red]Error:[/red] Permission denied: {path}")
        raise typer.Exit(1) from None


def _parse_passwords(values: list[str]) -> dict[str, str]:
    secrets: dict[str, str] = {}
    for raw in values:
        name, sep, secret = raw.partition("=")
        if not sep or not name:
            err_console.print(f"[red]Error:[/red] --password expects NAME=SECRET, got {raw!r}")
            raise typer.Exit(2)
        secrets[name] = secret
    return secrets


def _prompt_secret(file: UploadedFile, error: SecretError, attempt: int) -> str | None:
    err_console.print(f"[yellow]{escape(str(error))}[/yellow]")
    secret = typer.prompt(f"Password for {file.name}", default="", hide_input=True)
    return secret or None


def _transactions_table(data: ParsedData, limit: int) -> Table:
    table = Table(title="Transactions")
    table.add_column("When")
    table.add_column("Source")
    table.add_column("Description")
    table.add_column("Amount", justify="right")
    table.add_column("Category")
    rows = sorted(data.transactions, key=lambda tx: tx.timestamp, reverse=True)
    for tx in rows[:limit]:
        table.add_row(
            tx.timestamp.strftime("%Y-%m-%d %H:%M"),
            str(tx.source_app),
            escape(tx.description),
            format_currency(tx.amount),
            tx.category or "",
        )
    return table


@app.command("ingest")
def ingest_cmd(
    files: Annotated[list[Path], typer.Argument(help="Export files to ingest")],
    password: Annotated[
        list[str] | None,
        typer.Option("--password", "-p", help="Secret for a protected file, as NAME=SECRET."),
    ] = None,
    prompt: Annotated[
        bool, typer.Option("--prompt/--no-prompt", help="Ask for missing or wrong passwords.")
    ] = True,
    limit: Annotated[int, typer.Option(min=0, help="Transactions to show (0 hides the table).")] = 20,
) -> None:
    """Detect, parse and categorize each file, then print a summary."""

    from .pipeline import OutcomeStatus, Pipeline

    uploads = [_read_upload(p) for p in files]
    secrets = _parse_passwords(password or [])
    try:
        pipeline = Pipeline()
        result = pipeline.ingest(
            uploads, secrets, secret_prompt=_prompt_secret if prompt else None
        )
    except RulesConfigError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    summary = Table(title="Files")
    summary.add_column("File")
    summary.add_column("Source")
    summary.add_column("Status")
    summary.add_column("Records", justify="right")
    summary.add_column("Skipped", justify="right")
    summary.add_column("Message")
    style = {
        OutcomeStatus.OK: "green",
        OutcomeStatus.EMPTY: "yellow",
        OutcomeStatus.FAILED: "red",
    }
    for o in result.outcomes:
        status = str(o.status)
        if o.failure_kind is not None:
            status = f"{status} ({o.failure_kind})"
        summary.add_row(
            o.file_name,
            str(o.adapter or "-"),
            f"[{style[o.status]}]{status}[/{style[o.status]}]",
            str(o.data.record_count()),
            str(o.data.skipped_rows),
            escape(o.message or ""),
        )
    console.print(summary)

    data = result.data
    console.print(
        f"transactions={len(data.transactions)} activities={len(data.activities)} "
        f"group_expenses={len(data.group_expenses)} cashback={len(data.cashback_rewards)} "
        f"vouchers={len(data.voucher_rewards)}"
    )
    if data.transactions:
        rate = pipeline.settings.usd_inr_rate
        total = sum_in_inr((tx.amount for tx in data.transactions), rate)
        console.print(f"total={format_currency(Currency(total))} (USD at {rate})")
    if limit and data.transactions:
        console.print(_transactions_table(data, limit))

    if result.failed:
        raise typer.Exit(1)


@app.command("detect")
def detect_cmd(
    file: Annotated[Path, typer.Argument(help="File to identify")],
) -> None:
    """Show which source app each adapter thinks the file came from."""

    from .detector import SourceDetector

    upload = _read_upload(file)
    ranked = SourceDetector().candidates(upload)
    if not ranked:
        err_console.print(f"[red]Unsupported:[/red] no adapter recognised {file.name}")
        raise typer.Exit(1)
    table = Table(title=file.name)
    table.add_column("Source")
    table.add_column("Confidence", justify="right")
    table.add_column("Needs password")
    for m in ranked:
        table.add_row(str(m.adapter_id), f"{m.confidence:.2f}", "yes" if m.requires_secret else "no")
    console.print(table)


@app.command("classify")
def classify_cmd(
    text: Annotated[str, typer.Argument(help="Merchant or description text")],
    amount: Annotated[
        str | None, typer.Option(help="Transaction amount, used by the heuristic layer.")
    ] = None,
) -> None:
    """Classify a single merchant string and show which rule matched."""

    from .classifier import default_classifier

    value: Decimal | None = None
    if amount is not None:
        try:
            value = Decimal(amount.replace(",", ""))
        except InvalidOperation:
            err_console.print(f"[red]Error:[/red] not a number: {amount!r}")
            raise typer.Exit(2) from None
    try:
        result = default_classifier().classify(text, value)
    except RulesConfigError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    console.print(f"category:   {escape(result.category)}")
    console.print(f"confidence: {result.confidence:.2f}")
    console.print(
        f"rule:       {result.matched_rule.layer.name.lower()} "
        f"(priority {result.matched_rule.priority}) {escape(result.matched_rule.matcher)}"
    )
    console.print(f"excluded:   {'yes' if result.is_excluded else 'no'}")


@app.callback()
def _root(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log at DEBUG level.")] = False,
) -> None:
    """Load ``.env`` (without overriding the environment) and configure logging."""

    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)
    configure_logging("DEBUG" if verbose else None)


if __name__ == "__main__":  # pragma: no cover
    app()
