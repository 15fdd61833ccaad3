"""
CLI interface for modguard.

Initialises the cost ledger, records spend and prints the cost dashboard.
"""

import logging
import sys
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional

import typer
from rich.console import Console

from modguard.config.loader import load_config
from modguard.core.budget import (
    BudgetSettings,
    BudgetStatus,
    ProviderId,
    compute_status,
    aggregate,
)
from modguard.dashboard.renderer import RenderMode, render, status_label
from modguard.dashboard.source import DEFAULT_DASHBOARD_TTL_SECONDS, DashboardSource
from modguard.storage.db import DEFAULT_DB_PATH
from modguard.storage.models import CostRecord
from modguard.storage.repository import get_repository, initialize_schema, insert_cost_record

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")
):
    """modguard CLI."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s"
        )
    if ctx.invoked_subcommand is None:
        console.print("modguard - Use --help to see available commands")


@app.command()
def init(
    db: str = typer.Option(DEFAULT_DB_PATH, "--db", help="Path to the cost ledger")
):
    """Initialize the cost ledger database."""
    try:
        initialize_schema(db)
        console.print("[green]✓[/] Cost ledger initialized successfully")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def record(
    provider: str = typer.Argument(..., help="claude, openai or deepseek"),
    cost: str = typer.Argument(..., help="Cost in USD"),
    model: str = typer.Option("", "--model", "-m", help="Model that served the call"),
    db: str = typer.Option(DEFAULT_DB_PATH, "--db", help="Path to the cost ledger")
):
    """Record a provider cost in the ledger."""
    try:
        try:
            provider_id = ProviderId(provider.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown provider: {provider}")
        try:
            amount = Decimal(cost)
        except InvalidOperation:
            raise ValueError(f"Invalid cost: {cost}")

        initialize_schema(db)
        insert_cost_record(
            CostRecord(
                timestamp=datetime.now(timezone.utc),
                provider=provider_id,
                cost_usd=amount,
                model=model
            ),
            db
        )
        console.print(f"[green]✓[/] Recorded ${amount:.2f} for {provider_id.value}")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def dashboard(
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to YAML configuration"
    ),
    db: str = typer.Option(DEFAULT_DB_PATH, "--db", help="Path to the cost ledger"),
    condensed: bool = typer.Option(
        False,
        "--condensed",
        help="Single-line output for notification surfaces"
    ),
    enforced: bool = typer.Option(
        False,
        "--enforced",
        "-e",
        help="Exit with error code if either budget is critical"
    )
):
    """
    Show AI spend against the configured budgets.

    Without --config, no limits are set and every window reads as within
    budget.
    """
    try:
        if config:
            app_config = load_config(config)
            settings = app_config.budget_settings()
            ttl_seconds = app_config.cache.dashboard_ttl_seconds
        else:
            settings = BudgetSettings()
            ttl_seconds = DEFAULT_DASHBOARD_TTL_SECONDS

        initialize_schema(db)
        source = DashboardSource(get_repository(db), settings, ttl_seconds=ttl_seconds)
        snapshot = source.snapshot()

        mode = RenderMode.CONDENSED if condensed else RenderMode.VERBOSE
        console.print(render(snapshot, mode), markup=False, highlight=False, soft_wrap=True)

        if enforced and aggregate(snapshot).worst_status is BudgetStatus.CRITICAL:
            sys.exit(EXIT_CODE_FAIL)
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def status(
    percent: float = typer.Argument(..., help="Percentage of the budget used")
):
    """Show the budget status tier for a usage percentage."""
    try:
        budget_status = compute_status(percent)
    except ValueError as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    console.print(f"{percent:.1f}%: {status_label(budget_status)}", markup=False)


if __name__ == "__main__":
    app()
