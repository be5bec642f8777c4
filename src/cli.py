#!/usr/bin/env python3
"""Command Line Interface for the Nearby-Sale Prospecting Engine.

Usage:
    cd src
    python cli.py server                          # Start API server
    python cli.py init-db                         # Create missing tables
    python cli.py opportunities 42 --user agent1  # Print the feed for a sale
    python cli.py info                            # Show configuration
"""
from __future__ import annotations

from typing import Optional

import typer
import uvicorn

from core.config import get_settings
from core.db import get_readonly_session
from core.exceptions import ProspectingError
from core.logging_config import get_logger, setup_logging
from core.models import SortMode

LOGGER = get_logger(__name__)
SETTINGS = get_settings()

app = typer.Typer(help="Nearby-Sale Prospecting Engine CLI")

GROUP_LABELS = {
    "hot": "Hot (same street, never contacted)",
    "never_contacted": "Never contacted",
    "previously_contacted": "Previously contacted",
    "on_cooldown": "On cooldown",
    "contacted": "Contacted",
    "ignored": "Ignored",
}


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
) -> None:
    """Nearby-Sale Prospecting Engine - SMS prospecting off recent local sales."""
    log_level = "DEBUG" if verbose else SETTINGS.log_level
    setup_logging(level=log_level, json_format=SETTINGS.log_format == "json")


# =============================================================================
# Server Commands
# =============================================================================


@app.command("server")
def run_server(
    host: str = typer.Option("0.0.0.0", help="Host to bind to"),
    port: int = typer.Option(SETTINGS.api_port, help="Port to bind to"),
    reload: bool = typer.Option(False, help="Enable auto-reload for development"),
) -> None:
    """Start the API server."""
    typer.echo(f"Starting API server on {host}:{port}...")
    uvicorn.run("api.app:app", host=host, port=port, reload=reload)


# =============================================================================
# Prospecting Commands
# =============================================================================


@app.command("opportunities")
def show_opportunities(
    sale_id: int = typer.Argument(..., help="Sale id"),
    user: str = typer.Option(..., "--user", "-u", help="User id whose contacts are matched"),
    cooldown: Optional[int] = typer.Option(None, help="Cooldown days (defaults to the user's setting)"),
    sort: SortMode = typer.Option(SortMode.SMARTMATCH, help="smartmatch or proximity"),
) -> None:
    """Print the grouped opportunity feed for a sale."""
    from domain.feed import FeedService

    try:
        with get_readonly_session() as session:
            feed = FeedService(session, user).feed_for_sale(sale_id, cooldown_days=cooldown, sort_mode=sort)
            sale = feed.sale
            typer.secho(f"{sale.address}, {sale.suburb} (sale {sale.id})", bold=True)
            typer.echo(
                f"  Cooldown: {feed.cooldown_days} days | "
                f"Progress: {feed.progress.progress_percent}% "
                f"({feed.progress.contacted} contacted, {feed.progress.ignored} ignored, "
                f"{feed.progress.remaining} remaining)"
            )
            for name, label in GROUP_LABELS.items():
                group = getattr(feed.groups, name)
                if not group:
                    continue
                typer.echo(f"\n{label} ({len(group)}):")
                for opp in group:
                    distance = f"{opp.distance:.0f}m" if opp.distance is not None else "-"
                    if opp.is_on_cooldown:
                        last = f"cooldown {opp.cooldown_days_remaining}d left"
                    elif opp.never_contacted:
                        last = "never contacted"
                    else:
                        last = f"{opp.days_since_contact}d ago"
                    typer.echo(f"  [{opp.contact_id}] {opp.contact.full_name:<24} {distance:>7}  {last}")
    except ProspectingError as e:
        typer.secho(f"✗ {e}", fg="red")
        raise typer.Exit(1)


# =============================================================================
# Utility Commands
# =============================================================================


@app.command("init-db")
def init_database(
    all_tables: bool = typer.Option(False, "--all", help="Create all tables, not only missing ones"),
) -> None:
    """Create database tables."""
    from core.db import init_db

    result = init_db(create_missing_only=not all_tables)
    if result["status"] == "error":
        typer.secho(f"✗ init-db failed: {result.get('error')}", fg="red")
        raise typer.Exit(1)

    typer.secho(f"✓ Tables created: {result['tables_created'] or 'none'}", fg="green")
    for warning in result["warnings"]:
        typer.secho(f"  {warning}", fg="yellow")


@app.command("info")
def show_info() -> None:
    """Show application configuration info."""
    typer.echo("Nearby-Sale Prospecting Engine Configuration:")
    typer.echo(f"  Environment: {SETTINGS.environment}")
    typer.echo(f"  Database: {SETTINGS.database_url}")
    typer.echo(f"  Log Level: {SETTINGS.log_level}")
    typer.echo(f"  Default Cooldown: {SETTINGS.default_cooldown_days} days")
    typer.echo(f"  Sales Page Size: {SETTINGS.sales_page_size}")
    typer.echo(f"  Coordinate Distance: {SETTINGS.use_coordinate_distance}")
    typer.echo(f"  Meters per House Number: {SETTINGS.meters_per_house_number}")


if __name__ == "__main__":
    app()
