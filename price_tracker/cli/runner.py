# price_tracker/cli/runner.py

"""Headless runners behind the command-line entry point."""

import json
import logging
import sys
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.table import Table

from price_tracker.models.price_point import PricePoint
from price_tracker.scrapers.page_fetcher import FetchError
from price_tracker.services.series_builder import (
    BuildResult,
    SeriesBuilder,
    load_sources,
)
from price_tracker.storage.chart_exporter import export_series_chart
from price_tracker.storage.series_store import SeriesStore

logger = logging.getLogger("price_tracker.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def _print_sources() -> None:
    """Render the configured sources."""
    table = Table(title="Configured Sources", title_style="bold cyan")
    table.add_column("ID", style="bold")
    table.add_column("Name")
    table.add_column("Role", style="magenta")
    table.add_column("Currency", justify="center")
    table.add_column("Archive", justify="center")
    table.add_column("URL", overflow="fold", style="dim")
    for source in load_sources().values():
        table.add_row(
            source.id,
            source.name,
            source.role,
            source.currency,
            "yes" if source.historical else "—",
            source.url,
        )
    Console().print(table)


def _print_series(series: list[PricePoint], display_currency: str) -> None:
    """Render the canonical series as a Rich table."""
    table = Table(
        title="Price Series",
        show_lines=False,
        title_style="bold cyan",
    )
    table.add_column("Date", style="dim")
    table.add_column("Kind")
    table.add_column("Price", justify="right")
    table.add_column(display_currency, justify="right", style="green")
    table.add_column("FX", justify="right", style="dim")
    table.add_column("Source", style="magenta")
    table.add_column("Archive", style="dim")

    for point in series:
        display = point.price_display
        table.add_row(
            point.date.isoformat(),
            point.kind,
            f"{point.price.amount:,.2f} {point.price.currency}",
            f"{display.amount:,.2f}" if display else "N/A",
            f"{display.fx.rate:.4f}" if display and display.fx else "—",
            point.source_id,
            point.wayback or "",
        )

    Console().print(table)


def _summary(result: BuildResult) -> dict[str, Any]:
    """Counts reported after a run."""
    return {
        "points": len(result.series),
        "primary": result.primary_count,
        "archived": result.historical_count,
        "supplementary": result.supplementary_count,
        "marketplace": result.marketplace_count,
        "duplicates": result.deduplicated_count,
        "skipped": result.skipped_count,
        "warnings": len(result.errors),
    }


async def run_update(
    include_historical: bool,
    refresh_marketplace: bool,
    primary_source: str | None,
    output_dir: str | None,
    output_format: str,
) -> int:
    """Build and write the price series; return an exit code."""
    store = SeriesStore(Path(output_dir)) if output_dir else SeriesStore()
    try:
        builder = SeriesBuilder(
            primary_source_id=primary_source, store=store,
        )
    except ValueError as exc:
        _err.print(f"[red]{exc}[/red]")
        return 1

    mode = "current + historical" if include_historical else "current only"
    _err.print(
        f"[bold]Updating:[/bold] {builder.primary.name}  "
        f"[dim]mode={mode} display={builder.display_currency}[/dim]"
    )

    try:
        result, path = await builder.run(
            include_historical=include_historical,
            refresh_marketplace=refresh_marketplace,
        )
    except FetchError as exc:
        _err.print(f"[red]Primary source unavailable: {exc}[/red]")
        return 1

    for error_msg in result.errors:
        _err.print(f"[yellow]Warning: {error_msg}[/yellow]")

    _err.print(
        f"[green]✓ Wrote {len(result.series)} points → {path}[/green]"
    )

    if output_format == "table":
        _print_series(result.series, builder.display_currency)
    else:
        json.dump(_summary(result), sys.stdout, indent=2)
        sys.stdout.write("\n")

    return 0


def run_chart(output_dir: str | None, open_browser: bool) -> int:
    """Export the last written series as an animated chart."""
    store = SeriesStore(Path(output_dir)) if output_dir else SeriesStore()
    path = export_series_chart(store, open_browser=open_browser)
    if path is None:
        _err.print("[yellow]Nothing to chart yet.[/yellow]")
        return 1
    _err.print(f"[green]✓ Chart saved → {path}[/green]")
    return 0


def run_list_sources() -> int:
    """Print the source registry."""
    _print_sources()
    return 0
