#!/usr/bin/env python3
"""
histmap - historical map data tool
Main CLI entry point
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from histmap.commands import chart_cmd, config_cmd, export_cmd, inspect_cmd
from histmap.commands.common import CLIState
from histmap.core.config import load_config
from histmap.core.trace import TraceWriter

app = typer.Typer(
    name="histmap",
    help="Load, query, chart and export historical map data",
    no_args_is_help=True,
    add_completion=True,
)

app.command(name="inspect", help="Load map files and show an inventory")(inspect_cmd.inspect)
app.command(name="search", help="List features with a property value containing TEXT")(inspect_cmd.search)
app.command(name="chart", help="Per-year aggregation of attribute values")(chart_cmd.chart)
app.command(name="export", help="Write the loaded map as GeoJSON or settings JSON")(export_cmd.export)
app.command(name="enhance", help="Add OSM enhancement CSV data to a map")(export_cmd.enhance)

app.add_typer(config_cmd.app, name="config", help="Manage configuration settings")

err_console = Console(stderr=True)


def _setup_logging(level: int) -> None:
    root = logging.getLogger("histmap")
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.addHandler(RichHandler(console=err_console, show_path=False, rich_tracebacks=True))
    root.setLevel(level)
    root.propagate = False


@app.callback()
def callback(
    ctx: typer.Context,
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Config file (default: histmap_config.yaml in the current directory)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output"),
    trace_path: Optional[Path] = typer.Option(
        None,
        "--trace",
        help="Write JSONL trace log of load and export steps",
    ),
) -> None:
    """
    histmap - historical map data tool

    Workflow:
      inspect   - Load GeoJSON/KML (+ CSV attributes/properties, settings JSON)
      search    - Find features by property value
      chart     - Sum or count attribute values per year
      export    - Write the map (or only its settings) back out
      enhance   - Merge an OSM enhancement CSV into a map

    Utilities:
      config    - Manage configuration settings
    """
    try:
        cfg = load_config(config_file)
    except ValueError as e:
        err_console.print(f"[bold red]❌ Invalid configuration:[/] {e}")
        raise typer.Exit(1)

    _setup_logging(logging.DEBUG if verbose else cfg.log_level_value)

    trace_ctx = None
    if trace_path is not None:
        trace_path = trace_path.expanduser()
        trace_path.parent.mkdir(parents=True, exist_ok=True)
        trace_ctx = TraceWriter(trace_path)
        trace_ctx.emit({"event": "run.start", "command": ctx.invoked_subcommand})
        ctx.call_on_close(trace_ctx.close)

    ctx.obj = CLIState(config=cfg, trace=trace_ctx)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
