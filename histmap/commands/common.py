"""Helpers shared by the histmap sub-commands."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console

from histmap.core.config import HistMapConfig
from histmap.core.result import ProcessResult, Status
from histmap.core.store import FeatureStore
from histmap.io.sources import LoadReport, load_map

console = Console()

_STATUS_STYLE = {
    Status.INFO: ("[bold green]✔[/]", "dim"),
    Status.WARN: ("[bold yellow]⚠️[/]", "yellow"),
    Status.ERROR: ("[bold red]❌[/]", "red"),
}


@dataclass
class CLIState:
    config: HistMapConfig = field(default_factory=HistMapConfig)
    trace: Any = None


def get_state(ctx: typer.Context) -> CLIState:
    state = ctx.find_object(CLIState)
    return state if state is not None else CLIState()


def print_result(result: ProcessResult, *, show_info: bool = False) -> None:
    """Print the summary line and the WARN/ERROR details of a process result."""
    icon, _ = _STATUS_STYLE[result.status]
    console.print(f"{icon} {result.text}")
    for detail in result.details:
        if detail.status == Status.INFO and not show_info:
            continue
        _, style = _STATUS_STYLE[detail.status]
        console.print(f"   [{style}]{detail.text}[/]")


def load_or_exit(
    ctx: typer.Context,
    features: str,
    *,
    attributes_csv: Optional[Path] = None,
    properties_csv: Optional[Path] = None,
    settings_json: Optional[Path] = None,
    quiet: bool = False,
) -> tuple[FeatureStore, LoadReport]:
    """Load the given files into a new store; exit with code 1 when the load failed."""
    state = get_state(ctx)
    store = FeatureStore()
    report = load_map(
        store,
        features,
        attributes_csv=attributes_csv,
        properties_csv=properties_csv,
        settings_json=settings_json,
        config=state.config,
        trace=state.trace,
    )
    if not quiet or not report.result.ok:
        print_result(report.result)
    if not report.result.ok:
        raise typer.Exit(1)
    return store, report
