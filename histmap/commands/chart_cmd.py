"""Chart command for histmap CLI."""

from __future__ import annotations

from pathlib import Path
from typing import Any, List, Optional

import typer
from rich.table import Table

from histmap.commands.common import console, get_state, load_or_exit
from histmap.core.aggregation import AGG_SUM
from histmap.core.store import FeatureStore
from histmap.model import FeatureType


def _resolve_values(store: FeatureStore, ft: FeatureType, attribute: str, wanted: List[str]) -> List[Any]:
    """Map command line strings onto the stored attribute values (which may be numbers)."""
    known = {str(v): v for v in store.get_all_attribute_values(ft, attribute)}
    return [known.get(w, w) for w in wanted]


def chart(
    ctx: typer.Context,
    input_file: str = typer.Argument(..., help="GeoJSON or KML file, zip archive or http(s) URL"),
    attribute: str = typer.Argument(..., help="Attribute name"),
    values: List[str] = typer.Argument(..., help="Attribute values to chart"),
    feature_type: str = typer.Option("LineString", "--type", "-t", help="Point, LineString or Polygon"),
    year_from: Optional[int] = typer.Option(None, "--from", help="First year (default: earliest year)"),
    year_to: Optional[int] = typer.Option(None, "--to", help="Last year (default: latest year)"),
    agg_type: Optional[str] = typer.Option(None, "--agg", help="sum (length in km) or count"),
    course: Optional[str] = typer.Option(None, "--course", help="'point in time' or 'time interval'"),
    attributes_csv: Optional[Path] = typer.Option(None, "--attributes", "-a", help="Attributes CSV"),
):
    """
    Aggregate attribute values per year.

    With course "point in time" every year shows what started in that year;
    with "time interval" it shows what existed in that year.
    """
    cfg = get_state(ctx).config
    try:
        ft = FeatureType.coerce(feature_type)
    except ValueError as e:
        console.print(f"[bold red]❌ Error:[/] {e}")
        raise typer.Exit(1)

    store, _ = load_or_exit(ctx, input_file, attributes_csv=attributes_csv, quiet=True)
    agg = agg_type or cfg.agg_type
    try:
        rows = store.get_attribute_aggregation_per_year(
            ft,
            attribute,
            _resolve_values(store, ft, attribute, values),
            year_from,
            year_to,
            agg,
            course or cfg.course,
        )
    except ValueError as e:
        console.print(f"[bold red]❌ Error:[/] {e}")
        raise typer.Exit(1)

    if not rows:
        console.print(f"[yellow]No '{attribute}' data for {ft.geojson_name} features[/]")
        return

    table = Table(title=f"{attribute} ({agg})", show_header=True, header_style="bold cyan")
    table.add_column("Year", justify="right")
    for value in values:
        table.add_column(value, justify="right")
    for row in rows:
        cells = [str(row["year"])]
        for key in _resolve_values(store, ft, attribute, values):
            n = row.get(key, 0)
            cells.append(f"{n:.2f}" if agg == AGG_SUM else str(n))
        table.add_row(*cells)
    console.print(table)
