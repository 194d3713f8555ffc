"""Inspect and search commands for histmap CLI."""

from __future__ import annotations

import math
from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from histmap.commands.common import console, load_or_exit
from histmap.core.diagnostics import check_data_quality, store_inventory
from histmap.model import FeatureType


def _format_bbox(bbox) -> str:
    if not all(math.isfinite(v) for v in bbox):
        return "[dim]empty[/]"
    return ", ".join(f"{v:.5f}" for v in bbox)


def inspect(
    ctx: typer.Context,
    input_file: str = typer.Argument(..., help="GeoJSON or KML file, zip archive or http(s) URL"),
    attributes_csv: Optional[Path] = typer.Option(None, "--attributes", "-a", help="Attributes CSV"),
    properties_csv: Optional[Path] = typer.Option(None, "--properties", "-p", help="Properties CSV"),
    settings_json: Optional[Path] = typer.Option(None, "--settings", "-s", help="Feature settings JSON"),
    quality: bool = typer.Option(True, "--quality/--no-quality", help="Report data quality issues"),
):
    """Load map files into a store and show what was loaded."""
    store, _ = load_or_exit(
        ctx,
        input_file,
        attributes_csv=attributes_csv,
        properties_csv=properties_csv,
        settings_json=settings_json,
    )
    inv = store_inventory(store)

    table = Table(title="Inventory", show_header=True, header_style="bold cyan")
    table.add_column("Item")
    table.add_column("Value", justify="right")
    table.add_row("Features", str(inv["feature_count"]))
    for type_name, count in inv["features_per_type"].items():
        table.add_row(f"  {type_name}", str(count))
    table.add_row("Properties", str(inv["property_count"]))
    table.add_row("Attributes", str(inv["attribute_count"]))
    table.add_row("Settings", str(inv["settings_count"]))
    if inv["year_range"] is not None:
        table.add_row("Years", "{} - {}".format(*inv["year_range"]))
    table.add_row("Bounding box", _format_bbox(inv["bounding_box"]))
    console.print()
    console.print(table)

    names = {k: v for k, v in inv["attribute_names"].items() if v}
    if names:
        console.print("\n[bold]Attributes:[/]")
        for type_name, attribute_names in names.items():
            console.print(f"  {type_name}: [cyan]{', '.join(attribute_names)}[/]")

    if not quality:
        return
    issues = check_data_quality(store)
    if not any(issues.values()):
        return
    console.print("\n[bold yellow]Data quality:[/]")
    if issues["features_without_properties"]:
        console.print(f"  Features without properties: {len(issues['features_without_properties'])}")
    for type_name, fid, name, year_from, year_to in issues["inverted_periods"]:
        console.print(f"  [yellow]{type_name} {fid}: {name} ends ({year_to}) before it starts ({year_from})[/]")
    for type_name, name in issues["attributes_without_settings"]:
        console.print(f"  [dim]{type_name} attribute '{name}' has no settings[/]")


def search(
    ctx: typer.Context,
    input_file: str = typer.Argument(..., help="GeoJSON or KML file, zip archive or http(s) URL"),
    text: str = typer.Argument(..., help="Text to look for (case-insensitive)"),
):
    """List the features with a property value containing TEXT."""
    store, _ = load_or_exit(ctx, input_file, quiet=True)
    matches = store.search(text)
    if not matches:
        console.print(f"[yellow]No features match '{text}'[/]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Type")
    table.add_column("Id")
    table.add_column("Name")
    table.add_column("Length (km)", justify="right")
    for feature in matches:
        length = f"{feature.length():.2f}" if feature.feature_type != FeatureType.POINT else ""
        table.add_row(feature.feature_type.geojson_name, feature.id, feature.name(), length)
    console.print(table)
    console.print(f"[dim]{len(matches)} feature(s)[/]")
