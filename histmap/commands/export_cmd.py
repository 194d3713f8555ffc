"""Export and enhance commands for histmap CLI."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from histmap.commands.common import console, get_state, load_or_exit, print_result
from histmap.io.iam_geojson import write_geojson
from histmap.io.settings_json import write_settings_json
from histmap.io.sources import enhance_with_osm


def export(
    ctx: typer.Context,
    input_file: str = typer.Argument(..., help="GeoJSON or KML file, zip archive or http(s) URL"),
    output: Path = typer.Argument(..., help="Output file (.geojson / .json)"),
    attributes_csv: Optional[Path] = typer.Option(None, "--attributes", "-a", help="Attributes CSV"),
    properties_csv: Optional[Path] = typer.Option(None, "--properties", "-p", help="Properties CSV"),
    settings_json: Optional[Path] = typer.Option(None, "--settings", "-s", help="Feature settings JSON"),
    add_properties: Optional[bool] = typer.Option(None, "--properties-out/--no-properties", help="Write feature properties"),
    add_attributes: Optional[bool] = typer.Option(None, "--attributes-out/--no-attributes", help="Write feature attributes"),
    add_settings: Optional[bool] = typer.Option(None, "--settings-out/--no-settings", help="Write feature settings"),
    settings_only: bool = typer.Option(False, "--settings-only", help="Write only the settings JSON document"),
):
    """
    Load map files and write them back out as one GeoJSON file.

    Properties, attributes and settings are embedded the way `inspect` reads
    them, so the output can be loaded again without the side files.
    """
    state = get_state(ctx)
    cfg = state.config
    store, report = load_or_exit(
        ctx,
        input_file,
        attributes_csv=attributes_csv,
        properties_csv=properties_csv,
        settings_json=settings_json,
    )

    output.parent.mkdir(parents=True, exist_ok=True)
    if settings_only:
        out = write_settings_json(store, output, report.map_settings)
        console.print(f"[bold green]✔[/] Settings written to [underline]{out}[/]")
        return

    out = write_geojson(
        store,
        output,
        cfg.export_properties if add_properties is None else add_properties,
        cfg.export_attributes if add_attributes is None else add_attributes,
        cfg.export_settings if add_settings is None else add_settings,
        report.map_settings,
        trace=state.trace,
    )
    console.print(f"[bold green]✔[/] {len(store.get_all_features())} features written to [underline]{out}[/]")


def enhance(
    ctx: typer.Context,
    input_file: str = typer.Argument(..., help="GeoJSON or KML file, zip archive or http(s) URL"),
    osm_csv: Path = typer.Argument(..., help="OSM enhancement CSV (Type, Id, Name, longitude, latitude)"),
    output: Path = typer.Argument(..., help="Output GeoJSON file"),
):
    """Add new points and names from an OSM enhancement CSV and write the result."""
    state = get_state(ctx)
    store, report = load_or_exit(ctx, input_file, quiet=True)

    result = enhance_with_osm(store, osm_csv, delimiter=state.config.csv_delimiter, trace=state.trace)
    print_result(result)
    if not result.ok:
        raise typer.Exit(1)

    output.parent.mkdir(parents=True, exist_ok=True)
    out = write_geojson(store, output, map_settings=report.map_settings, trace=state.trace)
    console.print(f"[bold green]✔[/] Enhanced map written to [underline]{out}[/]")
