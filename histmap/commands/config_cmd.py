"""Config command for histmap CLI."""

from pathlib import Path

import typer
from rich.console import Console

from histmap.commands.common import get_state
from histmap.core.config import DEFAULT_CONFIG_FILES, HistMapConfig, load_config, save_setting

app = typer.Typer()
console = Console()


@app.command("show")
def show(ctx: typer.Context):
    """Show current configuration."""
    summary = get_state(ctx).config.get_config_summary()

    console.print("\n[bold]Current Configuration:[/]")
    console.print(f"  Source: [cyan]{summary['source'] or 'built-in defaults'}[/]")
    for key, value in summary.items():
        if key == "source":
            continue
        console.print(f"  {key}: [cyan]{value}[/]")
    console.print()


@app.command("export")
def export(
    output_path: Path = typer.Option(DEFAULT_CONFIG_FILES[0], "--output", "-o", help="Template path"),
):
    """Export configuration template."""
    HistMapConfig().export_template(output_path)
    console.print(f"[bold green]✔[/] Configuration template exported to [underline]{output_path}[/]")
    console.print("[dim]Edit this file to change load and export defaults[/]")


@app.command("validate")
def validate(config_file: Path = typer.Argument(..., help="Config file to validate")):
    """Validate a configuration file."""
    try:
        cfg = load_config(config_file)
    except ValueError as e:
        console.print(f"[bold red]❌ Invalid configuration:[/] {e}")
        raise typer.Exit(1)
    console.print(f"[bold green]✔[/] Configuration file is valid: [underline]{config_file}[/]")
    summary = cfg.get_config_summary()
    console.print(f"  insert_type: {summary['insert_type']}")
    console.print(f"  agg_type: {summary['agg_type']}")


@app.command("set")
def set_value(
    key: str = typer.Argument(..., help="Config key, e.g. insert_type"),
    value: str = typer.Argument(..., help="New value"),
    config_path: Path = typer.Option(DEFAULT_CONFIG_FILES[0], "--file", "-f", help="Config file to update"),
):
    """Set one configuration value."""
    parsed = value
    if value.lower() in ("true", "false"):
        parsed = value.lower() == "true"
    try:
        save_setting(key, parsed, config_path=config_path)
    except ValueError as e:
        console.print(f"[bold red]❌ Error:[/] {e}")
        raise typer.Exit(1)
    console.print(f"[bold green]✔[/] {key} set to: [cyan]{parsed}[/] (saved to {config_path})")
