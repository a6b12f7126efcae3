"""
CLI interface for EcoPrompt.

Provides command-line access to footprint estimation, manual logging,
daily totals, history and export.
"""

import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from ecoprompt.config.loader import AppConfig, load_app_config
from ecoprompt.core.engine import (
    ENERGY_GOAL_WH,
    ImpactEngine,
    InvalidManualInput,
    OutcomeStatus,
    goal_progress,
)
from ecoprompt.core.formatting import UNKNOWN_IMPACT_LABEL, format_impact, format_number
from ecoprompt.core.modality import StructuralHints
from ecoprompt.core.modes import MODE_MULTIPLIERS, Settings, describe_mode, is_greener, resolve_parameters
from ecoprompt.core.reference import ReferenceLoader
from ecoprompt.export import EXPORT_FORMATS, export_totals
from ecoprompt.storage.repository import FootprintRepository
from ecoprompt.storage.store import SqliteStore, StoreReadFailure, StoreWriteFailure

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

LOG_LEVEL_ENV_VAR = "ECOPROMPT_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _configure_logging() -> None:
    level_name = os.getenv(LOG_LEVEL_ENV_VAR, "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.WARNING),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _load_config(ctx: typer.Context) -> AppConfig:
    try:
        return load_app_config(ctx.obj.get("config_path") if ctx.obj else None)
    except Exception as e:
        console.print(f"[red]Error loading configuration:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


def _repository(config: AppConfig) -> FootprintRepository:
    store = SqliteStore(config.storage.path)
    store.initialize_schema()
    return FootprintRepository(store, config.defaults)


def _build_engine(ctx: typer.Context) -> ImpactEngine:
    """Load configuration and the energy reference, then build the engine."""
    config = _load_config(ctx)
    loader = ReferenceLoader(config.reference.source, config.reference.timeout_seconds)
    return asyncio.run(ImpactEngine.create(loader, _repository(config)))


def _require_profile(engine: ImpactEngine) -> None:
    if engine.profile_unavailable:
        console.print("[red]Could not load energy profile.[/] Check the reference source in your config.")
        sys.exit(EXIT_CODE_FAIL)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to YAML config file (defaults to $ECOPROMPT_CONFIG or ./ecoprompt.yaml)"
    )
):
    """EcoPrompt CLI."""
    _configure_logging()
    ctx.obj = {"config_path": config}
    if ctx.invoked_subcommand is None:
        console.print("EcoPrompt - Use --help to see available commands")


@app.command()
def init(ctx: typer.Context):
    """Initialize the EcoPrompt store with default settings."""
    config = _load_config(ctx)
    try:
        _repository(config).initialize_defaults()
        console.print(f"[green]✓[/] Store initialized at {config.storage.path}")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error initializing store:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def status(ctx: typer.Context):
    """Show energy profile and settings status."""
    engine = _build_engine(ctx)
    _require_profile(engine)
    params = resolve_parameters(engine.state.settings, engine.reference)
    console.print("[green]✓[/] Energy profile loaded")
    console.print(f"Mode: {describe_mode(engine.state.settings, engine.reference)}")
    console.print(f"Grid intensity: {format_number(params.grid_intensity, 0)} g CO2/kWh")


@app.command()
def estimate(
    ctx: typer.Context,
    text: Optional[str] = typer.Argument(None, help="Response text (reads stdin if omitted)"),
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="Read response text from a file"),
    images: int = typer.Option(0, "--images", "-i", min=0, help="Number of images in the response"),
    audio: bool = typer.Option(False, "--audio", "-a", help="Response contains audio media"),
    minutes: Optional[float] = typer.Option(None, "--minutes", "-m", help="Known audio duration in minutes"),
):
    """Estimate and record the footprint of one AI response."""
    if file is not None:
        text = file.read_text(encoding="utf-8")
    elif text is None:
        text = sys.stdin.read()

    engine = _build_engine(ctx)
    _require_profile(engine)

    hints = StructuralHints(has_image_media=images > 0, has_audio_media=audio, image_count=images)
    outcome = engine.observe(text, hints, duration_minutes=minutes)

    if outcome.status == OutcomeStatus.SKIPPED:
        console.print("[dim]Nothing to estimate: response is too short.[/]")
        sys.exit(EXIT_CODE_PASS)
    if outcome.status == OutcomeStatus.UNKNOWN:
        console.print(f"EcoPrompt: {UNKNOWN_IMPACT_LABEL}")
        sys.exit(EXIT_CODE_PASS)

    console.print(format_impact(outcome.impact))
    _display_details(engine, outcome)
    if outcome.tip:
        console.print(f"\n[yellow]{outcome.tip}[/]")
    if not outcome.persisted:
        console.print("[yellow]Warning:[/] this record could not be saved and may be lost.")


def _display_details(engine: ImpactEngine, outcome) -> None:
    params = resolve_parameters(engine.state.settings, engine.reference)
    table = Table(show_header=False)
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("Modality", outcome.modality.value)
    table.add_row("Tokens analyzed", format_number(outcome.tokens, 0))
    table.add_row("Energy coeff.", describe_mode(engine.state.settings, engine.reference))
    table.add_row("Grid intensity", f"{format_number(params.grid_intensity, 0)} g CO2/kWh")
    console.print(table)


@app.command()
def preview(
    ctx: typer.Context,
    draft: str = typer.Argument(..., help="Draft prompt text"),
):
    """Preview the likely footprint of a prompt before sending it."""
    engine = _build_engine(ctx)
    result = engine.preview(draft)
    if result.impact is None:
        console.print("EcoPrompt: impact unknown for this prompt.")
        sys.exit(EXIT_CODE_PASS)
    impact = result.impact
    water_digits = 2 if impact.water_ml < 1 else 1
    console.print(
        f"Preview ({result.modality.value}): {format_number(impact.energy_wh, 2)} Wh"
        f" | {format_number(impact.co2_g, 2)} g"
        f" | {format_number(impact.water_ml, water_digits)} mL"
    )


@app.command()
def log(
    ctx: typer.Context,
    modality: str = typer.Argument(..., help="text, pdf, image or audio"),
    units: float = typer.Argument(..., help="Tokens, images or minutes processed"),
):
    """Log a usage entry by hand."""
    engine = _build_engine(ctx)
    _require_profile(engine)
    try:
        outcome = engine.log_manual(modality.lower(), units)
    except InvalidManualInput:
        console.print("[red]Enter a positive number of units.[/]")
        sys.exit(EXIT_CODE_FAIL)

    if outcome.impact is None:
        console.print(f"[red]Unsupported task type:[/] {modality}")
        sys.exit(EXIT_CODE_FAIL)

    console.print(f"[green]✓[/] Manual entry logged. {format_impact(outcome.impact)}")
    if not outcome.persisted:
        console.print("[yellow]Warning:[/] this record could not be saved and may be lost.")


@app.command()
def today(ctx: typer.Context):
    """Show today's footprint totals."""
    engine = _build_engine(ctx)
    day = engine.today_totals()

    table = Table(title=f"Today's AI Footprint ({engine.today_key()})")
    table.add_column("Tokens", justify="right")
    table.add_column("Energy", justify="right")
    table.add_column("CO2", justify="right")
    table.add_column("Water", justify="right")
    table.add_row(
        format_number(day.tokens, 0),
        f"{format_number(day.energy_wh, 2)} Wh",
        f"{format_number(day.co2_g, 2)} g",
        f"{format_number(day.water_ml, 1)} mL",
    )
    console.print(table)
    console.print(f"Daily energy goal: {goal_progress(day) * 100:.0f}% of {format_number(ENERGY_GOAL_WH, 0)} Wh")


@app.command()
def history(
    ctx: typer.Context,
    limit: int = typer.Option(20, "--limit", "-n", min=1, help="Number of recent records to show"),
):
    """Show the most recent impact records."""
    engine = _build_engine(ctx)
    records = list(engine.state.history)[-limit:]
    if not records:
        console.print("[dim]No history yet.[/]")
        return

    table = Table(title="Recent AI usage")
    for column in ("Time", "Modality", "Units", "Energy (Wh)", "CO2 (g)", "Water (mL)", "Manual"):
        table.add_column(column)
    for record in records:
        table.add_row(
            record.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            record.modality.value,
            format_number(record.units, 0),
            format_number(record.energy_wh, 2),
            format_number(record.co2_g, 2),
            format_number(record.water_ml, 1),
            "yes" if record.manual else "",
        )
    console.print(table)


@app.command("reset-today")
def reset_today(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Zero today's totals and remove today's history."""
    if not yes:
        typer.confirm("Reset today's footprint?", abort=True)
    engine = _build_engine(ctx)
    if not engine.reset_today():
        console.print("[red]Error:[/] reset could not be saved.")
        sys.exit(EXIT_CODE_FAIL)
    console.print("[green]✓[/] Today reset.")


@app.command("clear-history")
def clear_history(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Remove all totals and history."""
    if not yes:
        typer.confirm("Clear all footprint history?", abort=True)
    engine = _build_engine(ctx)
    if not engine.clear_history():
        console.print("[red]Error:[/] history could not be cleared.")
        sys.exit(EXIT_CODE_FAIL)
    console.print("[green]✓[/] History cleared.")


@app.command()
def export(
    ctx: typer.Context,
    fmt: str = typer.Option("json", "--format", "-f", help="Export format: json or csv"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write to file instead of stdout"),
):
    """Export daily totals as JSON or CSV."""
    if fmt.lower() not in EXPORT_FORMATS:
        console.print(f"[red]Unsupported format:[/] {fmt}")
        sys.exit(EXIT_CODE_FAIL)

    engine = _build_engine(ctx)
    if not engine.state.totals:
        console.print("[dim]No data to export yet.[/]")
        sys.exit(EXIT_CODE_PASS)

    payload = export_totals(engine.state.totals, fmt)
    if output is None:
        typer.echo(payload)
        return
    output.write_text(payload + "\n", encoding="utf-8")
    console.print(f"[green]✓[/] {fmt.upper()} export ready: {output}")


@app.command()
def settings(
    ctx: typer.Context,
    mode: Optional[str] = typer.Option(None, "--mode", help="small, balanced or large"),
    grid: Optional[float] = typer.Option(None, "--grid", help="Grid intensity in g CO2/kWh"),
    theme: Optional[str] = typer.Option(None, "--theme", help="Display theme"),
):
    """Show or update settings."""
    config = _load_config(ctx)
    repository = _repository(config)
    try:
        current = repository.load_settings()
    except StoreReadFailure as e:
        console.print(f"[red]Error reading settings:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    if mode is None and grid is None and theme is None:
        console.print(f"Mode: {current.mode}")
        console.print(f"Theme: {current.theme}")
        grid_label = format_number(current.grid_intensity, 0) if current.grid_intensity else "reference default"
        console.print(f"Grid intensity: {grid_label}")
        return

    if mode is not None and mode.lower() not in MODE_MULTIPLIERS:
        console.print(f"[red]Unknown mode:[/] {mode} (expected one of {sorted(MODE_MULTIPLIERS)})")
        sys.exit(EXIT_CODE_FAIL)
    if grid is not None and grid <= 0:
        console.print("[red]Grid intensity must be > 0.[/]")
        sys.exit(EXIT_CODE_FAIL)

    updated = Settings(
        mode=mode.lower() if mode is not None else current.mode,
        theme=theme or current.theme,
        grid_intensity=grid if grid is not None else current.grid_intensity,
    )
    try:
        repository.save_settings(updated)
    except StoreWriteFailure as e:
        console.print(f"[red]Error saving settings:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    console.print("[green]✓[/] Settings updated.")
    if is_greener(current, updated):
        console.print("[green]Greener mode selected.[/]")


if __name__ == "__main__":
    app()
