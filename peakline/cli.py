"""
peakline.cli - Typer CLI entry point.

Provides subcommands to analyze audio files into runs and inspect them.
"""

from __future__ import annotations

import json
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from peakline import __version__
from peakline.config import (
    CONFIG_FILENAME,
    PeaklineConfig,
    create_default_config,
    find_config_file,
    load_config,
    write_config,
)
from peakline.exceptions import (
    ArtifactParseError,
    ConfigError,
    DependencyError,
    PeaklineError,
    RunNotFoundError,
)
from peakline.logging import configure_logging
from peakline.store import RunStore
from peakline.utils import amplitude_bar, format_size

app = typer.Typer(
    name="peakline",
    help="Peak amplitude extraction for audio visualization.\n\n"
    "Decodes WAV and MP3 recordings into per-second peak loudness series "
    "stored as CSV, one run per analyzed file.",
    add_completion=False,
)
console = Console()

CONFIG_OPTION = typer.Option(None, "--config", "-c", help="Path to peakline.yaml")
ROOT_OPTION = typer.Option(None, "--root", "-r", help="Storage root (overrides config)")


def resolve_config(config_path: Path | None, root: Path | None) -> PeaklineConfig:
    """Load config from an explicit path or the nearest peakline.yaml."""
    try:
        config = load_config(config_path or find_config_file())
    except ConfigError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)
    if root is not None:
        config.storage_root = root
    return config


def open_store(config: PeaklineConfig) -> RunStore:
    return RunStore(config.storage_root, artifact_name=config.artifact_name)


def version_callback(value: bool) -> None:
    if value:
        console.print(f"peakline {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging"),
) -> None:
    """Peakline - peak amplitude extraction for audio visualization."""
    configure_logging(verbose)


@app.command("init")
def init_config(
    path: str = typer.Option(".", "--path", "-d", help="Directory to create config in"),
    storage_root: str = typer.Option("uploads", "--storage-root", help="Run storage directory"),
) -> None:
    """Create a peakline.yaml and the storage directory."""
    target = Path(path)
    config_file = target / CONFIG_FILENAME

    if config_file.exists():
        console.print(f"[red]Error: '{config_file}' already exists[/red]")
        raise typer.Exit(1)

    config = create_default_config(storage_root)
    write_config(config, config_file)
    (target / storage_root).mkdir(parents=True, exist_ok=True)

    console.print(f"[green]✓[/green] Created {config_file}")
    console.print(f"[dim]  Runs will be stored in {target / storage_root}[/dim]")

    from peakline.validation import ffmpeg_version

    try:
        console.print(f"[dim]  MP3 decoding via FFmpeg {ffmpeg_version()}[/dim]")
    except DependencyError as e:
        console.print(f"[yellow]Warning: {e.message}. MP3 files can't be analyzed.[/yellow]")
        if e.install_hint:
            console.print(f"[dim]  {e.install_hint}[/dim]")


@app.command("analyze")
def analyze(
    audio_file: Path = typer.Argument(..., help="WAV or MP3 file to analyze"),
    run_id: str | None = typer.Option(None, "--run-id", help="Run id (generated if omitted)"),
    fmt: str | None = typer.Option(None, "--format", "-f", help="Force format: wav or mp3"),
    config_path: Path | None = CONFIG_OPTION,
    root: Path | None = ROOT_OPTION,
) -> None:
    """Analyze an audio file into a new run."""
    from peakline.extract.router import resolve_format
    from peakline.pipeline import extract_run, new_run_id

    config = resolve_config(config_path, root)

    if not audio_file.is_file():
        console.print(f"[red]Error: File not found: {audio_file}[/red]")
        raise typer.Exit(1)

    store = open_store(config)
    run_id = run_id or new_run_id()

    try:
        resolved = resolve_format(audio_file.name, fmt)
        run_dir = store.run_dir(run_id)
    except PeaklineError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    if run_dir.exists():
        console.print(f"[red]Error: Run '{run_id}' already exists[/red]")
        raise typer.Exit(1)

    console.print(f"[cyan]Analyzing {audio_file.name} as {resolved}...[/cyan]")

    try:
        with open(audio_file, "rb") as f:
            staged = store.stage_audio(run_id, audio_file.name, f)
        with open(staged, "rb") as f:
            result = extract_run(
                run_id,
                audio_file.name,
                f,
                store,
                settings=config.decode,
                fmt=resolved,
            )
    except PeaklineError as e:
        store.discard(run_id)
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        if isinstance(e, DependencyError) and e.install_hint:
            console.print(f"[dim]{e.install_hint}[/dim]")
        raise typer.Exit(1)

    table = Table(title="Analysis")
    table.add_column("Run", style="cyan")
    table.add_column("Format", style="green")
    table.add_column("Points", justify="right")
    table.add_column("Max Amplitude", justify="right", style="yellow")
    table.add_row(
        result["run_id"],
        result["format"],
        str(result["point_count"]),
        str(result["max_amplitude"]),
    )
    console.print(table)
    console.print(f"\n[green]✓[/green] Saved {result['artifact']}")
    console.print(f"\nNext step: [cyan]peakline show {run_id}[/cyan]")


@app.command("show")
def show(
    run_id: str = typer.Argument(..., help="Run id to display"),
    as_json: bool = typer.Option(False, "--json", help="Print the display payload as JSON"),
    config_path: Path | None = CONFIG_OPTION,
    root: Path | None = ROOT_OPTION,
) -> None:
    """Show the amplitude series of a run."""
    from peakline.pipeline import load_run, series_payload

    config = resolve_config(config_path, root)
    store = open_store(config)

    try:
        series, metadata = load_run(run_id, store)
    except RunNotFoundError:
        console.print(f"[red]Error: Run '{run_id}' not found[/red]")
        raise typer.Exit(1)
    except ArtifactParseError as e:
        detail = escape(str(e))
        console.print(
            f"[red]Error: Run '{run_id}' has a corrupt artifact (parse error): {detail}[/red]"
        )
        raise typer.Exit(1)
    except PeaklineError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    if as_json:
        typer.echo(json.dumps(series_payload(run_id, series, metadata)))
        return

    # WAV buckets hold sample_rate interleaved samples; MP3 buckets are
    # fixed PCM windows. Neither is a true second, so show the raw index.
    table = Table(title=f"Run {run_id}")
    table.add_column("Bucket", justify="right", style="cyan")
    table.add_column("Amplitude", justify="right", style="yellow")
    table.add_column("")
    for point in series:
        table.add_row(
            str(point.timestamp),
            str(point.amplitude),
            amplitude_bar(point.amplitude, metadata.max_amplitude),
        )
    console.print(table)
    console.print(f"\nPoints: {metadata.point_count}  Max amplitude: {metadata.max_amplitude}")


@app.command("runs")
def list_runs(
    config_path: Path | None = CONFIG_OPTION,
    root: Path | None = ROOT_OPTION,
) -> None:
    """List analyzed runs."""
    config = resolve_config(config_path, root)
    store = open_store(config)
    runs = store.list_runs()

    if not runs:
        console.print("[yellow]No runs found. Run 'peakline analyze <file>' first.[/yellow]")
        raise typer.Exit(0)

    table = Table(title="Runs")
    table.add_column("Run", style="cyan")
    table.add_column("File")
    table.add_column("Size", justify="right")
    table.add_column("Created", style="dim")
    table.add_column("Status", style="yellow")

    for run in runs:
        file_name = run["file"] or "-"
        size = format_size(store.run_dir(run["id"]) / run["file"]) if run["file"] else "-"
        status = "[green]Analyzed[/green]" if run["analyzed"] else "[dim]Pending[/dim]"
        table.add_row(run["id"], file_name, size, run["created"], status)

    console.print(table)


if __name__ == "__main__":
    app()
