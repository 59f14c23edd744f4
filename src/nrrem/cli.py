"""
nrrem Command Line Interface.

Commands:
- nrrem generate <scenario.yaml> : Generate a REM and print a summary
- nrrem validate <scenario.yaml> : Validate scenario file
- nrrem server                   : Start the REM computation server
"""

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from nrrem import __version__

console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load_or_exit(scenario: Path):
    from nrrem.config.loader import ScenarioLoader, ScenarioLoadError

    try:
        return ScenarioLoader(scenario).load()
    except ScenarioLoadError as e:
        console.print(f"[red]✗ Scenario validation failed:[/]\n{e}")
        sys.exit(1)


def _print_points(points) -> None:
    table = Table(title="REM Points")
    table.add_column("x (m)", justify="right")
    table.add_column("y (m)", justify="right")
    table.add_column("SNR (dB)", justify="right", style="green")
    table.add_column("SINR (dB)", justify="right", style="cyan")
    for point in points:
        table.add_row(
            f"{point.position[0]:.1f}",
            f"{point.position[1]:.1f}",
            f"{point.avg_snr_db:.2f}",
            f"{point.avg_sinr_db:.2f}",
        )
    console.print(table)


@click.group()
@click.version_option(version=__version__, prog_name="nrrem")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
def main(verbose: bool) -> None:
    """nrrem - NR Radio Environment Map generator

    Computes SNR/SINR maps over a spatial grid for a scene of transmitters.
    """
    setup_logging(verbose)


@main.command()
@click.argument("scenario", type=click.Path(exists=True, path_type=Path))
@click.option(
    "-m",
    "--mode",
    type=click.Choice(["beam-shape", "coverage-area"]),
    default=None,
    help="Override the beamforming mode",
)
@click.option("-n", "--iterations", type=int, default=None, help="Override iterations per point")
@click.option("--seed", type=int, default=None, help="Override the random seed")
@click.option("--show-points", is_flag=True, help="Print every REM point")
def generate(
    scenario: Path, mode: str | None, iterations: int | None, seed: int | None, show_points: bool
) -> None:
    """Generate a radio environment map.

    SCENARIO is the path to a scenario.yaml file.
    """
    from nrrem.rem.beamforming import RemMode
    from nrrem.rem.errors import RemError
    from nrrem.rem.summary import summarize
    from nrrem.scene.builder import build_engine

    config = _load_or_exit(scenario)
    console.print(f"[bold blue]Generating REM:[/] {config.name}")

    try:
        engine = build_engine(
            config,
            mode=RemMode(mode) if mode else None,
            iterations=iterations,
            seed=seed,
        )
        points = engine.run()
    except RemError as e:
        console.print(f"[bold red]REM generation failed:[/] {e}")
        sys.exit(1)

    if show_points:
        _print_points(points)

    summary = summarize(points)
    table = Table(title="REM Summary")
    table.add_column("Property", style="cyan")
    table.add_column("Value")
    table.add_row("Mode", engine.mode.value)
    table.add_row("Points", str(summary.num_points))
    table.add_row("Iterations/point", str(engine.iterations))
    table.add_row(
        "SNR (min/mean/max)",
        f"{summary.min_snr_db:.2f} / {summary.mean_snr_db:.2f} / {summary.max_snr_db:.2f} dB",
    )
    table.add_row(
        "SINR (min/mean/max)",
        f"{summary.min_sinr_db:.2f} / {summary.mean_sinr_db:.2f} / {summary.max_sinr_db:.2f} dB",
    )
    best = summary.best_point
    table.add_row("Best point", f"({best[0]:.1f}, {best[1]:.1f}, {best[2]:.1f})")
    table.add_row("Time", f"{engine.elapsed_s:.2f} s")
    console.print(table)


@main.command()
@click.argument("scenario", type=click.Path(exists=True, path_type=Path))
def validate(scenario: Path) -> None:
    """Validate a scenario file.

    Checks the scenario file for errors and prints a summary.
    """
    console.print(f"[bold blue]Validating:[/] {scenario}")
    config = _load_or_exit(scenario)
    console.print("[green]✓ Scenario syntax valid[/]")

    table = Table(title="Scenario Summary")
    table.add_column("Property", style="cyan")
    table.add_column("Value")
    grid = config.grid
    table.add_row("Name", config.name)
    table.add_row("Mode", config.rem.mode.value)
    table.add_row("Iterations", str(config.rem.iterations))
    table.add_row("Serving", config.rem.serving or "best server")
    table.add_row("BWP", str(config.rem.bwp_id))
    table.add_row(
        "Grid",
        f"x [{grid.x_min}, {grid.x_max}]/{grid.x_resolution}, "
        f"y [{grid.y_min}, {grid.y_max}]/{grid.y_resolution}, z={grid.z}",
    )
    table.add_row(
        "Propagation",
        f"{config.propagation.pathloss.type}, {config.propagation.fading.type}, "
        f"{config.propagation.channel_condition.type}",
    )
    console.print(table)

    tx_table = Table(title="Transmitters")
    tx_table.add_column("Name", style="cyan")
    tx_table.add_column("Position")
    tx_table.add_column("Power", justify="right")
    tx_table.add_column("Antenna")
    tx_table.add_column("In REM")
    selected = config.selected_transmitters
    for name, device in config.transmitters.items():
        pos = device.position
        antenna = device.antenna
        tx_table.add_row(
            name,
            f"({pos.x:.1f}, {pos.y:.1f}, {pos.z:.1f})",
            f"{device.tx_power_dbm:.1f} dBm",
            f"{antenna.rows}x{antenna.columns} {antenna.element.value}",
            "yes" if name in selected else "no",
        )
    console.print(tx_table)

    from nrrem.rem.errors import RemError
    from nrrem.scene.builder import build_engine

    try:
        build_engine(config).configure()
    except RemError as e:
        console.print(f"[red]✗ Scene cannot be built:[/] {e}")
        sys.exit(1)
    console.print("[green]✓ Scene builds[/]")


@main.command()
@click.option("--host", default="0.0.0.0", help="Host to bind to")
@click.option("-p", "--port", default=8000, type=int, help="Port to listen on")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
def server(host: str, port: int, reload: bool) -> None:
    """Start the REM computation server."""
    console.print(f"[bold blue]Starting REM server on {host}:{port}[/]")

    import uvicorn

    uvicorn.run(
        "nrrem.server:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


if __name__ == "__main__":
    main()
