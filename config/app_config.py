from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Annotated, Literal, Optional

import typer
import yaml


@dataclass
class AppConfig:
    reference: str = "data/simple_car_path_geometric.txt"
    output_dir: str = "data"
    total_time: float = 70.0
    sampling_interval: float | None = None
    preset: Literal["default", "terminal", "fast"] = "default"
    horizon_steps: int | None = None
    wheelbase: float = 10.0
    max_iterations: int | None = None
    kkt_tolerance: float | None = None
    qp_solver: Literal["qpoases", "qrqp", "osqp"] | None = None
    terminal_cost: bool | None = None
    strict_parsing: bool = False
    verbose: bool = False


def _load_yaml_defaults(path: Path) -> dict:
    """Load a YAML config file and return its contents as a dict."""
    with open(path) as f:
        data = yaml.safe_load(f)
    return data if isinstance(data, dict) else {}


def build_app_config(cli_values: dict, config: Optional[Path] = None) -> AppConfig:
    """
    Layer AppConfig defaults < YAML file < explicitly given CLI values.

    Options left unset on the command line arrive as None and do not mask
    the YAML value underneath.
    """
    known = {f.name for f in fields(AppConfig)}

    yaml_defaults = _load_yaml_defaults(config) if config is not None else {}
    unknown = set(yaml_defaults) - known
    if unknown:
        raise ValueError(f"Unknown config keys in {config}: {sorted(unknown)}")

    given = {k: v for k, v in cli_values.items() if v is not None}
    return AppConfig(**{**yaml_defaults, **given})


app = typer.Typer(add_completion=False)


@app.command(help="Receding-horizon MPC path tracking for a kinematic car")
def cli(
    # ── Reference & output ────────────────────────────────────────
    reference: Annotated[Optional[str], typer.Option(help="Waypoint file with 'x y theta' lines")] = None,
    output_dir: Annotated[Optional[str], typer.Option(help="Directory for output_states.txt / output_controls.txt")] = None,
    total_time: Annotated[Optional[float], typer.Option(help="Duration spanned by the waypoints [s]")] = None,
    sampling_interval: Annotated[Optional[float], typer.Option(help="Waypoint spacing in time [s] (overrides total-time)")] = None,
    strict_parsing: Annotated[Optional[bool], typer.Option("--strict-parsing/--tolerant-parsing", help="Reject malformed waypoint lines instead of zero-filling")] = None,

    # ── Vehicle ───────────────────────────────────────────────────
    wheelbase: Annotated[Optional[float], typer.Option(help="Wheelbase L [m]")] = None,

    # ── Controller ────────────────────────────────────────────────
    preset: Annotated[Optional[str], typer.Option(help="Controller preset: default, terminal, fast")] = None,
    horizon_steps: Annotated[Optional[int], typer.Option(help="Horizon length N (shooting intervals)")] = None,
    max_iterations: Annotated[Optional[int], typer.Option(help="Gauss-Newton iteration budget per step")] = None,
    kkt_tolerance: Annotated[Optional[float], typer.Option(help="KKT tolerance for early exit")] = None,
    qp_solver: Annotated[Optional[str], typer.Option(help="QP plugin: qpoases, qrqp, osqp")] = None,
    terminal_cost: Annotated[Optional[bool], typer.Option("--terminal-cost/--no-terminal-cost", help="Add the end-of-horizon tracking term")] = None,

    # ── Output ────────────────────────────────────────────────────
    verbose: Annotated[Optional[bool], typer.Option("--verbose/--quiet", help="Per-step progress output")] = None,

    # ── Config file ───────────────────────────────────────────────
    config: Annotated[Optional[Path], typer.Option(help="Path to YAML config file")] = None,
):
    """Entry point: build AppConfig from CLI args (with optional YAML defaults) and run."""
    from main import main as run_main
    from models import MPCError

    cli_values = {
        "reference": reference, "output_dir": output_dir,
        "total_time": total_time, "sampling_interval": sampling_interval,
        "strict_parsing": strict_parsing, "wheelbase": wheelbase,
        "preset": preset, "horizon_steps": horizon_steps,
        "max_iterations": max_iterations, "kkt_tolerance": kkt_tolerance,
        "qp_solver": qp_solver, "terminal_cost": terminal_cost,
        "verbose": verbose,
    }

    try:
        args = build_app_config(cli_values, config)
        run_main(args)
    except (MPCError, ValueError) as e:
        typer.echo(f"✗ {type(e).__name__}: {e}", err=True)
        raise typer.Exit(code=1)
