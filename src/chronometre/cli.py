"""Command-line interface for chronometre.

Subcommands:
    chronometre run TARGET    Benchmark a callable given as ``module:attr``
    chronometre calibrate     Measure the per-call overhead
    chronometre system        Print host and interpreter metadata
"""

from __future__ import annotations

import importlib
import json
import os
import sys
from pathlib import Path
from typing import Any, Callable

import click

from chronometre import __version__
from chronometre.config import config_from_profile, load_profile, parse_duration
from chronometre.errors import ComputationFailure, InvalidConfiguration
from chronometre.logging import setup_logging


@click.group()
@click.version_option(version=__version__)
@click.option("-v", "--verbose", is_flag=True, help="Show debug output and the detailed report.")
@click.option("-q", "--quiet", is_flag=True, help="Only show warnings and errors.")
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    default=None,
    help="Also write a DEBUG log to this file.",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, quiet: bool, log_file: Path | None) -> None:
    """chronometre: statistically rigorous micro-benchmarks."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(verbose=verbose, quiet=quiet, log_file=log_file)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _duration_option(
    ctx: click.Context, param: click.Parameter, value: str | None
) -> float | None:
    if value is None:
        return None
    try:
        return parse_duration(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc)) from exc


def resolve_target(target: str) -> Any:
    """Import ``module:attr.path`` and return the named object.

    The current directory is importable, like ``python -m``.
    """
    if ":" not in target:
        raise click.BadParameter(
            f"Expected 'module:attribute', got '{target}'.", param_hint="TARGET"
        )
    module_name, attr_path = target.split(":", 1)
    if os.getcwd() not in sys.path:
        sys.path.insert(0, os.getcwd())
    importlib.invalidate_caches()
    try:
        obj: Any = importlib.import_module(module_name)
    except ImportError as exc:
        raise click.BadParameter(
            f"Cannot import module '{module_name}': {exc}", param_hint="TARGET"
        ) from exc
    for part in attr_path.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as exc:
            raise click.BadParameter(
                f"'{module_name}' has no attribute '{attr_path}'.", param_hint="TARGET"
            ) from exc
    return obj


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


@main.command()
@click.argument("target")
@click.option(
    "--factory",
    is_flag=True,
    default=False,
    help="TARGET is a zero-argument factory returning the callable to benchmark.",
)
@click.option(
    "--profile",
    "profile_path",
    type=click.Path(exists=True, path_type=Path),
    help="YAML profile with benchmark settings.",
)
@click.option("--samples", "sample_count", type=int, default=None, help="Samples to collect.")
@click.option(
    "--target-time",
    callback=_duration_option,
    default=None,
    help="Target duration of one sample, e.g. 100ms.",
)
@click.option(
    "--warmup",
    callback=_duration_option,
    default=None,
    help="Warm-up duration, e.g. 5s (0 disables warm-up).",
)
@click.option("--confidence", type=float, default=None, help="Confidence level, e.g. 0.95.")
@click.option("--bootstrap", type=int, default=None, help="Bootstrap resample count.")
@click.option(
    "--overhead",
    callback=_duration_option,
    default=None,
    help="Pin the per-call overhead instead of calibrating, e.g. 35ns.",
)
@click.option(
    "--gc-before-sample/--no-gc-before-sample",
    default=None,
    help="Collect garbage before every sample.",
)
@click.option("--seed", type=int, default=None, help="Bootstrap random seed.")
@click.option("--quick", is_flag=True, default=False, help="Quick preset: 6 samples of 100ms.")
@click.option("--thorough", is_flag=True, default=False, help="Thorough preset: 100 samples.")
@click.option("--json", "as_json", is_flag=True, default=False, help="Output as JSON.")
@click.option("--no-environment", is_flag=True, default=False, help="Skip host metadata.")
@click.pass_context
def run(  # noqa: PLR0913
    ctx: click.Context,
    target: str,
    factory: bool,
    profile_path: Path | None,
    sample_count: int | None,
    target_time: float | None,
    warmup: float | None,
    confidence: float | None,
    bootstrap: int | None,
    overhead: float | None,
    gc_before_sample: bool | None,
    seed: int | None,
    quick: bool,
    thorough: bool,
    as_json: bool,
    no_environment: bool,
) -> None:
    """Benchmark the callable TARGET, given as 'module:attribute'.

    \b
    Examples:
        chronometre run mymod:work --quick
        chronometre run mymod:make_work --factory --samples 30 --target-time 50ms
        chronometre run mymod:work --profile bench.yaml --json
    """
    from chronometre.display import format_result
    from chronometre.orchestrator import benchmark

    if quick and thorough:
        raise click.UsageError("--quick and --thorough are mutually exclusive.")

    try:
        profile_data = load_profile(profile_path) if profile_path else {}
        config = config_from_profile(
            profile_data,
            cli_overrides={
                "preset": "quick" if quick else ("thorough" if thorough else None),
                "sample_count": sample_count,
                "target_sample_duration_ns": target_time,
                "warmup_duration_ns": warmup,
                "confidence_level": confidence,
                "bootstrap_resample_count": bootstrap,
                "pinned_overhead_ns": overhead,
                "gc_before_sample": gc_before_sample,
                "seed": seed,
            },
        )
    except ValueError as exc:
        raise click.UsageError(str(exc)) from exc

    obj = resolve_target(target)
    computation: Callable[[], Any] = obj() if factory else obj
    if not callable(computation):
        raise click.BadParameter(f"'{target}' is not callable.", param_hint="TARGET")

    environment = None
    if not no_environment:
        from chronometre.environment import capture_environment

        environment = capture_environment()

    try:
        result = benchmark(computation, config, environment=environment)
    except InvalidConfiguration as exc:
        click.echo(str(exc), err=True)
        sys.exit(2)
    except ComputationFailure as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    if as_json:
        click.echo(result.to_json())
    else:
        click.echo(format_result(result, verbose=ctx.obj.get("verbose", False)))


# ---------------------------------------------------------------------------
# calibrate
# ---------------------------------------------------------------------------


@main.command()
@click.option(
    "--invocations",
    type=int,
    default=None,
    help="Number of no-op calls to time (default: 10,000,000).",
)
@click.option("--json", "as_json", is_flag=True, default=False, help="Output as JSON.")
def calibrate(invocations: int | None, as_json: bool) -> None:
    """Measure the per-call overhead of the measurement loop."""
    from chronometre.display import format_time
    from chronometre.overhead import OverheadCalibrator

    if invocations is not None and invocations < 1:
        raise click.BadParameter("must be at least 1", param_hint="--invocations")
    calibrator = OverheadCalibrator(invocations=invocations) if invocations else OverheadCalibrator()
    estimate = calibrator.calibrate()
    if as_json:
        click.echo(json.dumps(estimate.to_dict(), indent=2))
    else:
        click.echo(
            f"Overhead: {format_time(estimate.per_invocation_ns, 3)} per call "
            f"({estimate.invocations} calls)"
        )


# ---------------------------------------------------------------------------
# system
# ---------------------------------------------------------------------------


@main.command()
@click.option("--json", "as_json", is_flag=True, default=False, help="Output as JSON.")
def system(as_json: bool) -> None:
    """Print host and interpreter metadata."""
    from chronometre.environment import capture_environment, format_environment

    profile = capture_environment()
    if as_json:
        click.echo(profile.to_json())
    else:
        click.echo(format_environment(profile))


if __name__ == "__main__":
    main()
