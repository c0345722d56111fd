"""Terminal display formatting for benchmark results.

Produces an aligned plain-text report: execution-time estimates with
their confidence intervals, tail quantiles, overhead, an outlier
breakdown and any warnings raised during the run.
No external dependencies.
"""

from __future__ import annotations

import math

from chronometre.results import BenchmarkResult

_OUTLIER_LABELS = (
    ("low_severe", "low-severe"),
    ("low_mild", "low-mild"),
    ("high_mild", "high-mild"),
    ("high_severe", "high-severe"),
)


# ---------------------------------------------------------------------------
# Formatting utilities
# ---------------------------------------------------------------------------


def format_time(ns: float, precision: int = 2) -> str:
    """Format a nanosecond duration with adaptive units."""
    if math.isnan(ns):
        return "N/A"
    if math.isinf(ns):
        return "inf"
    magnitude = abs(ns)
    if magnitude < 1_000:
        return f"{ns:.{precision}f} ns"
    if magnitude < 1_000_000:
        return f"{ns / 1_000:.{precision}f} µs"
    if magnitude < 1_000_000_000:
        return f"{ns / 1_000_000:.{precision}f} ms"
    if magnitude < 60_000_000_000:
        return f"{ns / 1_000_000_000:.{precision}f} s"
    minutes = int(ns // 60_000_000_000)
    secs = (ns % 60_000_000_000) / 1_000_000_000
    return f"{minutes}m{secs:.0f}s"


def _format_pct(fraction: float, precision: int = 1) -> str:
    if math.isnan(fraction):
        return "N/A"
    return f"{fraction * 100:.{precision}f}%"


def _format_interval(lower: float, upper: float) -> str:
    return f"[{format_time(lower)}, {format_time(upper)}]"


# ---------------------------------------------------------------------------
# Result report
# ---------------------------------------------------------------------------


def format_result(result: BenchmarkResult, *, verbose: bool = False) -> str:
    """Format a benchmark result for display.

    Args:
        result: The result to render.
        verbose: Also show warm-up, timing totals, the variance interval,
            and the environment profile when one is attached.

    Returns:
        Formatted string for terminal output.
    """
    stats = result.stats
    mean_ci = result.mean_ci
    level = _format_pct(mean_ci.confidence_level, 0)
    tail = stats.tail_quantile

    lines: list[str] = []
    header = (
        f"Evaluation count: {result.total_executions} in {result.sample_count} "
        f"samples of {result.batch_size} calls"
    )
    lines.append(header)
    lines.append("─" * len(header))

    sd_lower, sd_upper = result.stdev_ci
    overhead = f"{format_time(result.overhead.per_invocation_ns)}/call"
    if result.overhead.pinned:
        overhead += " (pinned)"
    mean_text = f"{format_time(stats.mean)}  {level} CI "
    mean_text += _format_interval(mean_ci.lower, mean_ci.upper)
    sd_text = f"{format_time(stats.stdev)}  {level} CI {_format_interval(sd_lower, sd_upper)}"
    rows = [
        ("Mean", mean_text),
        ("Std deviation", sd_text),
        ("Median", format_time(stats.median)),
        (f"Lower quantile ({_format_pct(tail)})", format_time(stats.lower_tail)),
        (f"Upper quantile ({_format_pct(1 - tail)})", format_time(stats.upper_tail)),
        ("Overhead used", overhead),
    ]
    width = max(len(label) for label, _ in rows)
    for label, value in rows:
        lines.append(f"  {label:<{width}} : {value}")

    if verbose:
        variance_ci = result.variance_ci
        lines.append(
            f"  {'Variance':<{width}} : {stats.variance:.3f} ns²  {level} CI "
            f"[{variance_ci.lower:.3f}, {variance_ci.upper:.3f}]"
        )
        lines.append(
            f"  {'Warm-up':<{width}} : {result.warmup.executions} calls in "
            f"{format_time(result.warmup.elapsed_ns)}"
            + ("" if result.warmup.stabilized else " (not stabilized)")
        )
        lines.append(f"  {'Sampling time':<{width}} : {format_time(result.sampling_time_ns)}")
        lines.append(f"  {'Final GC':<{width}} : {format_time(result.final_gc_time_ns)}")

    lines.append("")
    outliers = result.outliers
    n = result.sample_count
    if outliers.outliers:
        lines.append(
            f"Found {outliers.outliers} outliers in {n} samples "
            f"({_format_pct(outliers.outliers / n)})"
        )
        for attr, label in _OUTLIER_LABELS:
            count = getattr(outliers, attr)
            if count:
                lines.append(f"  {label:<12} {count:>4} ({_format_pct(count / n)})")
    else:
        lines.append(f"No outliers in {n} samples")

    effect = result.outlier_effect
    lines.append(
        f"Variance from outliers: {_format_pct(effect.fraction)} "
        f"({_describe_effect(effect.label)})"
    )

    if result.warnings:
        lines.append("")
        for w in result.warnings:
            lines.append(f"WARNING [{w.kind}]: {w.message}")

    if verbose and result.environment is not None:
        from chronometre.environment import EnvironmentProfile, format_environment

        if isinstance(result.environment, EnvironmentProfile):
            lines.append("")
            lines.append(format_environment(result.environment))

    return "\n".join(lines)


def _describe_effect(label: str) -> str:
    if label == "unaffected":
        return "variance is unaffected by outliers"
    return f"variance is {label}ly inflated by outliers"
