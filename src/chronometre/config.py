"""Benchmark configuration.

Handles:
- The :class:`BenchConfig` structure consumed by the orchestrator.
- Validating a configuration before anything is measured.
- The quick and thorough presets.
- Loading configuration profiles from YAML files.
- Parsing human-friendly durations ("500ms", "2s", "250us").
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

from chronometre.clock import NS_PER_MS, NS_PER_S, NS_PER_US
from chronometre.quiescence import DEFAULT_MAX_GC_ATTEMPTS, DEFAULT_PAUSE_S
from chronometre.runner import DEFAULT_FALLBACK_BATCH_SIZE, DEFAULT_INITIAL_ESTIMATE_RUNS
from chronometre.stats import DEFAULT_TAIL_QUANTILE
from chronometre.warmup import DEFAULT_MAX_WARMUP_EXECUTIONS

log = logging.getLogger("chronometre")

RECOMMENDED_MIN_RESAMPLES = 1000


# ---------------------------------------------------------------------------
# BenchConfig
# ---------------------------------------------------------------------------


@dataclass
class BenchConfig:
    """Settings for one benchmark run.  All durations are nanoseconds."""

    # Measurement
    warmup_duration_ns: int = 10 * NS_PER_S
    target_sample_duration_ns: int = 1 * NS_PER_S
    sample_count: int = 60
    gc_before_sample: bool = True

    # Statistics
    confidence_level: float = 0.95
    bootstrap_resample_count: int = 1000
    tail_quantile: float = DEFAULT_TAIL_QUANTILE
    seed: int | None = None  # bootstrap RNG seed

    # Overhead
    pinned_overhead_ns: float | None = None

    # Limits
    max_warmup_executions: int = DEFAULT_MAX_WARMUP_EXECUTIONS
    initial_estimate_runs: int = DEFAULT_INITIAL_ESTIMATE_RUNS
    fallback_batch_size: int = DEFAULT_FALLBACK_BATCH_SIZE

    # Quiescence
    quiescence_pause_s: float = DEFAULT_PAUSE_S
    max_gc_attempts: int = DEFAULT_MAX_GC_ATTEMPTS

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BenchConfig:
        """Deserialize from a dict, ignoring unknown fields."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


# ---------------------------------------------------------------------------
# Presets
# ---------------------------------------------------------------------------


def quick_config(config: BenchConfig | None = None) -> BenchConfig:
    """Short, lower-precision settings for rapid iteration.

    6 samples of ~100ms each after a 5s warm-up.
    """
    config = config or BenchConfig()
    config.warmup_duration_ns = 5 * NS_PER_S
    config.target_sample_duration_ns = 100 * NS_PER_MS
    config.sample_count = 6
    config.bootstrap_resample_count = 500
    return config


def thorough_config(config: BenchConfig | None = None) -> BenchConfig:
    """Longer settings for final numbers.

    100 samples of ~1s each after a 20s warm-up, 10000 resamples.
    """
    config = config or BenchConfig()
    config.warmup_duration_ns = 20 * NS_PER_S
    config.target_sample_duration_ns = 1 * NS_PER_S
    config.sample_count = 100
    config.bootstrap_resample_count = 10_000
    return config


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass
class ValidationError:
    """A single configuration validation error."""

    field: str
    message: str
    severity: str = "error"  # "error" or "warning"


def validate_config(config: BenchConfig) -> list[ValidationError]:
    """Validate a benchmark configuration.

    Returns a list of validation errors.  Empty list means valid.
    """
    errors: list[ValidationError] = []

    if config.sample_count < 2:
        errors.append(
            ValidationError(
                field="sample_count",
                message=f"Need at least 2 samples to estimate variance (got {config.sample_count}).",
            )
        )

    if config.target_sample_duration_ns <= 0:
        errors.append(
            ValidationError(
                field="target_sample_duration_ns",
                message=(
                    f"Target sample duration must be positive "
                    f"(got {config.target_sample_duration_ns})."
                ),
            )
        )

    if config.warmup_duration_ns < 0:
        errors.append(
            ValidationError(
                field="warmup_duration_ns",
                message=f"Warm-up duration cannot be negative (got {config.warmup_duration_ns}).",
            )
        )

    if not 0.0 < config.confidence_level < 1.0:
        errors.append(
            ValidationError(
                field="confidence_level",
                message=(
                    f"Confidence level must be strictly between 0 and 1 "
                    f"(got {config.confidence_level})."
                ),
            )
        )

    if not 0.0 < config.tail_quantile < 0.5:
        errors.append(
            ValidationError(
                field="tail_quantile",
                message=f"Tail quantile must be in (0, 0.5) (got {config.tail_quantile}).",
            )
        )

    if config.bootstrap_resample_count < 1:
        errors.append(
            ValidationError(
                field="bootstrap_resample_count",
                message=(
                    f"Need at least one bootstrap resample "
                    f"(got {config.bootstrap_resample_count})."
                ),
            )
        )
    elif config.bootstrap_resample_count < RECOMMENDED_MIN_RESAMPLES:
        errors.append(
            ValidationError(
                field="bootstrap_resample_count",
                message=(
                    f"{config.bootstrap_resample_count} bootstrap resamples give coarse "
                    f"interval bounds; {RECOMMENDED_MIN_RESAMPLES} or more is recommended."
                ),
                severity="warning",
            )
        )

    for name in ("max_warmup_executions", "initial_estimate_runs", "fallback_batch_size"):
        value = getattr(config, name)
        if value < 1:
            errors.append(
                ValidationError(field=name, message=f"{name} must be at least 1 (got {value}).")
            )

    if config.max_gc_attempts < 1:
        errors.append(
            ValidationError(
                field="max_gc_attempts",
                message=f"max_gc_attempts must be at least 1 (got {config.max_gc_attempts}).",
            )
        )

    if config.quiescence_pause_s < 0:
        errors.append(
            ValidationError(
                field="quiescence_pause_s",
                message=f"Quiescence pause cannot be negative (got {config.quiescence_pause_s}).",
            )
        )

    pinned = config.pinned_overhead_ns
    if pinned is not None and (not math.isfinite(pinned) or pinned < 0):
        errors.append(
            ValidationError(
                field="pinned_overhead_ns",
                message=f"Pinned overhead must be a non-negative number of ns (got {pinned}).",
            )
        )

    return errors


# ---------------------------------------------------------------------------
# Durations
# ---------------------------------------------------------------------------

_DURATION_RE = re.compile(r"^\s*([0-9]*\.?[0-9]+(?:[eE][-+]?[0-9]+)?)\s*([a-zµ]*)\s*$")
_UNIT_NS = {
    "": 1,
    "ns": 1,
    "us": NS_PER_US,
    "µs": NS_PER_US,
    "ms": NS_PER_MS,
    "s": NS_PER_S,
}


def parse_duration(value: str | int | float) -> float:
    """Parse a duration into nanoseconds.

    Numbers are taken as nanoseconds.  Strings may carry a unit suffix:
    ``ns``, ``us`` (or ``µs``), ``ms``, ``s``.  Examples: ``"250us"``,
    ``"1.5s"``, ``"100"``.

    Raises:
        ValueError: If the value cannot be parsed or is negative.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        if value < 0 or not math.isfinite(value):
            raise ValueError(f"Duration must be a non-negative finite number (got {value}).")
        return float(value)

    match = _DURATION_RE.match(value)
    if not match or match.group(2) not in _UNIT_NS:
        raise ValueError(
            f"Invalid duration: '{value}'. Expected a number with an optional "
            f"unit (ns, us, ms, s), e.g. '500ms'."
        )
    return float(match.group(1)) * _UNIT_NS[match.group(2)]


# ---------------------------------------------------------------------------
# YAML profile loading
# ---------------------------------------------------------------------------

_DURATION_KEYS = {
    "warmup": "warmup_duration_ns",
    "warmup_duration": "warmup_duration_ns",
    "target_time": "target_sample_duration_ns",
    "target_sample_duration": "target_sample_duration_ns",
    "pinned_overhead": "pinned_overhead_ns",
}


def load_profile(profile_path: Path) -> dict[str, Any]:
    """Load a configuration profile from a YAML file.

    Profile format::

        preset: quick          # optional: quick or thorough
        warmup: 2s
        target_time: 250ms
        sample_count: 30
        gc_before_sample: false
        confidence_level: 0.99
        bootstrap_resample_count: 5000
        pinned_overhead: 35ns
        seed: 42

    Returns:
        The parsed YAML as a dict.
    """
    import yaml

    if not profile_path.exists():
        raise FileNotFoundError(f"Profile not found: {profile_path}")

    data = yaml.safe_load(profile_path.read_text())
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Profile must be a YAML mapping, got {type(data).__name__}")
    return data


def config_from_profile(
    profile_data: dict[str, Any],
    *,
    cli_overrides: dict[str, Any] | None = None,
) -> BenchConfig:
    """Build a BenchConfig from a parsed profile plus CLI overrides.

    Precedence (last wins): defaults, the profile's ``preset``, profile
    values, CLI overrides.  ``None`` override values are ignored.

    Duration keys (``warmup``, ``target_time``, ``pinned_overhead`` and
    their ``*_ns`` forms) accept anything :func:`parse_duration` does.

    Raises:
        ValueError: On an unknown key, an unknown preset, or an
            unparsable duration.
    """
    merged = dict(profile_data)
    for key, value in (cli_overrides or {}).items():
        if value is not None:
            merged[key] = value

    config = BenchConfig()
    preset = merged.pop("preset", None)
    if preset == "quick":
        quick_config(config)
    elif preset == "thorough":
        thorough_config(config)
    elif preset is not None:
        raise ValueError(f"Unknown preset '{preset}'. Valid presets: quick, thorough")

    known = {f.name for f in fields(BenchConfig)}
    for key, value in merged.items():
        target = _DURATION_KEYS.get(key, key)
        if target not in known:
            raise ValueError(
                f"Unknown configuration key '{key}'. Valid keys: "
                f"{', '.join(sorted(known | set(_DURATION_KEYS)))}"
            )
        if target.endswith("_ns") and value is not None:
            value = parse_duration(value)
            if target != "pinned_overhead_ns":
                value = int(round(value))
        setattr(config, target, value)

    return config
