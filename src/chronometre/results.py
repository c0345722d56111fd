"""Benchmark result data structures and serialization.

Hierarchy::

    BenchmarkResult (one completed run, immutable)
      → samples: tuple[float, ...]           overhead-corrected ns per call
      → stats: DescriptiveStats
      → outliers: OutlierCounts
      → mean_ci / variance_ci: BootstrapEstimate
      → outlier_effect: OutlierEffect
      → overhead: OverheadEstimate
      → warmup: WarmupSummary
      → config: BenchConfig
      → warnings: tuple[BenchmarkWarning, ...]
      → environment: opaque pass-through (usually EnvironmentProfile)
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from typing import Any

from chronometre.config import BenchConfig
from chronometre.overhead import OverheadEstimate
from chronometre.stats import (
    BootstrapEstimate,
    DescriptiveStats,
    OutlierCounts,
    OutlierEffect,
    quantile,
)
from chronometre.warmup import WarmupSummary

UNMEASURABLE_EXECUTION = "unmeasurable-execution"
FINAL_GC_PROBLEM = "final-gc-problem"
OUTLIER_VARIANCE = "outlier-variance"


@dataclass(frozen=True)
class BenchmarkWarning:
    """A condition that degraded the measurement without aborting it."""

    kind: str  # unmeasurable-execution, final-gc-problem, outlier-variance
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "message": self.message}


@dataclass(frozen=True)
class BenchmarkResult:
    """Everything one benchmark run produced."""

    samples: tuple[float, ...]
    stats: DescriptiveStats
    outliers: OutlierCounts
    mean_ci: BootstrapEstimate
    variance_ci: BootstrapEstimate
    outlier_effect: OutlierEffect
    overhead: OverheadEstimate
    config: BenchConfig
    batch_size: int
    warmup: WarmupSummary
    final_gc_time_ns: int
    sampling_time_ns: int  # raw time spent inside timed batches
    warnings: tuple[BenchmarkWarning, ...] = ()
    environment: Any = field(default=None, compare=False)

    @property
    def sample_count(self) -> int:
        return len(self.samples)

    @property
    def total_executions(self) -> int:
        """Measured calls, excluding warm-up and planning."""
        return self.batch_size * len(self.samples)

    @property
    def mean(self) -> float:
        return self.stats.mean

    @property
    def variance(self) -> float:
        return self.stats.variance

    @property
    def stdev(self) -> float:
        return self.stats.stdev

    @property
    def stdev_ci(self) -> tuple[float, float]:
        """Interval for the standard deviation, from the variance interval."""
        return (math.sqrt(self.variance_ci.lower), math.sqrt(self.variance_ci.upper))

    def quantile(self, p: float) -> float:
        """The *p*-quantile of the samples (linear interpolation)."""
        return quantile(self.samples, p)

    def has_warning(self, kind: str) -> bool:
        return any(w.kind == kind for w in self.warnings)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        d: dict[str, Any] = {
            "samples": [round(s, 6) for s in self.samples],
            "stats": self.stats.to_dict(),
            "outliers": self.outliers.to_dict(),
            "mean_ci": self.mean_ci.to_dict(),
            "variance_ci": self.variance_ci.to_dict(),
            "outlier_effect": self.outlier_effect.to_dict(),
            "overhead": self.overhead.to_dict(),
            "config": self.config.to_dict(),
            "batch_size": self.batch_size,
            "total_executions": self.total_executions,
            "warmup": self.warmup.to_dict(),
            "final_gc_time_ns": self.final_gc_time_ns,
            "sampling_time_ns": self.sampling_time_ns,
            "warnings": [w.to_dict() for w in self.warnings],
        }
        if self.environment is not None:
            to_dict = getattr(self.environment, "to_dict", None)
            d["environment"] = to_dict() if callable(to_dict) else self.environment
        return d

    def to_json(self, indent: int = 2) -> str:
        """Serialize to a JSON string."""
        return json.dumps(self.to_dict(), indent=indent)
