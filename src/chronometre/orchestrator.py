"""Benchmark orchestration.

Runs the measurement protocol for one computation::

    IDLE → CALIBRATING → WARMING_UP → PLANNING → SAMPLING → FINALIZING → DONE

CALIBRATING is skipped when an overhead is pinned in the config or
already cached for the process.  SAMPLING optionally requests
collection quiescence, runs one batch and records the overhead-corrected
sample.  FINALIZING requests quiescence once more (timed, reported as
``final_gc_time_ns``) and hands the samples to the statistics engine.

A :class:`Benchmark` runs once; build a new one for the next run.  The
process-wide overhead estimate carries over between runs.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import Any, Callable

from chronometre.clock import now_ns, resolution_ns
from chronometre.config import (
    BenchConfig,
    quick_config,
    thorough_config,
    validate_config,
)
from chronometre.errors import ComputationFailure, InvalidConfiguration
from chronometre.logging import get_logger
from chronometre.overhead import OverheadEstimate, get_calibrator
from chronometre.quiescence import request_quiescence
from chronometre.results import (
    FINAL_GC_PROBLEM,
    OUTLIER_VARIANCE,
    UNMEASURABLE_EXECUTION,
    BenchmarkResult,
    BenchmarkWarning,
)
from chronometre.runner import (
    estimate_execution_time,
    plan_batch_size,
    run_batch,
    sample_from_batch,
)
from chronometre.stats import (
    bootstrap_mean_variance,
    classify_outliers,
    describe,
    outlier_variance,
)
from chronometre.warmup import WarmupSummary, warm_up

log = get_logger("orchestrator")

FINAL_GC_PROBLEM_THRESHOLD = 0.01


class Phase(enum.Enum):
    IDLE = "idle"
    CALIBRATING = "calibrating"
    WARMING_UP = "warming-up"
    PLANNING = "planning"
    SAMPLING = "sampling"
    FINALIZING = "finalizing"
    DONE = "done"


# ---------------------------------------------------------------------------
# Progress callback
# ---------------------------------------------------------------------------


@dataclass
class BenchProgress:
    """Progress info passed to the callback."""

    phase: Phase
    sample: int = 0  # 1-based, SAMPLING only
    total_samples: int = 0
    detail: str = ""


ProgressCallback = Callable[[BenchProgress], None]


# ---------------------------------------------------------------------------
# Benchmark
# ---------------------------------------------------------------------------


class Benchmark:
    """Measures one computation according to a BenchConfig.

    Usage::

        bench = Benchmark(lambda: sorted(data), BenchConfig(sample_count=30))
        result = bench.run()
    """

    def __init__(
        self,
        computation: Callable[[], Any],
        config: BenchConfig | None = None,
        *,
        progress_callback: ProgressCallback | None = None,
        environment: Any = None,
    ) -> None:
        if not callable(computation):
            raise TypeError(f"Computation must be callable, got {type(computation).__name__}")
        self.computation = computation
        self.config = config or BenchConfig()
        self.progress = progress_callback or self._default_progress
        self.environment = environment
        self.phase = Phase.IDLE

    def run(self) -> BenchmarkResult:
        """Execute the full measurement protocol.

        Raises:
            InvalidConfiguration: Before anything runs, if the config
                fails validation.
            ComputationFailure: If the computation raises; samples
                collected so far are discarded.
            RuntimeError: If this instance has already been run.
        """
        if self.phase is not Phase.IDLE:
            raise RuntimeError("A Benchmark instance can only be run once.")

        # Private copy; caller edits after this point do not reach the result.
        self.config = config = replace(self.config)
        errors = validate_config(config)
        fatal = [e for e in errors if e.severity == "error"]
        for w in errors:
            if w.severity == "warning":
                log.warning("Config warning: %s: %s", w.field, w.message)
        if fatal:
            raise InvalidConfiguration(fatal)

        overhead = self._resolve_overhead()

        self._enter(Phase.WARMING_UP, f"{config.warmup_duration_ns / 1e9:.2f}s budget")
        warmup = self._guarded(
            "warm-up",
            warm_up,
            self.computation,
            config.warmup_duration_ns,
            max_executions=config.max_warmup_executions,
        )

        self._enter(Phase.PLANNING)
        estimate = self._guarded(
            "planning",
            estimate_execution_time,
            self.computation,
            runs=config.initial_estimate_runs,
            overhead_ns=overhead.per_invocation_ns,
        )
        batch_size = plan_batch_size(
            estimate,
            config.target_sample_duration_ns,
            fallback_batch_size=config.fallback_batch_size,
            resolution_ns=resolution_ns(),
        )
        log.info(
            "Estimated %.1f ns per call; %d calls per sample, %d samples",
            estimate,
            batch_size,
            config.sample_count,
        )

        samples, raw = self._collect(batch_size, overhead)

        self._enter(Phase.FINALIZING)
        gc_start = now_ns()
        request_quiescence(max_attempts=config.max_gc_attempts, pause_s=0)
        final_gc_time = now_ns() - gc_start

        result = self._assemble(samples, raw, batch_size, overhead, warmup, final_gc_time)
        self._enter(Phase.DONE)
        return result

    # -- phases -------------------------------------------------------------

    def _resolve_overhead(self) -> OverheadEstimate:
        if self.config.pinned_overhead_ns is not None:
            return OverheadEstimate(
                per_invocation_ns=float(self.config.pinned_overhead_ns), pinned=True
            )
        calibrator = get_calibrator()
        cached = calibrator.cached
        if cached is not None:
            return cached
        self._enter(Phase.CALIBRATING)
        return calibrator.get()

    def _collect(self, batch_size: int, overhead: OverheadEstimate) -> tuple[list[float], list[int]]:
        config = self.config
        self._enter(Phase.SAMPLING)
        samples: list[float] = []
        raw: list[int] = []
        for i in range(config.sample_count):
            if config.gc_before_sample:
                request_quiescence(
                    max_attempts=config.max_gc_attempts,
                    pause_s=config.quiescence_pause_s,
                )
            elapsed = self._guarded("sampling", run_batch, self.computation, batch_size)
            raw.append(elapsed)
            samples.append(sample_from_batch(elapsed, batch_size, overhead.per_invocation_ns))
            self.progress(
                BenchProgress(
                    phase=Phase.SAMPLING,
                    sample=i + 1,
                    total_samples=config.sample_count,
                    detail=f"{samples[-1]:.1f} ns/call",
                )
            )
        return samples, raw

    def _assemble(
        self,
        samples: list[float],
        raw: list[int],
        batch_size: int,
        overhead: OverheadEstimate,
        warmup: WarmupSummary,
        final_gc_time: int,
    ) -> BenchmarkResult:
        config = self.config
        stats = describe(samples, tail_quantile=config.tail_quantile)
        outliers = classify_outliers(samples)
        mean_ci, variance_ci = bootstrap_mean_variance(
            samples,
            confidence=config.confidence_level,
            n_resamples=config.bootstrap_resample_count,
            seed=config.seed,
        )
        # Outlier variance is defined on whole-batch times.
        effect = outlier_variance(
            stats.mean * batch_size, stats.variance * batch_size**2, batch_size
        )
        sampling_time = sum(raw)

        warnings: list[BenchmarkWarning] = []
        resolution = resolution_ns()
        if min(raw) <= resolution or all(s == 0 for s in samples):
            warnings.append(
                BenchmarkWarning(
                    kind=UNMEASURABLE_EXECUTION,
                    message=(
                        f"Execution time could not be separated from clock resolution "
                        f"({resolution:.0f} ns) and overhead "
                        f"({overhead.per_invocation_ns:.1f} ns/call) at {batch_size} calls "
                        f"per sample; results have degraded precision."
                    ),
                )
            )
        if sampling_time > 0 and final_gc_time / sampling_time > FINAL_GC_PROBLEM_THRESHOLD:
            warnings.append(
                BenchmarkWarning(
                    kind=FINAL_GC_PROBLEM,
                    message=(
                        f"Final GC took {final_gc_time / sampling_time:.1%} of the sampling "
                        f"time; garbage produced by the computation may not be fully "
                        f"accounted for in the samples."
                    ),
                )
            )
        if effect.label in ("moderate", "severe"):
            warnings.append(
                BenchmarkWarning(
                    kind=OUTLIER_VARIANCE,
                    message=(
                        f"Variance is {effect.label}ly inflated by outliers "
                        f"({effect.fraction:.1%})."
                    ),
                )
            )
        for w in warnings:
            log.warning("%s", w.message)

        return BenchmarkResult(
            samples=tuple(samples),
            stats=stats,
            outliers=outliers,
            mean_ci=mean_ci,
            variance_ci=variance_ci,
            outlier_effect=effect,
            overhead=overhead,
            config=config,
            batch_size=batch_size,
            warmup=warmup,
            final_gc_time_ns=final_gc_time,
            sampling_time_ns=sampling_time,
            warnings=tuple(warnings),
            environment=self.environment,
        )

    # -- helpers ------------------------------------------------------------

    def _enter(self, phase: Phase, detail: str = "") -> None:
        self.phase = phase
        if phase is not Phase.DONE:
            log.info("Phase: %s%s", phase.value, f" ({detail})" if detail else "")
        self.progress(
            BenchProgress(phase=phase, total_samples=self.config.sample_count, detail=detail)
        )

    def _guarded(self, phase_name: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Call *fn*, turning a computation exception into ComputationFailure."""
        try:
            return fn(*args, **kwargs)
        except Exception as exc:
            log.error("Computation failed during %s: %s", phase_name, exc)
            raise ComputationFailure(phase_name, exc) from exc

    @staticmethod
    def _default_progress(progress: BenchProgress) -> None:
        """Default progress callback: per-sample lines at DEBUG."""
        if progress.phase is Phase.SAMPLING and progress.sample:
            log.debug(
                "  sample %d/%d  %s",
                progress.sample,
                progress.total_samples,
                progress.detail,
            )


# ---------------------------------------------------------------------------
# Convenience entry points
# ---------------------------------------------------------------------------


def benchmark(
    computation: Callable[[], Any],
    config: BenchConfig | None = None,
    *,
    environment: Any = None,
) -> BenchmarkResult:
    """Benchmark *computation* with *config* (defaults if omitted)."""
    return Benchmark(computation, config, environment=environment).run()


def quick_benchmark(computation: Callable[[], Any], **kwargs: Any) -> BenchmarkResult:
    """Benchmark with :func:`~chronometre.config.quick_config` settings."""
    return benchmark(computation, quick_config(), **kwargs)


def thorough_benchmark(computation: Callable[[], Any], **kwargs: Any) -> BenchmarkResult:
    """Benchmark with :func:`~chronometre.config.thorough_config` settings."""
    return benchmark(computation, thorough_config(), **kwargs)
