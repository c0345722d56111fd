"""Batch execution and batch-size planning.

A *batch* is ``n`` back-to-back calls of the benchmarked computation
timed as one region.  One batch produces one sample: the mean
per-call time after subtracting the calibrated per-call overhead.

The batch size is planned once per run from a short initial estimate
and then held fixed for every sample, so that all samples in a run
measure the same thing.
"""

from __future__ import annotations

import itertools
import math
import statistics
from typing import Any, Callable

from chronometre.clock import now_ns
from chronometre.logging import get_logger

log = get_logger("runner")

DEFAULT_FALLBACK_BATCH_SIZE = 1000
DEFAULT_INITIAL_ESTIMATE_RUNS = 5


# ---------------------------------------------------------------------------
# Result sink
# ---------------------------------------------------------------------------


class Blackhole:
    """Holds on to computation results so the calls stay observable.

    The runner stores the last value of every batch here after the
    timed region closes.
    """

    def __init__(self) -> None:
        self.value: Any = None
        self.consumed = 0

    def consume(self, value: Any) -> None:
        self.value = value
        self.consumed += 1


blackhole = Blackhole()


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


def run_batch(computation: Callable[[], Any], n: int) -> int:
    """Call *computation* ``n`` times in one timed region.

    Args:
        computation: Zero-argument callable.  Its return value is not
            interpreted.
        n: Number of calls (at least 1).

    Returns:
        Raw elapsed nanoseconds for the whole batch.  No overhead is
        subtracted; see :func:`sample_from_batch`.

    Exceptions raised by *computation* propagate unchanged.
    """
    if n < 1:
        raise ValueError(f"Batch size must be at least 1 (got {n}).")
    result = None
    repeat = itertools.repeat(None, n)
    start = now_ns()
    for _ in repeat:
        result = computation()
    elapsed = now_ns() - start
    blackhole.consume(result)
    return elapsed


def sample_from_batch(elapsed_ns: int, n: int, overhead_ns: float) -> float:
    """Overhead-corrected mean per-call time of one batch, floored at zero."""
    return max(0.0, (elapsed_ns - overhead_ns * n) / n)


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


def plan_batch_size(
    estimate_ns: float,
    target_ns: float,
    *,
    fallback_batch_size: int = DEFAULT_FALLBACK_BATCH_SIZE,
    resolution_ns: float = 0.0,
) -> int:
    """Number of calls per batch so one batch lasts about *target_ns*.

    Pure function: ``max(1, round(target_ns / estimate_ns))``.  When the
    estimate is not a positive finite number or falls below
    *resolution_ns*, *fallback_batch_size* is used instead.
    """
    if not math.isfinite(estimate_ns) or estimate_ns <= 0 or estimate_ns < resolution_ns:
        return max(1, int(fallback_batch_size))
    return max(1, int(round(target_ns / estimate_ns)))


def estimate_execution_time(
    computation: Callable[[], Any],
    *,
    runs: int = DEFAULT_INITIAL_ESTIMATE_RUNS,
    overhead_ns: float = 0.0,
) -> float:
    """Estimate one call's duration from *runs* single-call batches.

    Uses the median of the overhead-corrected timings so a single
    preempted call does not skew the plan.
    """
    timings = [
        sample_from_batch(run_batch(computation, 1), 1, overhead_ns) for _ in range(max(1, runs))
    ]
    estimate = statistics.median(timings)
    log.debug("Initial estimate from %d runs: %.1f ns", len(timings), estimate)
    return estimate
