"""Warm-up phase run before any sample is collected.

CPython has no JIT to wait for in most builds, but the first calls of a
computation still pay for cold caches, lazy imports, specialization of
the adaptive interpreter (3.11+), and allocator pool priming.  Warm-up
calls the computation one at a time until a time budget is spent and
throws the timings away.  On a warm process the effect is small; set
the budget to zero to skip the phase.
"""

from __future__ import annotations

import statistics
from dataclasses import dataclass
from typing import Any, Callable

from chronometre.logging import get_logger
from chronometre.runner import run_batch

log = get_logger("warmup")

DEFAULT_MAX_WARMUP_EXECUTIONS = 1_000_000_000
STABILITY_TOLERANCE = 0.10  # relative drift between the last two quarters

# Timings kept for the stability check; older ones are dropped.
_HISTORY_LIMIT = 4096


@dataclass(frozen=True)
class WarmupSummary:
    """What the warm-up phase did."""

    executions: int
    elapsed_ns: int
    stabilized: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {
            "executions": self.executions,
            "elapsed_ns": self.elapsed_ns,
            "stabilized": self.stabilized,
        }


def warm_up(
    computation: Callable[[], Any],
    warmup_ns: int,
    *,
    max_executions: int = DEFAULT_MAX_WARMUP_EXECUTIONS,
) -> WarmupSummary:
    """Call *computation* until *warmup_ns* have elapsed.

    Stops early once *max_executions* calls have been made.  A
    computation slower than the whole budget runs exactly once.  A zero
    budget makes no calls at all.

    Exceptions raised by *computation* propagate unchanged.
    """
    if warmup_ns <= 0 or max_executions <= 0:
        return WarmupSummary(executions=0, elapsed_ns=0, stabilized=False)

    elapsed = 0
    executions = 0
    history: list[int] = []
    while elapsed < warmup_ns and executions < max_executions:
        t = run_batch(computation, 1)
        elapsed += t
        executions += 1
        history.append(t)
        if len(history) > _HISTORY_LIMIT:
            del history[: len(history) - _HISTORY_LIMIT]

    stabilized = _is_stable(history)
    log.debug(
        "Warm-up: %d executions in %.3fs (stabilized=%s)",
        executions,
        elapsed / 1e9,
        stabilized,
    )
    return WarmupSummary(executions=executions, elapsed_ns=elapsed, stabilized=stabilized)


def _is_stable(history: list[int]) -> bool:
    """True if the last quarter of timings matches the quarter before it."""
    quarter = len(history) // 4
    if quarter < 2:
        return False
    previous = statistics.median(history[-2 * quarter : -quarter])
    last = statistics.median(history[-quarter:])
    if previous == 0:
        return last == 0
    return abs(last - previous) / previous <= STABILITY_TOLERANCE
