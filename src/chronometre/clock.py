"""Monotonic high-resolution clock used for every measurement.

All durations inside chronometre are nanoseconds.  Raw readings are
integers from :func:`time.perf_counter_ns`, which is monotonic and
unaffected by wall-clock adjustments.
"""

from __future__ import annotations

import time
from typing import Any, Callable

now_ns = time.perf_counter_ns

NS_PER_US = 1_000
NS_PER_MS = 1_000_000
NS_PER_S = 1_000_000_000


def measure(block: Callable[[], Any]) -> int:
    """Return the elapsed nanoseconds for a single call of *block*."""
    start = now_ns()
    block()
    return now_ns() - start


def resolution_ns() -> float:
    """Resolution of the measurement clock in nanoseconds (at least 1)."""
    info = time.get_clock_info("perf_counter")
    return max(info.resolution * NS_PER_S, 1.0)


def seconds_to_ns(seconds: float) -> int:
    """Convert seconds to integer nanoseconds."""
    return int(round(seconds * NS_PER_S))
