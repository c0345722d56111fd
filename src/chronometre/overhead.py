"""Process-wide estimate of per-call measurement overhead.

Every sample pays for the loop that drives the computation and the call
itself.  The calibrator measures that cost once by pushing a large,
fixed number of no-op calls through :func:`chronometre.runner.run_batch`
(the same path real benchmarks use) and caches the mean per-call time.

The cached value is read-mostly shared state:

* :meth:`OverheadCalibrator.get` computes it lazily on first use and
  returns the *same object* on every later call;
* :meth:`OverheadCalibrator.invalidate` drops it so the next ``get``
  re-measures;
* :meth:`OverheadCalibrator.set` pins a caller-supplied value (for
  reproducing numbers across processes) and turns off recomputation
  until :meth:`OverheadCalibrator.unpin` is called.

A lock is held only while the value is being computed or replaced.
"""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass
from typing import Any

from chronometre.clock import now_ns
from chronometre.logging import get_logger
from chronometre.runner import run_batch

log = get_logger("overhead")

DEFAULT_CALIBRATION_INVOCATIONS = 10_000_000
DEFAULT_CALIBRATION_BATCH = 100_000


@dataclass(frozen=True)
class OverheadEstimate:
    """Per-call overhead of the measurement machinery."""

    per_invocation_ns: float
    invocations: int = 0  # 0 when pinned by the caller
    pinned: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {
            "per_invocation_ns": round(self.per_invocation_ns, 3),
            "invocations": self.invocations,
            "pinned": self.pinned,
        }


def _noop() -> None:
    return None


class OverheadCalibrator:
    """Lazily computed, invalidatable, pinnable overhead cache."""

    def __init__(
        self,
        *,
        invocations: int = DEFAULT_CALIBRATION_INVOCATIONS,
        batch_size: int = DEFAULT_CALIBRATION_BATCH,
    ) -> None:
        if invocations < 1 or batch_size < 1:
            raise ValueError("Calibration invocations and batch size must be positive.")
        self.invocations = invocations
        self.batch_size = min(batch_size, invocations)
        self._lock = threading.Lock()
        self._estimate: OverheadEstimate | None = None
        self._pinned = False

    @property
    def cached(self) -> OverheadEstimate | None:
        """The cached estimate, or None if nothing has been computed."""
        return self._estimate

    @property
    def is_pinned(self) -> bool:
        return self._pinned

    def get(self) -> OverheadEstimate:
        """Return the cached estimate, calibrating on first use."""
        estimate = self._estimate
        if estimate is not None:
            return estimate
        with self._lock:
            if self._estimate is None:
                self._estimate = self._measure()
            return self._estimate

    def calibrate(self) -> OverheadEstimate:
        """Re-measure and replace the cached estimate.

        A pinned value is never replaced; it is returned as-is.
        """
        with self._lock:
            if self._pinned and self._estimate is not None:
                log.info("Overhead is pinned; skipping calibration.")
                return self._estimate
            self._estimate = self._measure()
            return self._estimate

    def invalidate(self) -> None:
        """Drop the cached estimate.  No effect while a value is pinned."""
        with self._lock:
            if self._pinned:
                log.debug("Overhead is pinned; ignoring invalidation.")
                return
            self._estimate = None

    def set(self, per_invocation_ns: float) -> OverheadEstimate:
        """Pin the overhead to a fixed value."""
        if not math.isfinite(per_invocation_ns) or per_invocation_ns < 0:
            raise ValueError(
                f"Pinned overhead must be a finite, non-negative number of ns "
                f"(got {per_invocation_ns})."
            )
        estimate = OverheadEstimate(per_invocation_ns=float(per_invocation_ns), pinned=True)
        with self._lock:
            self._estimate = estimate
            self._pinned = True
        log.debug("Overhead pinned to %.3f ns", per_invocation_ns)
        return estimate

    def unpin(self) -> None:
        """Re-enable calibration; the next ``get`` re-measures."""
        with self._lock:
            if self._pinned:
                self._pinned = False
                self._estimate = None

    def _measure(self) -> OverheadEstimate:
        log.info("Estimating measurement overhead (%d no-op calls)...", self.invocations)
        started = now_ns()
        # One untimed batch first so the loop itself is warm.
        run_batch(_noop, self.batch_size)

        total_elapsed = 0
        done = 0
        while done < self.invocations:
            n = min(self.batch_size, self.invocations - done)
            total_elapsed += run_batch(_noop, n)
            done += n

        per_call = total_elapsed / done
        log.info(
            "Overhead estimate: %.3f ns per call (calibration took %.2fs)",
            per_call,
            (now_ns() - started) / 1e9,
        )
        return OverheadEstimate(per_invocation_ns=per_call, invocations=done)


# ---------------------------------------------------------------------------
# Process-wide instance
# ---------------------------------------------------------------------------

_calibrator = OverheadCalibrator()


def get_calibrator() -> OverheadCalibrator:
    """The process-wide calibrator used by every benchmark run."""
    return _calibrator


def estimate_overhead() -> OverheadEstimate:
    """Return the process-wide overhead estimate, calibrating if needed."""
    return _calibrator.get()


def invalidate_overhead() -> None:
    """Drop the process-wide estimate (ignored while pinned)."""
    _calibrator.invalidate()


def set_overhead(per_invocation_ns: float) -> OverheadEstimate:
    """Pin the process-wide estimate."""
    return _calibrator.set(per_invocation_ns)


def unpin_overhead() -> None:
    """Allow the process-wide estimate to be recomputed again."""
    _calibrator.unpin()
