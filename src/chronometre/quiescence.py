"""Collection-quiescence requests.

Before each sample (when enabled) and once after the last one, the
orchestrator asks the garbage collector to reclaim everything it can so
that deferred cleanup from earlier batches does not land inside a later
timed region.  This is best-effort:

* reference counting already frees most objects immediately, so on
  CPython ``gc.collect()`` only has cycles left to do;
* a run with ``gc.disable()`` in effect still collects here, because an
  explicit ``gc.collect()`` ignores the enabled flag;
* interpreters without a cycle collector make ``gc.collect()`` a cheap
  no-op, and the request degrades to a short pause.

Failures are logged and never reported to the caller.
"""

from __future__ import annotations

import gc
import time

from chronometre.logging import get_logger

log = get_logger("quiescence")

DEFAULT_MAX_GC_ATTEMPTS = 100
DEFAULT_PAUSE_S = 0.01


def request_quiescence(
    *,
    max_attempts: int = DEFAULT_MAX_GC_ATTEMPTS,
    pause_s: float = DEFAULT_PAUSE_S,
) -> int:
    """Collect garbage until a pass finds nothing, then pause briefly.

    Args:
        max_attempts: Upper bound on ``gc.collect()`` passes.
        pause_s: Seconds to sleep after collecting, letting finalizers
            and the allocator settle.

    Returns:
        Total number of unreachable objects found across all passes.
    """
    total = 0
    for _ in range(max(1, max_attempts)):
        try:
            found = gc.collect()
        except Exception as exc:  # noqa: BLE001
            log.debug("gc.collect() failed: %s", exc)
            break
        total += found
        if found == 0:
            break
    if pause_s > 0:
        time.sleep(pause_s)
    return total
