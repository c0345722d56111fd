"""chronometre: statistically rigorous micro-benchmarking for Python callables.

Typical use::

    from chronometre import benchmark, quick_config

    result = benchmark(lambda: sorted(data), quick_config())
    print(result.mean, result.mean_ci.lower, result.mean_ci.upper)
"""

from __future__ import annotations

__version__ = "0.1.0"

from chronometre.config import BenchConfig, quick_config, thorough_config  # noqa: E402
from chronometre.errors import (  # noqa: E402
    ChronometreError,
    ComputationFailure,
    InvalidConfiguration,
)
from chronometre.orchestrator import (  # noqa: E402
    Benchmark,
    benchmark,
    quick_benchmark,
    thorough_benchmark,
)
from chronometre.overhead import (  # noqa: E402
    estimate_overhead,
    invalidate_overhead,
    set_overhead,
    unpin_overhead,
)
from chronometre.results import BenchmarkResult  # noqa: E402

__all__ = [
    "Benchmark",
    "BenchConfig",
    "BenchmarkResult",
    "ChronometreError",
    "ComputationFailure",
    "InvalidConfiguration",
    "__version__",
    "benchmark",
    "estimate_overhead",
    "invalidate_overhead",
    "quick_benchmark",
    "quick_config",
    "set_overhead",
    "thorough_benchmark",
    "thorough_config",
    "unpin_overhead",
]
