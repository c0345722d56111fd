"""Exception types raised by the benchmark engine.

Only two conditions abort a run: an invalid configuration (detected
before anything is measured) and a failure raised by the benchmarked
computation itself.  Everything else that degrades a measurement is
reported as a warning inside the result.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from chronometre.config import ValidationError


class ChronometreError(Exception):
    """Base class for chronometre errors."""


class InvalidConfiguration(ChronometreError, ValueError):
    """The benchmark configuration failed validation."""

    def __init__(self, errors: list[ValidationError]) -> None:
        self.errors = list(errors)
        messages = [f"  {e.field}: {e.message}" for e in self.errors]
        super().__init__("Invalid benchmark configuration:\n" + "\n".join(messages))


class ComputationFailure(ChronometreError):
    """The benchmarked computation raised.

    The original exception is available as ``__cause__``.  Samples
    collected before the failure are discarded.
    """

    def __init__(self, phase: str, original: BaseException) -> None:
        self.phase = phase
        self.original = original
        super().__init__(
            f"Benchmarked computation failed during {phase}: "
            f"{type(original).__name__}: {original}"
        )
