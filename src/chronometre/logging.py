"""Logging setup for chronometre.

Configures the ``chronometre`` logger with a human-readable console
handler and an optional file handler that always logs at DEBUG level.
Library code never calls :func:`setup_logging` itself; only the CLI does.
The measurement modules log through child loggers from :func:`get_logger`
(``chronometre.runner``, ``chronometre.orchestrator``, ...), so a run
can be traced phase by phase with ``-v``.
"""

from __future__ import annotations

import logging
from pathlib import Path

_LOGGER_NAME = "chronometre"
_DEFAULT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_CONSOLE_FORMAT = "%(levelname)-8s %(message)s"


def setup_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_file: Path | None = None,
) -> logging.Logger:
    """Configure and return the root chronometre logger.

    Args:
        verbose: If True, set console log level to DEBUG.
        quiet: If True, set console log level to WARNING. Ignored if *verbose* is True.
        log_file: If provided, add a file handler at DEBUG level to this path.

    Returns:
        The configured root logger for chronometre.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    # Allow reconfiguration from repeated CLI invocations in one process.
    logger.handlers.clear()

    console = logging.StreamHandler()
    if verbose:
        console.setLevel(logging.DEBUG)
    elif quiet:
        console.setLevel(logging.WARNING)
    else:
        console.setLevel(logging.INFO)
    console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file is not None:
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(_DEFAULT_FORMAT))
        logger.addHandler(fh)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a named child logger under the chronometre namespace."""
    return logging.getLogger(f"{_LOGGER_NAME}.{name}")
