"""Logging setup for procbench.

Log records go to stderr; results and the progress line go to stdout.
On a terminal both share the screen, so console records first erase
whatever part of the progress line is still drawn.  The optional log
file receives everything, including per-run timings, at DEBUG level.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

_LOGGER_NAME = "procbench"
# The cancellation watcher logs from its own thread.
_FILE_FORMAT = "%(asctime)s %(levelname)-8s %(threadName)s %(name)s: %(message)s"
_CONSOLE_FORMAT = "%(levelname)-8s %(message)s"
_ERASE_LINE = "\r\033[K"


class ProgressAwareFormatter(logging.Formatter):
    """Console formatter that clears a half-drawn progress line."""

    def __init__(self, fmt: str, *, erase: bool) -> None:
        super().__init__(fmt)
        self.erase = erase

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        return _ERASE_LINE + text if self.erase else text


def console_level(*, verbose: bool = False, quiet: bool = False) -> int:
    """Console threshold: DEBUG with *verbose*, WARNING with *quiet*, else INFO."""
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.WARNING
    return logging.INFO


def setup_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_file: Path | None = None,
) -> logging.Logger:
    """Configure and return the ``procbench`` logger.

    Calling it again replaces (and closes) the handlers of a previous call.

    Args:
        verbose: Show debug records, such as every measured run, on the console.
        quiet: Only show warnings and errors. Ignored if *verbose* is True.
        log_file: Also write every record to this file.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level(verbose=verbose, quiet=quiet))
    console.setFormatter(ProgressAwareFormatter(_CONSOLE_FORMAT, erase=sys.stderr.isatty()))
    logger.addHandler(console)

    if log_file is not None:
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(fh)

    return logger
