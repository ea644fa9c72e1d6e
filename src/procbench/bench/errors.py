"""Exceptions raised by the benchmarking core.

Every failure aborts the benchmark of the command it happened in; nothing
is retried.  The batch runner records per-command failures and moves on,
except for cancellation, which stops the whole batch.
"""

from __future__ import annotations


class BenchmarkError(Exception):
    """Base class for benchmark failures."""


class LaunchFailure(BenchmarkError):
    """The command could not be started (missing, not executable, ...)."""

    def __init__(self, executable: str, reason: str) -> None:
        super().__init__(f"Failed to start '{executable}': {reason}")
        self.executable = executable
        self.reason = reason


class AccountingQueryFailure(BenchmarkError):
    """The OS refused to report CPU accounting for a finished command."""


class ConfigurationError(BenchmarkError, ValueError):
    """The benchmark was asked to do something impossible (e.g. zero runs)."""


class CancellationError(BenchmarkError):
    """The benchmark was cancelled while running; partial data is discarded."""


class SetupFailure(BenchmarkError):
    """The setup command could not be run or exited with a non-zero status."""
