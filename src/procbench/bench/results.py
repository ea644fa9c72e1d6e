"""Benchmark result data structures.

Hierarchy::

    RawSample        — one timed execution, owned by the runner
    BenchmarkResult  — aggregate of all measured samples of one command
      → real_unit / user_unit / kernel_unit : DisplayUnit

All durations are integer nanoseconds.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


# ---------------------------------------------------------------------------
# Display unit
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DisplayUnit:
    """A human-scale time unit: nanoseconds per unit and its label."""

    divisor: int
    label: str

    def scale(self, value: float) -> float:
        """Express a nanosecond value in this unit.

        The zero-divisor sentinel scales everything to 0.0.
        """
        if self.divisor == 0:
            return 0.0
        return value / self.divisor

    def format(self, value: float, precision: int = 2) -> str:
        """Format a nanosecond value as ``"<scaled> <label>"``."""
        text = f"{self.scale(value):.{precision}f}"
        return f"{text} {self.label}" if self.label else text


# ---------------------------------------------------------------------------
# Iteration-level sample
# ---------------------------------------------------------------------------


@dataclass
class RawSample:
    """Timing of a single completed execution."""

    real_time: int
    user_time: int
    kernel_time: int
    exit_code: int = 0


# ---------------------------------------------------------------------------
# Command-level result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BenchmarkResult:
    """Aggregate outcome of benchmarking one command."""

    command: str
    mean_real_time: int
    mean_user_time: int
    mean_kernel_time: int
    stdev: float | None  # None with fewer than 2 samples
    min_real_time: int
    max_real_time: int
    real_unit: DisplayUnit
    user_unit: DisplayUnit
    kernel_unit: DisplayUnit
    runs: int
    failed_runs: int = 0  # samples whose command exited non-zero

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict (times in nanoseconds)."""
        return {
            "command": self.command,
            "mean_real_time_ns": self.mean_real_time,
            "mean_user_time_ns": self.mean_user_time,
            "mean_kernel_time_ns": self.mean_kernel_time,
            "stdev_ns": None if self.stdev is None else round(self.stdev, 3),
            "min_real_time_ns": self.min_real_time,
            "max_real_time_ns": self.max_real_time,
            "runs": self.runs,
            "failed_runs": self.failed_runs,
        }
