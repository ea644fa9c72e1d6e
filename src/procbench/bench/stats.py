"""Statistical functions for benchmark aggregation.

All durations are integer nanoseconds.  Means use truncating integer
division so that the running estimate shown during a benchmark and the
final aggregate are computed with the same rounding rule.
"""

from __future__ import annotations

import math
import statistics
from typing import Sequence

from procbench.bench.results import DisplayUnit

NANOSECOND = 1
MICROSECOND = 1_000 * NANOSECOND
MILLISECOND = 1_000 * MICROSECOND
SECOND = 1_000 * MILLISECOND
MINUTE = 60 * SECOND
HOUR = 60 * MINUTE

# Largest tier first.
UNIT_TIERS: tuple[DisplayUnit, ...] = (
    DisplayUnit(HOUR, "h"),
    DisplayUnit(MINUTE, "m"),
    DisplayUnit(SECOND, "s"),
    DisplayUnit(MILLISECOND, "ms"),
    DisplayUnit(MICROSECOND, "µs"),
    DisplayUnit(NANOSECOND, "ns"),
)

NO_UNIT = DisplayUnit(0, "")


# ---------------------------------------------------------------------------
# Means
# ---------------------------------------------------------------------------


def truncating_div(numerator: int, denominator: int) -> int:
    """Integer division rounding toward zero.

    Python's ``//`` floors, which differs for negative operands.
    """
    quotient = abs(numerator) // abs(denominator)
    if (numerator < 0) != (denominator < 0):
        return -quotient
    return quotient


def update_running_mean(previous_mean: int, previous_count: int, new_sample: int) -> int:
    """Fold one more sample into a running integer mean.

    Computes ``(previous_mean * previous_count + new_sample) / (previous_count + 1)``
    with truncating division.
    """
    return truncating_div(previous_mean * previous_count + new_sample, previous_count + 1)


def integer_mean(samples: Sequence[int]) -> int:
    """Truncating mean of a non-empty integer sample."""
    if not samples:
        raise statistics.StatisticsError("mean requires at least one data point")
    return truncating_div(sum(samples), len(samples))


# ---------------------------------------------------------------------------
# Dispersion
# ---------------------------------------------------------------------------


def sample_stdev(samples: Sequence[int], mean: int) -> float:
    """Sample standard deviation around a given mean.

    ``sqrt(sum((x - mean)**2) / (n - 1))``.  The squared deviations are
    summed as exact integers before the single float conversion.

    Raises:
        statistics.StatisticsError: If fewer than two samples are given.
            A single sample has no variance estimate; it is not zero.
    """
    n = len(samples)
    if n < 2:
        raise statistics.StatisticsError("stdev requires at least two data points")
    numerator = sum((x - mean) * (x - mean) for x in samples)
    return math.sqrt(numerator / (n - 1))


# ---------------------------------------------------------------------------
# Display units
# ---------------------------------------------------------------------------


def select_unit(mean_duration: int) -> DisplayUnit:
    """Pick the largest unit in which *mean_duration* is at least one.

    Returns :data:`NO_UNIT` (divisor 0) when no tier fits, i.e. for a
    zero or negative duration.
    """
    for unit in UNIT_TIERS:
        if truncating_div(mean_duration, unit.divisor) > 0:
            return unit
    return NO_UNIT
