"""Relative-speed comparison of benchmark results.

The fastest command (lowest mean real time) is the baseline.  Every
other command gets its mean expressed as a multiple of the baseline
mean, with an uncertainty band built from both standard deviations.

The uncertainty is the sum of two one-sided deltas::

    pos = (mean + stdev) / (base_mean + base_stdev) - ratio
    neg = ratio - (mean - stdev) / (base_mean - base_stdev)
    uncertainty = |pos| + |neg|

This overestimates the spread compared to formal error propagation and
becomes unstable when ``base_mean - base_stdev`` approaches zero.  It is
kept as is so the printed summary stays comparable with earlier output;
non-finite values are reported rather than raised.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable

from procbench.bench.results import BenchmarkResult

log = logging.getLogger("procbench")


@dataclass(frozen=True)
class ComparisonEntry:
    """One result and its speed relative to the fastest result."""

    result: BenchmarkResult
    speed_ratio: float | None = None  # None for the baseline
    speed_ratio_uncertainty: float | None = None  # None without stdevs

    @property
    def is_baseline(self) -> bool:
        return self.speed_ratio is None


def compare_results(results: Iterable[BenchmarkResult]) -> list[ComparisonEntry]:
    """Rank results fastest first and compute speed ratios.

    The sort is stable, so commands with equal means keep their input
    order.  The first entry is the baseline and carries no ratio.
    """
    ranked = sorted(results, key=lambda r: r.mean_real_time)
    if not ranked:
        return []

    baseline = ranked[0]
    entries = [ComparisonEntry(result=baseline)]
    for result in ranked[1:]:
        ratio = _divide(result.mean_real_time, baseline.mean_real_time)
        uncertainty = speed_ratio_uncertainty(result, baseline, ratio)
        if not math.isfinite(ratio) or (uncertainty is not None and not math.isfinite(uncertainty)):
            log.warning(
                "Non-finite speed ratio for '%s' against '%s'",
                result.command,
                baseline.command,
            )
        entries.append(
            ComparisonEntry(
                result=result,
                speed_ratio=ratio,
                speed_ratio_uncertainty=uncertainty,
            )
        )
    return entries


def speed_ratio_uncertainty(
    result: BenchmarkResult,
    baseline: BenchmarkResult,
    ratio: float,
) -> float | None:
    """Sum of the upper and lower one-sided deltas around *ratio*.

    Returns None when either result has no standard deviation.
    """
    if result.stdev is None or baseline.stdev is None:
        return None

    mean = float(result.mean_real_time)
    base_mean = float(baseline.mean_real_time)
    pos_delta = _divide(mean + result.stdev, base_mean + baseline.stdev) - ratio
    neg_delta = ratio - _divide(mean - result.stdev, base_mean - baseline.stdev)
    return abs(pos_delta) + abs(neg_delta)


def _divide(numerator: float, denominator: float) -> float:
    """Float division that yields inf/nan instead of raising on zero."""
    if denominator == 0:
        if numerator == 0 or math.isnan(numerator):
            return math.nan
        return math.copysign(math.inf, numerator) * math.copysign(1.0, denominator)
    return numerator / denominator
