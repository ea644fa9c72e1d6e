"""Terminal display formatting for benchmark results.

Produces the per-command result block, the relative-speed summary, and
the single-line progress indicator redrawn after every measured run.
Colors come from ``click.style`` and can be switched off.
"""

from __future__ import annotations

import math
from typing import Any

import click

from procbench.bench.compare import ComparisonEntry
from procbench.bench.results import BenchmarkResult
from procbench.bench.runner import BenchProgress
from procbench.bench.stats import SECOND, select_unit

PROGRESS_DONE = "█"
PROGRESS_PENDING = "▒"
CLEAR_LINE = "\r\033[K"

# Room kept free on the progress line: separators plus "ETA HH:MM:SS".
_PROGRESS_RESERVED = 2 + 12


def _style(text: str, color: bool, **styles: Any) -> str:
    return click.style(text, **styles) if color else text


# ---------------------------------------------------------------------------
# Single result
# ---------------------------------------------------------------------------


def format_result(result: BenchmarkResult, *, color: bool = True) -> str:
    """Format the time and range lines for one benchmarked command."""
    unit = result.real_unit
    stdev = "N/A" if result.stdev is None else unit.format(result.stdev)

    lines = [
        "  Time ({} ± {}):\t{} ± {}\t[User: {}, System: {}]".format(
            _style("mean", color, fg="green"),
            _style("σ", color, fg="green"),
            _style(unit.format(result.mean_real_time), color, fg="green"),
            _style(stdev, color, fg="green"),
            _style(result.user_unit.format(result.mean_user_time), color, fg="cyan"),
            _style(result.kernel_unit.format(result.mean_kernel_time), color, fg="cyan"),
        ),
        "  Range ({} … {}):\t{} … {}\t{}".format(
            _style("min", color, fg="cyan"),
            _style("max", color, fg="red"),
            _style(unit.format(result.min_real_time), color, fg="cyan"),
            _style(unit.format(result.max_real_time), color, fg="red"),
            _style(f"{result.runs} runs", color, fg="bright_black"),
        ),
    ]
    if result.failed_runs:
        lines.append(
            _style(
                f"  Warning: {result.failed_runs} of {result.runs} runs "
                f"exited with a non-zero status.",
                color,
                fg="yellow",
            )
        )
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Comparison summary
# ---------------------------------------------------------------------------


def format_summary(entries: list[ComparisonEntry], *, color: bool = True) -> str:
    """Format the relative-speed summary, fastest command first.

    Returns an empty string when there is nothing to compare.
    """
    if len(entries) < 2:
        return ""

    lines = ["Summary"]
    for entry in entries:
        if entry.is_baseline:
            lines.append(f"  '{_style(entry.result.command, color, fg='cyan')}' ran")
            continue
        ratio = _style(_format_number(entry.speed_ratio), color, fg="green")
        if entry.speed_ratio_uncertainty is not None:
            spread = _style(_format_number(entry.speed_ratio_uncertainty), color, fg="green")
            ratio = f"{ratio} ± {spread}"
        lines.append(
            f"    {ratio} times faster than '{_style(entry.result.command, color, fg='red')}'"
        )
    return "\n".join(lines)


def _format_number(value: float | None) -> str:
    if value is None or math.isnan(value):
        return "N/A"
    return f"{value:.2f}"


# ---------------------------------------------------------------------------
# Progress line
# ---------------------------------------------------------------------------


def format_eta(eta_ns: int) -> str:
    """Format a nanosecond duration as ``HH:MM:SS`` (whole seconds, truncated)."""
    total = max(eta_ns, 0) // SECOND
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def format_progress_bar(fraction: float, width: int) -> str:
    """Draw a bar of *width* cells, *fraction* of them filled."""
    width = max(width, 0)
    done = min(max(int(fraction * width), 0), width)
    return PROGRESS_DONE * done + PROGRESS_PENDING * (width - done)


def format_progress_line(progress: BenchProgress, width: int, *, color: bool = True) -> str:
    """Render the progress line for a warmup or measured iteration.

    Args:
        progress: The latest progress report from the runner.
        width: Terminal width in columns.
        color: Whether to colorize the estimate.
    """
    if progress.phase == "warmup":
        return "Performing warmup runs"
    if progress.completed == 0:
        return "Initial time measurement"

    unit = select_unit(progress.running_mean)
    estimate = unit.format(progress.running_mean)
    plain = f"Current estimate: {estimate} "
    line = f"Current estimate: {_style(estimate, color, fg='green')} "

    bar_width = width - len(plain) - _PROGRESS_RESERVED
    bar = format_progress_bar(progress.completed / progress.total, bar_width)
    return f"{line} {bar} ETA {format_eta(progress.eta)}"
