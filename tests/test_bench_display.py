"""Tests for procbench.bench.display — terminal formatting."""

from __future__ import annotations

import math
import unittest
from dataclasses import replace

from bench_test_helpers import make_result

from procbench.bench.compare import ComparisonEntry, compare_results
from procbench.bench.display import (
    PROGRESS_DONE,
    PROGRESS_PENDING,
    format_eta,
    format_progress_bar,
    format_progress_line,
    format_result,
    format_summary,
)
from procbench.bench.runner import BenchProgress
from procbench.bench.stats import SECOND


class TestFormatResult(unittest.TestCase):
    def test_plain_output(self) -> None:
        text = format_result(make_result("cmd", [10, 20, 30, 40, 50]), color=False)
        lines = text.splitlines()
        self.assertEqual(len(lines), 2)
        self.assertEqual(
            lines[0],
            "  Time (mean ± σ):\t30.00 ns ± 15.81 ns\t[User: 24.00 ns, System: 3.00 ns]",
        )
        self.assertEqual(lines[1], "  Range (min … max):\t10.00 ns … 50.00 ns\t5 runs")

    def test_single_run_shows_na(self) -> None:
        text = format_result(make_result("cmd", [2 * SECOND]), color=False)
        self.assertIn("2.00 s ± N/A", text)
        self.assertIn("1 runs", text)

    def test_color_adds_escapes(self) -> None:
        text = format_result(make_result("cmd", [10, 20]), color=True)
        self.assertIn("\x1b[", text)

    def test_no_color_has_no_escapes(self) -> None:
        text = format_result(make_result("cmd", [10, 20]), color=False)
        self.assertNotIn("\x1b[", text)

    def test_failed_runs_warning(self) -> None:
        result = replace(make_result("cmd", [10, 20, 30]), failed_runs=2)
        text = format_result(result, color=False)
        self.assertIn("Warning: 2 of 3 runs exited with a non-zero status.", text)

    def test_zero_times_use_sentinel_unit(self) -> None:
        text = format_result(make_result("cmd", [0, 0]), color=False)
        self.assertIn("0.00 ± 0.00", text)


class TestFormatSummary(unittest.TestCase):
    def test_empty_for_single_entry(self) -> None:
        entries = compare_results([make_result("only", [10, 20])])
        self.assertEqual(format_summary(entries, color=False), "")

    def test_empty_for_no_entries(self) -> None:
        self.assertEqual(format_summary([], color=False), "")

    def test_summary_lines(self) -> None:
        entries = compare_results(
            [make_result("slow", [90, 100, 110]), make_result("fast", [45, 50, 55])]
        )
        lines = format_summary(entries, color=False).splitlines()
        self.assertEqual(lines[0], "Summary")
        self.assertEqual(lines[1], "  'fast' ran")
        self.assertTrue(lines[2].startswith("    2.00 ± "))
        self.assertTrue(lines[2].endswith(" times faster than 'slow'"))

    def test_no_uncertainty_without_stdev(self) -> None:
        entries = compare_results([make_result("slow", [100]), make_result("fast", [50])])
        lines = format_summary(entries, color=False).splitlines()
        self.assertEqual(lines[2], "    2.00 times faster than 'slow'")

    def test_nan_ratio_shown_as_na(self) -> None:
        base = make_result("a", [0])
        entries = [
            ComparisonEntry(base),
            ComparisonEntry(make_result("b", [0]), speed_ratio=math.nan),
        ]
        self.assertIn("N/A times faster than 'b'", format_summary(entries, color=False))

    def test_infinite_ratio(self) -> None:
        entries = [
            ComparisonEntry(make_result("a", [0])),
            ComparisonEntry(make_result("b", [10]), speed_ratio=math.inf),
        ]
        self.assertIn("inf times faster", format_summary(entries, color=False))


class TestFormatEta(unittest.TestCase):
    def test_zero(self) -> None:
        self.assertEqual(format_eta(0), "00:00:00")

    def test_hours_minutes_seconds(self) -> None:
        self.assertEqual(format_eta(3661 * SECOND), "01:01:01")

    def test_truncates_fraction(self) -> None:
        self.assertEqual(format_eta(int(1.9 * SECOND)), "00:00:01")

    def test_negative_clamped(self) -> None:
        self.assertEqual(format_eta(-5), "00:00:00")


class TestProgressBar(unittest.TestCase):
    def test_half(self) -> None:
        self.assertEqual(format_progress_bar(0.5, 10), PROGRESS_DONE * 5 + PROGRESS_PENDING * 5)

    def test_full(self) -> None:
        self.assertEqual(format_progress_bar(1.0, 4), PROGRESS_DONE * 4)

    def test_clamped(self) -> None:
        self.assertEqual(format_progress_bar(2.0, 3), PROGRESS_DONE * 3)
        self.assertEqual(format_progress_bar(-1.0, 3), PROGRESS_PENDING * 3)

    def test_no_room(self) -> None:
        self.assertEqual(format_progress_bar(0.5, -4), "")


class TestProgressLine(unittest.TestCase):
    def _progress(self, **kwargs: object) -> BenchProgress:
        defaults: dict[str, object] = {"phase": "measure", "command": "cmd", "completed": 0, "total": 4}
        defaults.update(kwargs)
        return BenchProgress(**defaults)  # type: ignore[arg-type]

    def test_warmup(self) -> None:
        line = format_progress_line(self._progress(phase="warmup", total=3), 80, color=False)
        self.assertEqual(line, "Performing warmup runs")

    def test_initial(self) -> None:
        line = format_progress_line(self._progress(), 80, color=False)
        self.assertEqual(line, "Initial time measurement")

    def test_estimate_bar_and_eta(self) -> None:
        progress = self._progress(completed=2, running_mean=1_500_000_000, eta=3 * SECOND)
        line = format_progress_line(progress, 80, color=False)
        self.assertTrue(line.startswith("Current estimate: 1.50 s "))
        self.assertTrue(line.endswith(" ETA 00:00:03"))
        self.assertEqual(line.count(PROGRESS_DONE), 20)
        self.assertEqual(line.count(PROGRESS_PENDING), 21)
        self.assertEqual(len(line), 80)

    def test_narrow_terminal(self) -> None:
        progress = self._progress(completed=1, running_mean=10, eta=30)
        line = format_progress_line(progress, 10, color=False)
        self.assertNotIn(PROGRESS_DONE, line)
        self.assertIn("ETA 00:00:00", line)


if __name__ == "__main__":
    unittest.main()
