"""Tests for procbench.cli — the Click command."""

from __future__ import annotations

import json
import shlex
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from click.testing import CliRunner

from bench_test_helpers import FakeTimer, make_samples

from procbench.bench.results import RawSample
from procbench.cli import main

PY = shlex.quote(sys.executable)


def _fake_runner_timer(timer: FakeTimer) -> object:
    """Patch BenchRunner's platform timer with *timer*."""
    return patch("procbench.bench.runner.PlatformTimer", return_value=timer)


def _json_output(output: str) -> dict:
    """Parse the JSON document, skipping any log lines written before it."""
    return json.loads(output[output.index("{\n") :])


class TestHelp(unittest.TestCase):
    def test_help(self) -> None:
        result = CliRunner().invoke(main, ["--help"])
        self.assertEqual(result.exit_code, 0)
        for option in ("--runs", "--warmup", "--setup", "--shell", "--profile", "--json"):
            self.assertIn(option, result.output)

    def test_version(self) -> None:
        result = CliRunner().invoke(main, ["--version"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn("0.1.0", result.output)


class TestErrors(unittest.TestCase):
    def test_no_commands(self) -> None:
        result = CliRunner().invoke(main, [])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Error:", result.output)
        self.assertIn("No commands", result.output)

    def test_zero_runs(self) -> None:
        result = CliRunner().invoke(main, ["--runs", "0", "true"])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("runs", result.output)

    def test_missing_profile(self) -> None:
        result = CliRunner().invoke(main, ["--profile", "/nonexistent/profile.yaml"])
        self.assertNotEqual(result.exit_code, 0)


class TestWithFakeTimer(unittest.TestCase):
    """CLI behaviour without launching real processes."""

    def test_text_output_and_summary(self) -> None:
        timer = FakeTimer(make_samples([100] * 3 + [50] * 3))
        with _fake_runner_timer(timer):
            result = CliRunner().invoke(main, ["-q", "--no-color", "-r", "3", "slow", "fast"])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Benchmark #1: slow", result.output)
        self.assertIn("Benchmark #2: fast", result.output)
        self.assertIn("Time (mean ± σ):", result.output)
        self.assertIn("Summary", result.output)
        self.assertIn("'fast' ran", result.output)
        self.assertIn("2.00 ± 0.00 times faster than 'slow'", result.output)
        self.assertEqual(timer.calls, [("slow",)] * 3 + [("fast",)] * 3)

    def test_json_output(self) -> None:
        timer = FakeTimer(make_samples([10, 20, 30, 40, 50]))
        with _fake_runner_timer(timer):
            result = CliRunner().invoke(main, ["-q", "--json", "-r", "5", "prog --flag"])
        self.assertEqual(result.exit_code, 0, result.output)
        data = _json_output(result.output)
        self.assertEqual(len(data["results"]), 1)
        entry = data["results"][0]
        self.assertEqual(entry["command"], "prog --flag")
        self.assertEqual(entry["mean_real_time_ns"], 30)
        self.assertEqual(entry["min_real_time_ns"], 10)
        self.assertEqual(entry["max_real_time_ns"], 50)
        self.assertEqual(entry["runs"], 5)
        self.assertAlmostEqual(entry["stdev_ns"], 15.811, places=3)
        self.assertIsNone(data["comparison"][0]["speed_ratio"])
        self.assertFalse(data["cancelled"])
        self.assertEqual(data["failures"], [])

    def test_json_zero_baseline_is_strict_json(self) -> None:
        """An infinite speed ratio is written as null, never as Infinity."""

        def _reject(token: str) -> None:
            raise AssertionError(f"non-standard JSON token {token}")

        timer = FakeTimer(make_samples([0, 0, 10, 20]))
        with _fake_runner_timer(timer):
            result = CliRunner().invoke(main, ["-q", "--json", "-r", "2", "zero", "slow"])
        self.assertEqual(result.exit_code, 0, result.output)
        output = result.output[result.output.index("{\n") :]
        data = json.loads(output, parse_constant=_reject)
        self.assertEqual([c["command"] for c in data["comparison"]], ["zero", "slow"])
        self.assertIsNone(data["comparison"][1]["speed_ratio"])
        self.assertIsNone(data["comparison"][1]["speed_ratio_uncertainty"])

    def test_warmup_and_shell_forwarded(self) -> None:
        timer = FakeTimer()
        with _fake_runner_timer(timer):
            result = CliRunner().invoke(
                main, ["-q", "--json", "-r", "2", "-w", "1", "-S", "sh", "echo hi"]
            )
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(timer.calls, [("sh", "-c", "echo hi")] * 3)

    def test_launch_failure_of_only_command(self) -> None:
        with _fake_runner_timer(FakeTimer(fail_on_call=1)):
            result = CliRunner().invoke(main, ["-q", "--no-color", "missing"])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("An error occurred during benchmark", result.output)

    def test_partial_failure_still_succeeds(self) -> None:
        with _fake_runner_timer(FakeTimer(fail_on_call=1)):
            result = CliRunner().invoke(main, ["-q", "--json", "-r", "2", "missing", "ok"])
        self.assertEqual(result.exit_code, 0, result.output)
        data = _json_output(result.output)
        self.assertEqual([f["command"] for f in data["failures"]], ["missing"])
        self.assertEqual([r["command"] for r in data["results"]], ["ok"])

    def test_setup_failure(self) -> None:
        timer = FakeTimer([RawSample(1, 1, 1, exit_code=3)])
        with _fake_runner_timer(timer):
            result = CliRunner().invoke(main, ["-q", "--setup", "make", "prog"])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("An error occurred during setup", result.output)

    def test_profile(self) -> None:
        timer = FakeTimer()
        with tempfile.TemporaryDirectory() as tmp:
            profile = Path(tmp) / "bench.yaml"
            profile.write_text("runs: 2\nwarmup: 1\ncommands:\n  - first\n")
            with _fake_runner_timer(timer):
                result = CliRunner().invoke(
                    main, ["-q", "--json", "--profile", str(profile), "second"]
                )
        self.assertEqual(result.exit_code, 0, result.output)
        data = _json_output(result.output)
        self.assertEqual([r["command"] for r in data["results"]], ["first", "second"])
        self.assertEqual(len(timer.calls), 6)

    def test_invalid_profile(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            profile = Path(tmp) / "bench.yaml"
            profile.write_text("- not\n- a mapping\n")
            result = CliRunner().invoke(main, ["--profile", str(profile)])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Error:", result.output)


@unittest.skipIf(sys.platform == "win32", "POSIX quoting of the interpreter path")
class TestRealProcesses(unittest.TestCase):
    def test_benchmark_python(self) -> None:
        result = CliRunner().invoke(main, ["-q", "--json", "-r", "2", f"{PY} -c pass"])
        self.assertEqual(result.exit_code, 0, result.output)
        data = _json_output(result.output)
        self.assertEqual(data["results"][0]["runs"], 2)
        self.assertGreater(data["results"][0]["mean_real_time_ns"], 0)

    def test_nonzero_exit_reported(self) -> None:
        command = f"{PY} -c 'import sys; sys.exit(1)'"
        result = CliRunner().invoke(main, ["-q", "--no-color", "-r", "2", command])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("2 of 2 runs exited with a non-zero status", result.output)

    def test_missing_executable(self) -> None:
        result = CliRunner().invoke(main, ["-q", "/nonexistent/prog-xyz"])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Failed to start", result.output)


if __name__ == "__main__":
    unittest.main()
