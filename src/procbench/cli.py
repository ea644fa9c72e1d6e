"""Command-line interface for procbench.

Benchmarks one or more commands and prints mean ± σ, range, user and
system time for each, followed by a relative-speed summary when more
than one command was measured.
"""

from __future__ import annotations

import json
import math
import shutil
import signal
import threading
from pathlib import Path
from typing import Any

import click

from procbench import __version__
from procbench.bench.compare import compare_results
from procbench.bench.config import BenchConfig, config_from_profile, load_profile
from procbench.bench.display import (
    CLEAR_LINE,
    format_progress_line,
    format_result,
    format_summary,
)
from procbench.bench.errors import ConfigurationError, SetupFailure
from procbench.bench.runner import BatchOutcome, BenchProgress, BenchRunner
from procbench.logging import setup_logging


class TerminalProgress:
    """Progress callback that redraws a single status line on stdout."""

    def __init__(self, *, color: bool = True) -> None:
        self.color = color

    def __call__(self, progress: BenchProgress) -> None:
        if progress.phase == "start":
            click.echo(f"Benchmark #{progress.command_index + 1}: {progress.command}")
        elif progress.phase in ("warmup", "measure"):
            width = shutil.get_terminal_size().columns
            line = format_progress_line(progress, width, color=self.color)
            click.echo(CLEAR_LINE + line, nl=False)
        elif progress.phase == "done" and progress.result is not None:
            click.echo(CLEAR_LINE, nl=False)
            click.echo(format_result(progress.result, color=self.color))
            click.echo()
        elif progress.phase == "failed":
            click.echo(CLEAR_LINE, nl=False)
            click.echo(f"An error occurred during benchmark: {progress.detail}", err=True)
            click.echo()


def _silent_progress(progress: BenchProgress) -> None:
    """Progress callback used with --json: print nothing."""


def _finite_or_none(value: float | None) -> float | None:
    """JSON has no inf/nan: non-finite ratios are written as null."""
    if value is None or not math.isfinite(value):
        return None
    return value


def _outcome_to_dict(outcome: BatchOutcome) -> dict[str, Any]:
    comparison = compare_results(outcome.results)
    return {
        "results": [r.to_dict() for r in outcome.results],
        "comparison": [
            {
                "command": entry.result.command,
                "speed_ratio": _finite_or_none(entry.speed_ratio),
                "speed_ratio_uncertainty": _finite_or_none(entry.speed_ratio_uncertainty),
            }
            for entry in comparison
        ],
        "failures": [{"command": cmd, "error": str(exc)} for cmd, exc in outcome.failures],
        "cancelled": outcome.cancelled,
    }


@click.command()
@click.version_option(version=__version__)
@click.argument("commands", nargs=-1)
@click.option(
    "-r",
    "--runs",
    type=int,
    default=None,
    help="Measured runs per command (default: 10).",
)
@click.option(
    "-w",
    "--warmup",
    type=int,
    default=None,
    help="Warmup runs per command (default: 0).",
)
@click.option(
    "-s",
    "--setup",
    "setup_command",
    type=str,
    default=None,
    help="Command to run once before all benchmarks.",
)
@click.option(
    "-S",
    "--shell",
    type=str,
    default=None,
    help="Run every command through this shell (e.g. /bin/sh).",
)
@click.option(
    "--timeout",
    type=float,
    default=None,
    help="Abort the whole benchmark after this many seconds.",
)
@click.option(
    "--profile",
    "profile_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="YAML profile with commands and settings.",
)
@click.option("--no-color", is_flag=True, default=False, help="Disable colored output.")
@click.option(
    "--json",
    "as_json",
    is_flag=True,
    default=False,
    help="Print results as JSON instead of text.",
)
@click.option("-v", "--verbose", is_flag=True, help="Show debug output.")
@click.option("-q", "--quiet", is_flag=True, help="Only show warnings and errors.")
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    default=None,
    help="Also write a debug log to this file.",
)
def main(  # noqa: PLR0913
    commands: tuple[str, ...],
    runs: int | None,
    warmup: int | None,
    setup_command: str | None,
    shell: str | None,
    timeout: float | None,
    profile_path: Path | None,
    no_color: bool,
    as_json: bool,
    verbose: bool,
    quiet: bool,
    log_file: Path | None,
) -> None:
    """Benchmark COMMANDS and compare their run times.

    \b
    Examples:
        procbench 'sleep 0.1'
        procbench --runs 20 --warmup 3 'grep -r foo .' 'rg foo'
        procbench --shell /bin/sh 'ls | wc -l'
        procbench --profile bench.yaml
    """
    setup_logging(verbose=verbose, quiet=quiet, log_file=log_file)
    color = not no_color

    cli_overrides: dict[str, Any] = {
        "commands": list(commands),
        "runs": runs,
        "warmup": warmup,
        "setup_command": setup_command,
        "shell": shell,
        "timeout": timeout,
    }
    if profile_path:
        try:
            config = config_from_profile(load_profile(profile_path), cli_overrides=cli_overrides)
        except ValueError as exc:
            click.echo(f"Error: {exc}", err=True)
            raise SystemExit(1) from exc
    else:
        config = BenchConfig(
            commands=list(commands),
            runs=runs if runs is not None else 10,
            warmup=warmup if warmup is not None else 0,
            setup_command=setup_command,
            shell=shell,
            timeout=timeout,
        )

    progress = _silent_progress if as_json else TerminalProgress(color=color)
    runner = BenchRunner(config, progress_callback=progress)

    cancel_event = threading.Event()
    previous_handler = None
    if threading.current_thread() is threading.main_thread():
        previous_handler = signal.signal(signal.SIGINT, lambda _sig, _frame: cancel_event.set())

    try:
        outcome = runner.run(cancel_event)
    except ConfigurationError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc
    except SetupFailure as exc:
        click.echo(f"An error occurred during setup: {exc}", err=True)
        raise SystemExit(1) from exc
    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGINT, previous_handler)

    if as_json:
        click.echo(json.dumps(_outcome_to_dict(outcome), indent=2, allow_nan=False))
    else:
        if outcome.cancelled:
            click.echo(CLEAR_LINE, nl=False)
            click.echo("Benchmark interrupted.", err=True)
        summary = format_summary(compare_results(outcome.results), color=color)
        if summary:
            click.echo(summary)

    if outcome.cancelled:
        raise SystemExit(130)
    if outcome.failures and not outcome.results:
        raise SystemExit(1)
