"""Benchmark execution engine.

Orchestrates, for each command:
1. Warmup runs (timings discarded)
2. Measured runs, with a running mean and ETA reported after each one
3. Aggregation of the full sample set into a BenchmarkResult

Commands are benchmarked strictly one after another; no two measured
executions ever overlap.  The running mean is only an estimate for the
progress display: the final result is recomputed from all samples.
"""

from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Sequence

from procbench.bench.command import split_command
from procbench.bench.config import BenchConfig, validate_config
from procbench.bench.errors import (
    BenchmarkError,
    CancellationError,
    ConfigurationError,
    SetupFailure,
)
from procbench.bench.results import BenchmarkResult, RawSample
from procbench.bench.stats import (
    integer_mean,
    sample_stdev,
    select_unit,
    update_running_mean,
)
from procbench.bench.timers import PlatformTimer
from procbench.bench.timing import ProcessTimer, check_cancelled

log = logging.getLogger("procbench")


# ---------------------------------------------------------------------------
# Progress callback
# ---------------------------------------------------------------------------


class BenchState(enum.Enum):
    """Lifecycle of one command's benchmark."""

    IDLE = "idle"
    WARMUP = "warmup"
    MEASURING = "measuring"
    AGGREGATED = "aggregated"
    FAILED = "failed"


@dataclass
class BenchProgress:
    """Progress info passed to the callback."""

    phase: str  # "start", "warmup", "measure", "done", "failed"
    command: str
    completed: int  # iterations finished in this phase
    total: int  # iterations planned for this phase
    running_mean: int = 0  # ns, measure phase only
    eta: int = 0  # ns, measure phase only
    command_index: int = 0  # 0-based position in the batch
    commands_total: int = 1
    result: BenchmarkResult | None = None  # set when phase == "done"
    detail: str = ""  # error message when phase == "failed"


ProgressCallback = Callable[[BenchProgress], None]


@dataclass
class BatchOutcome:
    """Everything a batch produced, including what went wrong."""

    results: list[BenchmarkResult] = field(default_factory=list)
    failures: list[tuple[str, BenchmarkError]] = field(default_factory=list)
    cancelled: bool = False


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def aggregate(command: str, samples: Sequence[RawSample]) -> BenchmarkResult:
    """Fold the complete sample set of one command into a result.

    The standard deviation is left as None for a single sample.
    """
    if not samples:
        raise ConfigurationError("cannot aggregate an empty sample set")

    real_times = [s.real_time for s in samples]
    mean_real = integer_mean(real_times)
    mean_user = integer_mean([s.user_time for s in samples])
    mean_kernel = integer_mean([s.kernel_time for s in samples])

    return BenchmarkResult(
        command=command,
        mean_real_time=mean_real,
        mean_user_time=mean_user,
        mean_kernel_time=mean_kernel,
        stdev=sample_stdev(real_times, mean_real) if len(real_times) >= 2 else None,
        min_real_time=min(real_times),
        max_real_time=max(real_times),
        real_unit=select_unit(mean_real),
        user_unit=select_unit(mean_user),
        kernel_unit=select_unit(mean_kernel),
        runs=len(samples),
        failed_runs=sum(1 for s in samples if s.exit_code != 0),
    )


# ---------------------------------------------------------------------------
# BenchRunner
# ---------------------------------------------------------------------------


class BenchRunner:
    """Executes benchmarks with one timer instance it owns.

    Usage::

        config = BenchConfig(commands=["sleep 0.1"], runs=5)
        runner = BenchRunner(config)
        outcome = runner.run()
    """

    def __init__(
        self,
        config: BenchConfig | None = None,
        *,
        timer: ProcessTimer | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        self.config = config or BenchConfig()
        self.timer: ProcessTimer = timer if timer is not None else PlatformTimer()
        self.progress: ProgressCallback = progress_callback or self._default_progress
        self.state = BenchState.IDLE

    def run(self, cancel_event: threading.Event | None = None) -> BatchOutcome:
        """Benchmark every configured command in order.

        A command that fails to launch or to report its timings is
        recorded in ``failures`` and the batch continues.  Cancellation
        stops the batch; results completed before it are kept.

        Raises:
            ConfigurationError: If the configuration is invalid.
            SetupFailure: If the setup command failed.
        """
        errors = validate_config(self.config)
        fatal = [e for e in errors if e.severity == "error"]
        for w in (e for e in errors if e.severity == "warning"):
            log.warning("Config warning: %s: %s", w.field, w.message)
        if fatal:
            messages = [f"  {e.field}: {e.message}" for e in fatal]
            raise ConfigurationError("Invalid benchmark configuration:\n" + "\n".join(messages))

        if cancel_event is None:
            cancel_event = threading.Event()

        deadline: threading.Timer | None = None
        if self.config.timeout:
            deadline = threading.Timer(self.config.timeout, cancel_event.set)
            deadline.daemon = True
            deadline.start()

        outcome = BatchOutcome()
        try:
            if self.config.setup_command:
                try:
                    self.run_setup(cancel_event, self.config.setup_command)
                except CancellationError:
                    outcome.cancelled = True
                    return outcome
            self._run_commands(cancel_event, outcome)
        finally:
            if deadline is not None:
                deadline.cancel()
        return outcome

    def _run_commands(self, cancel_event: threading.Event, outcome: BatchOutcome) -> None:
        commands = self.config.commands
        for idx, command in enumerate(commands):
            log.debug("Benchmark #%d: %s", idx + 1, command)
            self.progress(
                BenchProgress(
                    phase="start",
                    command=command,
                    completed=0,
                    total=self.config.runs,
                    command_index=idx,
                    commands_total=len(commands),
                )
            )
            try:
                result = self.run_command(cancel_event, command, command_index=idx)
            except CancellationError:
                log.warning("Benchmark of '%s' cancelled", command)
                outcome.cancelled = True
                return
            except BenchmarkError as exc:
                log.error("Benchmark of '%s' failed: %s", command, exc)
                outcome.failures.append((command, exc))
                self.progress(
                    BenchProgress(
                        phase="failed",
                        command=command,
                        completed=0,
                        total=self.config.runs,
                        command_index=idx,
                        commands_total=len(commands),
                        detail=str(exc),
                    )
                )
                continue

            outcome.results.append(result)
            self.progress(
                BenchProgress(
                    phase="done",
                    command=command,
                    completed=result.runs,
                    total=self.config.runs,
                    command_index=idx,
                    commands_total=len(commands),
                    result=result,
                )
            )

    def run_command(
        self,
        cancel_event: threading.Event | None,
        command: str,
        *,
        command_index: int = 0,
    ) -> BenchmarkResult:
        """Tokenize *command* (or wrap it in the configured shell) and benchmark it."""
        argv = split_command(command, shell=self.config.shell)
        return self.run_benchmark(
            cancel_event,
            argv[0],
            argv[1:],
            self.config.warmup,
            self.config.runs,
            command=command,
            command_index=command_index,
        )

    def run_benchmark(
        self,
        cancel_event: threading.Event | None,
        executable: str,
        args: Sequence[str],
        warmup_count: int,
        run_count: int,
        *,
        command: str | None = None,
        command_index: int = 0,
    ) -> BenchmarkResult:
        """Warm up, measure, and aggregate one command.

        Args:
            cancel_event: When set, the running child is killed and
                :class:`CancellationError` is raised.
            executable: Program to run.
            args: Its arguments.
            warmup_count: Runs whose timing is discarded (may be 0).
            run_count: Measured runs, at least 1.
            command: Label for the result; defaults to the joined argv.

        Raises:
            ConfigurationError: If *run_count* < 1 or *warmup_count* < 0.
            LaunchFailure: If any run (warmup included) fails to start.
            AccountingQueryFailure: If timings cannot be retrieved.
            CancellationError: If cancelled; no partial result is kept.
        """
        if run_count < 1:
            raise ConfigurationError(f"Need at least 1 measured run (got {run_count}).")
        if warmup_count < 0:
            raise ConfigurationError(f"Warmup runs cannot be negative (got {warmup_count}).")

        label = command if command is not None else " ".join([executable, *args])
        commands_total = max(len(self.config.commands), 1)
        self.state = BenchState.IDLE

        try:
            self.state = BenchState.WARMUP
            if warmup_count:
                log.debug("Performing %d warmup runs of '%s'", warmup_count, label)
            for i in range(warmup_count):
                self.progress(
                    BenchProgress(
                        phase="warmup",
                        command=label,
                        completed=i,
                        total=warmup_count,
                        command_index=command_index,
                        commands_total=commands_total,
                    )
                )
                self._execute(cancel_event, executable, args)

            self.state = BenchState.MEASURING
            samples: list[RawSample] = []
            running_mean = 0
            self.progress(
                BenchProgress(
                    phase="measure",
                    command=label,
                    completed=0,
                    total=run_count,
                    command_index=command_index,
                    commands_total=commands_total,
                )
            )
            for i in range(run_count):
                sample = self._execute(cancel_event, executable, args)
                samples.append(sample)

                running_mean = update_running_mean(running_mean, i, sample.real_time)
                completed = i + 1
                self.progress(
                    BenchProgress(
                        phase="measure",
                        command=label,
                        completed=completed,
                        total=run_count,
                        running_mean=running_mean,
                        eta=running_mean * (run_count - completed),
                        command_index=command_index,
                        commands_total=commands_total,
                    )
                )
        except BaseException:
            self.state = BenchState.FAILED
            raise

        result = aggregate(label, samples)
        self.state = BenchState.AGGREGATED
        return result

    def run_setup(self, cancel_event: threading.Event | None, command: str) -> None:
        """Run the setup command once, through the same timer.

        Unlike benchmarked commands, a non-zero exit status is a failure.

        Raises:
            SetupFailure: If it cannot be started or exits non-zero.
            CancellationError: If cancelled while it runs.
        """
        log.info("Running setup command: %s", command)
        try:
            argv = split_command(command, shell=self.config.shell)
            sample = self._execute(cancel_event, argv[0], argv[1:])
        except CancellationError:
            raise
        except BenchmarkError as exc:
            raise SetupFailure(f"Setup command failed: {exc}") from exc
        if sample.exit_code != 0:
            raise SetupFailure(f"Setup command exited with status {sample.exit_code}")

    def _execute(
        self,
        cancel_event: threading.Event | None,
        executable: str,
        args: Sequence[str],
    ) -> RawSample:
        """Reset the timer, run once, and read back its measurement."""
        check_cancelled(cancel_event, f"running {executable}")
        self.timer.reset()
        self.timer.run(cancel_event, executable, *args)
        exit_code = self.timer.exit_code or 0
        if exit_code != 0:
            log.debug("'%s' exited with status %d", executable, exit_code)
        return RawSample(
            real_time=self.timer.get_real_time(),
            user_time=self.timer.get_user_time(),
            kernel_time=self.timer.get_kernel_time(),
            exit_code=exit_code,
        )

    @staticmethod
    def _default_progress(progress: BenchProgress) -> None:
        """Default progress callback: log measured iterations at debug level."""
        if progress.phase != "measure" or not progress.completed:
            return
        log.debug(
            "  %s %d/%d mean=%dns eta=%dns",
            progress.command,
            progress.completed,
            progress.total,
            progress.running_mean,
            progress.eta,
        )


# ---------------------------------------------------------------------------
# Functional entry point
# ---------------------------------------------------------------------------


def run_benchmark(
    cancel_event: threading.Event | None,
    executable: str,
    args: Sequence[str],
    warmup_count: int,
    run_count: int,
    *,
    command: str | None = None,
    timer: ProcessTimer | None = None,
    progress_callback: ProgressCallback | None = None,
) -> BenchmarkResult:
    """Benchmark one already-tokenized command with a fresh runner.

    See :meth:`BenchRunner.run_benchmark`.
    """
    runner = BenchRunner(timer=timer, progress_callback=progress_callback)
    return runner.run_benchmark(
        cancel_event,
        executable,
        args,
        warmup_count,
        run_count,
        command=command,
    )
