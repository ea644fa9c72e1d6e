"""POSIX process timer based on ``getrusage(RUSAGE_CHILDREN)``.

Wall-clock time comes from ``time.perf_counter_ns`` around launch and
wait.  CPU time is the difference of the children's resource usage
before and after the wait.

Known limitation: ``RUSAGE_CHILDREN`` only includes descendants that
were waited for.  A grandchild that outlives its parent (daemonized or
orphaned) is not accounted for, unlike the job-object timer on Windows.
"""

from __future__ import annotations

import logging
import os
import resource
import signal
import subprocess
import threading
import time

from procbench.bench.errors import AccountingQueryFailure, LaunchFailure
from procbench.bench.timing import TimerBase, check_cancelled, wait_for_exit

log = logging.getLogger("procbench")


class RusageTimer(TimerBase):
    """Times a child process with the wall clock and children's rusage."""

    def run(
        self,
        cancel_event: threading.Event | None,
        executable: str,
        *args: str,
    ) -> None:
        """Run *executable* to completion and record its timings.

        Raises:
            LaunchFailure: The process could not be started.
            AccountingQueryFailure: ``getrusage`` failed after the run.
            CancellationError: *cancel_event* was set; the child's whole
                process group has been killed.
        """
        check_cancelled(cancel_event, f"launching {executable}")

        try:
            pre_rusage = resource.getrusage(resource.RUSAGE_CHILDREN)
        except OSError as exc:
            raise AccountingQueryFailure(f"getrusage failed: {exc}") from exc

        wall_start = time.perf_counter_ns()
        try:
            proc = subprocess.Popen(
                [executable, *args],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as exc:
            raise LaunchFailure(executable, exc.strerror or str(exc)) from exc

        exit_code, wall_end = wait_for_exit(proc, cancel_event, _kill_process_group)
        real_time = wall_end - wall_start

        try:
            post_rusage = resource.getrusage(resource.RUSAGE_CHILDREN)
        except OSError as exc:
            raise AccountingQueryFailure(f"getrusage failed: {exc}") from exc

        self._real_time = real_time
        self._user_time = _seconds_to_ns(post_rusage.ru_utime - pre_rusage.ru_utime)
        self._kernel_time = _seconds_to_ns(post_rusage.ru_stime - pre_rusage.ru_stime)
        self._exit_code = exit_code
        log.debug(
            "pid %d exited with %d: real=%dns user=%dns sys=%dns",
            proc.pid,
            exit_code,
            self._real_time,
            self._user_time,
            self._kernel_time,
        )


def _seconds_to_ns(seconds: float) -> int:
    """Convert an rusage delta (microsecond resolution) to nanoseconds."""
    return max(round(seconds * 1_000_000), 0) * 1_000


def _kill_process_group(proc: subprocess.Popen[bytes]) -> None:
    """Kill the child's whole process group."""
    try:
        os.killpg(os.getpgid(proc.pid), signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        proc.kill()
