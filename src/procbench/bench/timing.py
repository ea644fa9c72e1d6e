"""Process timing for benchmark iterations.

A process timer launches one child process, waits for it, and records
its wall-clock time and the user/kernel CPU time it consumed.  Exactly
one implementation is active per platform, chosen when
:mod:`procbench.bench.timers` is imported and exposed as ``PlatformTimer``:

- Windows: :class:`~procbench.bench.timing_windows.JobObjectTimer`, which
  accounts CPU time of the whole process tree through a job object.
- Everything else: :class:`~procbench.bench.timing_posix.RusageTimer`,
  based on ``getrusage(RUSAGE_CHILDREN)``.

A timer is reusable but stateful: call :meth:`ProcessTimer.reset` before
every :meth:`ProcessTimer.run`.
"""

from __future__ import annotations

import logging
import subprocess
import threading
import time
from typing import Callable, Protocol

from procbench.bench.errors import CancellationError

log = logging.getLogger("procbench")

# How often the cancellation watcher wakes up while a child runs.
CANCEL_POLL_INTERVAL_S = 0.05


# ---------------------------------------------------------------------------
# Capability interface
# ---------------------------------------------------------------------------


class ProcessTimer(Protocol):
    """What the runner needs from a platform timer."""

    def reset(self) -> None: ...

    def run(
        self,
        cancel_event: threading.Event | None,
        executable: str,
        *args: str,
    ) -> None: ...

    def get_real_time(self) -> int: ...

    def get_user_time(self) -> int: ...

    def get_kernel_time(self) -> int: ...

    @property
    def exit_code(self) -> int | None: ...


class TimerBase:
    """Measurement state shared by the platform timers.

    Subclasses implement :meth:`run` and fill in ``_real_time``,
    ``_user_time``, ``_kernel_time`` (nanoseconds) and ``_exit_code``.
    """

    def __init__(self) -> None:
        self._real_time = 0
        self._user_time = 0
        self._kernel_time = 0
        self._exit_code: int | None = None

    def reset(self) -> None:
        """Forget the previous measurement."""
        self._real_time = 0
        self._user_time = 0
        self._kernel_time = 0
        self._exit_code = None

    def get_real_time(self) -> int:
        return self._real_time

    def get_user_time(self) -> int:
        return self._user_time

    def get_kernel_time(self) -> int:
        return self._kernel_time

    @property
    def exit_code(self) -> int | None:
        """Exit status of the last completed run, None before any run."""
        return self._exit_code


# ---------------------------------------------------------------------------
# Waiting with cancellation
# ---------------------------------------------------------------------------


def check_cancelled(cancel_event: threading.Event | None, what: str) -> None:
    """Raise CancellationError if *cancel_event* is already set."""
    if cancel_event is not None and cancel_event.is_set():
        raise CancellationError(f"Cancelled before {what}")


def wait_for_exit(
    proc: subprocess.Popen[bytes],
    cancel_event: threading.Event | None,
    kill: Callable[[subprocess.Popen[bytes]], None],
) -> tuple[int, int]:
    """Block until *proc* exits.

    Returns:
        ``(exit_code, end_ns)``, where *end_ns* is the
        ``time.perf_counter_ns()`` reading taken as soon as the wait
        returned, before the watcher thread is stopped.

    The main thread does a plain blocking wait.  When *cancel_event* is
    given, a watcher thread calls *kill* as soon as the event is set, and
    this function raises :class:`CancellationError` once the child is gone.
    Stopping the watcher can take up to :data:`CANCEL_POLL_INTERVAL_S`;
    that delay falls after *end_ns*.
    """
    if cancel_event is None:
        return _wait_or_kill(proc, kill)

    finished = threading.Event()

    def _watch() -> None:
        while not finished.is_set():
            if cancel_event.wait(CANCEL_POLL_INTERVAL_S):
                if not finished.is_set():
                    log.debug("Cancellation requested, killing pid %d", proc.pid)
                    kill(proc)
                return

    watcher = threading.Thread(target=_watch, daemon=True)
    watcher.start()
    try:
        exit_code, end_ns = _wait_or_kill(proc, kill)
    finally:
        finished.set()
        watcher.join()

    if cancel_event.is_set():
        raise CancellationError(f"Cancelled while running pid {proc.pid}")
    return exit_code, end_ns


def _wait_or_kill(
    proc: subprocess.Popen[bytes],
    kill: Callable[[subprocess.Popen[bytes]], None],
) -> tuple[int, int]:
    try:
        exit_code = proc.wait()
    except KeyboardInterrupt:
        # The child runs in its own session and did not see the SIGINT.
        kill(proc)
        proc.wait()
        raise
    return exit_code, time.perf_counter_ns()
