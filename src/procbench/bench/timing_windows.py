"""Windows process timer based on job-object accounting.

The child is started suspended, placed in a fresh job object, then its
main thread is resumed.  Every process it spawns inherits the job, so the
job's basic accounting information covers user and kernel time of the
whole process tree.  The job is terminated and closed on every exit
path.

Uses ``ctypes`` bindings to kernel32; this module is only imported on
Windows (see :mod:`procbench.bench.timers`).
"""

from __future__ import annotations

import contextlib
import ctypes
import logging
import subprocess
import threading
import time
from ctypes import wintypes
from typing import Iterator

from procbench.bench.errors import AccountingQueryFailure, LaunchFailure
from procbench.bench.timing import TimerBase, check_cancelled, wait_for_exit

log = logging.getLogger("procbench")

CREATE_SUSPENDED = 0x00000004
PROCESS_TERMINATE = 0x0001
PROCESS_SET_QUOTA = 0x0100
THREAD_SUSPEND_RESUME = 0x0002
TH32CS_SNAPTHREAD = 0x00000004
JOB_OBJECT_BASIC_ACCOUNTING_INFORMATION = 1
RESUME_THREAD_FAILED = 0xFFFFFFFF
INVALID_HANDLE_VALUE = ctypes.c_void_p(-1).value

# Job accounting reports CPU time in 100 ns ticks.
HUNDRED_NS_TICKS = 100


class THREADENTRY32(ctypes.Structure):
    _fields_ = [
        ("dwSize", wintypes.DWORD),
        ("cntUsage", wintypes.DWORD),
        ("th32ThreadID", wintypes.DWORD),
        ("th32OwnerProcessID", wintypes.DWORD),
        ("tpBasePri", wintypes.LONG),
        ("tpDeltaPri", wintypes.LONG),
        ("dwFlags", wintypes.DWORD),
    ]


class JOBOBJECT_BASIC_ACCOUNTING_INFORMATION(ctypes.Structure):  # noqa: N801
    _fields_ = [
        ("TotalUserTime", wintypes.LARGE_INTEGER),
        ("TotalKernelTime", wintypes.LARGE_INTEGER),
        ("ThisPeriodTotalUserTime", wintypes.LARGE_INTEGER),
        ("ThisPeriodTotalKernelTime", wintypes.LARGE_INTEGER),
        ("TotalPageFaultCount", wintypes.DWORD),
        ("TotalProcesses", wintypes.DWORD),
        ("ActiveProcesses", wintypes.DWORD),
        ("TotalTerminatedProcesses", wintypes.DWORD),
    ]


_kernel32 = ctypes.WinDLL("kernel32", use_last_error=True)

_kernel32.CreateJobObjectW.argtypes = [wintypes.LPVOID, wintypes.LPCWSTR]
_kernel32.CreateJobObjectW.restype = wintypes.HANDLE
_kernel32.AssignProcessToJobObject.argtypes = [wintypes.HANDLE, wintypes.HANDLE]
_kernel32.AssignProcessToJobObject.restype = wintypes.BOOL
_kernel32.QueryInformationJobObject.argtypes = [
    wintypes.HANDLE,
    ctypes.c_int,
    wintypes.LPVOID,
    wintypes.DWORD,
    wintypes.LPDWORD,
]
_kernel32.QueryInformationJobObject.restype = wintypes.BOOL
_kernel32.TerminateJobObject.argtypes = [wintypes.HANDLE, wintypes.UINT]
_kernel32.TerminateJobObject.restype = wintypes.BOOL
_kernel32.OpenProcess.argtypes = [wintypes.DWORD, wintypes.BOOL, wintypes.DWORD]
_kernel32.OpenProcess.restype = wintypes.HANDLE
_kernel32.OpenThread.argtypes = [wintypes.DWORD, wintypes.BOOL, wintypes.DWORD]
_kernel32.OpenThread.restype = wintypes.HANDLE
_kernel32.ResumeThread.argtypes = [wintypes.HANDLE]
_kernel32.ResumeThread.restype = wintypes.DWORD
_kernel32.CloseHandle.argtypes = [wintypes.HANDLE]
_kernel32.CloseHandle.restype = wintypes.BOOL
_kernel32.CreateToolhelp32Snapshot.argtypes = [wintypes.DWORD, wintypes.DWORD]
_kernel32.CreateToolhelp32Snapshot.restype = wintypes.HANDLE
_kernel32.Thread32First.argtypes = [wintypes.HANDLE, ctypes.POINTER(THREADENTRY32)]
_kernel32.Thread32First.restype = wintypes.BOOL
_kernel32.Thread32Next.argtypes = [wintypes.HANDLE, ctypes.POINTER(THREADENTRY32)]
_kernel32.Thread32Next.restype = wintypes.BOOL


def _last_error(what: str) -> OSError:
    err = ctypes.get_last_error()
    exc = ctypes.WinError(err)
    exc.strerror = f"{what}: {exc.strerror}"
    return exc


# ---------------------------------------------------------------------------
# JobObjectTimer
# ---------------------------------------------------------------------------


class JobObjectTimer(TimerBase):
    """Times a process tree through a Windows job object."""

    def run(
        self,
        cancel_event: threading.Event | None,
        executable: str,
        *args: str,
    ) -> None:
        """Run *executable* to completion and record its timings.

        Raises:
            LaunchFailure: The process could not be created, attached to
                the job, or resumed.
            AccountingQueryFailure: The job accounting query failed.
            CancellationError: *cancel_event* was set; the job has been
                terminated.
        """
        check_cancelled(cancel_event, f"launching {executable}")

        with contextlib.ExitStack() as stack:
            try:
                job = stack.enter_context(_job_object())
            except OSError as exc:
                raise LaunchFailure(executable, str(exc)) from exc

            try:
                proc = subprocess.Popen(
                    [executable, *args],
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                    creationflags=CREATE_SUSPENDED | subprocess.CREATE_NEW_PROCESS_GROUP,
                )
            except OSError as exc:
                raise LaunchFailure(executable, exc.strerror or str(exc)) from exc

            try:
                _assign_to_job(job, proc.pid)
                thread = _open_main_thread(proc.pid)
            except OSError as exc:
                proc.kill()
                proc.wait()
                raise LaunchFailure(executable, str(exc)) from exc
            stack.callback(_kernel32.CloseHandle, thread)

            def _kill_job(_proc: subprocess.Popen[bytes]) -> None:
                _kernel32.TerminateJobObject(job, 1)

            wall_start = time.perf_counter_ns()
            if _kernel32.ResumeThread(thread) == RESUME_THREAD_FAILED:
                exc = _last_error("ResumeThread")
                proc.kill()
                proc.wait()
                raise LaunchFailure(executable, str(exc))
            exit_code, wall_end = wait_for_exit(proc, cancel_event, _kill_job)
            real_time = wall_end - wall_start

            info = _query_accounting(job)

        self._real_time = real_time
        self._user_time = info.TotalUserTime * HUNDRED_NS_TICKS
        self._kernel_time = info.TotalKernelTime * HUNDRED_NS_TICKS
        self._exit_code = exit_code
        log.debug(
            "pid %d exited with %d (%d processes in job): real=%dns user=%dns sys=%dns",
            proc.pid,
            exit_code,
            info.TotalProcesses,
            self._real_time,
            self._user_time,
            self._kernel_time,
        )


# ---------------------------------------------------------------------------
# kernel32 helpers
# ---------------------------------------------------------------------------


@contextlib.contextmanager
def _job_object() -> Iterator[int]:
    """Create a job object; terminate and close it on exit."""
    job = _kernel32.CreateJobObjectW(None, None)
    if not job:
        raise _last_error("CreateJobObject")
    try:
        yield job
    finally:
        _kernel32.TerminateJobObject(job, 0)
        _kernel32.CloseHandle(job)


def _assign_to_job(job: int, pid: int) -> None:
    h_process = _kernel32.OpenProcess(PROCESS_SET_QUOTA | PROCESS_TERMINATE, False, pid)
    if not h_process:
        raise _last_error("OpenProcess")
    try:
        if not _kernel32.AssignProcessToJobObject(job, h_process):
            raise _last_error("AssignProcessToJobObject")
    finally:
        _kernel32.CloseHandle(h_process)


def _open_main_thread(pid: int) -> int:
    """Return a suspend/resume handle to the first thread owned by *pid*.

    A process created suspended has exactly one thread.
    """
    snapshot = _kernel32.CreateToolhelp32Snapshot(TH32CS_SNAPTHREAD, 0)
    if not snapshot or snapshot == INVALID_HANDLE_VALUE:
        raise _last_error("CreateToolhelp32Snapshot")
    try:
        entry = THREADENTRY32()
        entry.dwSize = ctypes.sizeof(THREADENTRY32)
        found = _kernel32.Thread32First(snapshot, ctypes.byref(entry))
        while found:
            if entry.th32OwnerProcessID == pid:
                thread = _kernel32.OpenThread(THREAD_SUSPEND_RESUME, False, entry.th32ThreadID)
                if not thread:
                    raise _last_error("OpenThread")
                return thread
            found = _kernel32.Thread32Next(snapshot, ctypes.byref(entry))
    finally:
        _kernel32.CloseHandle(snapshot)
    raise OSError(f"no thread found for pid {pid}")


def _query_accounting(job: int) -> JOBOBJECT_BASIC_ACCOUNTING_INFORMATION:
    info = JOBOBJECT_BASIC_ACCOUNTING_INFORMATION()
    ok = _kernel32.QueryInformationJobObject(
        job,
        JOB_OBJECT_BASIC_ACCOUNTING_INFORMATION,
        ctypes.byref(info),
        ctypes.sizeof(info),
        None,
    )
    if not ok:
        raise AccountingQueryFailure(str(_last_error("QueryInformationJobObject")))
    return info
