"""Selection of the process timer for the running platform."""

from __future__ import annotations

import sys

if sys.platform == "win32":
    from procbench.bench.timing_windows import JobObjectTimer as PlatformTimer
else:
    from procbench.bench.timing_posix import RusageTimer as PlatformTimer

__all__ = ["PlatformTimer"]
