"""Turning a command string into an argument vector."""

from __future__ import annotations

import os
import shlex
from pathlib import PureWindowsPath

from procbench.bench.errors import ConfigurationError


def split_command(command: str, *, shell: str | None = None) -> list[str]:
    """Split *command* into ``[executable, *args]``.

    With a *shell*, the command is passed unparsed to it (``-c`` for
    POSIX shells, ``/c`` for ``cmd.exe``).  Without one, the string is
    tokenized with :mod:`shlex`, using POSIX quoting rules except on
    Windows, where backslashes are literal and only surrounding quotes
    are removed.

    Raises:
        ConfigurationError: If the command is empty or has unbalanced quotes.
    """
    if not command.strip():
        raise ConfigurationError("empty command string")

    if shell:
        return [shell, _shell_flag(shell), command]

    try:
        if os.name == "nt":
            parts = [_strip_quotes(p) for p in shlex.split(command, posix=False)]
        else:
            parts = shlex.split(command)
    except ValueError as exc:
        raise ConfigurationError(f"cannot parse command {command!r}: {exc}") from exc
    if not parts:
        raise ConfigurationError("empty command string")
    return parts


def _shell_flag(shell: str) -> str:
    name = PureWindowsPath(shell).name.lower()
    if name in ("cmd", "cmd.exe"):
        return "/c"
    return "-c"


def _strip_quotes(token: str) -> str:
    if len(token) >= 2 and token[0] == token[-1] and token[0] in "\"'":
        return token[1:-1]
    return token
