"""Benchmark configuration and YAML profile loading.

Handles:
- Loading benchmark profiles from YAML files.
- Merging CLI options with profile values.
- Validating the final configuration before execution.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

log = logging.getLogger("procbench")


# ---------------------------------------------------------------------------
# BenchConfig
# ---------------------------------------------------------------------------


@dataclass
class BenchConfig:
    """Resolved configuration for a benchmark run."""

    # Commands to benchmark, in the order given.
    commands: list[str] = field(default_factory=list)

    # Iteration control
    runs: int = 10  # Number of measured runs per command
    warmup: int = 0  # Number of warmup runs per command

    # Run once before all benchmarks; its timing is ignored.
    setup_command: str | None = None

    # Wrap every command in this shell (``sh -c``) instead of tokenizing it.
    shell: str | None = None

    # Abort the whole batch after this many seconds.
    timeout: float | None = None


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass
class ValidationError:
    """A single configuration validation error."""

    field: str
    message: str
    severity: str = "error"  # "error" or "warning"


def validate_config(config: BenchConfig) -> list[ValidationError]:
    """Validate a benchmark configuration.

    Returns a list of validation errors.  Empty list means valid.
    """
    errors: list[ValidationError] = []

    if not config.commands:
        errors.append(
            ValidationError(
                field="commands",
                message="No commands to benchmark. Pass at least one command or use --profile.",
            )
        )

    for idx, command in enumerate(config.commands):
        if not command or not command.strip():
            errors.append(
                ValidationError(
                    field=f"commands[{idx}]",
                    message="Commands must be non-empty.",
                )
            )

    if config.runs < 1:
        errors.append(
            ValidationError(
                field="runs",
                message=f"Need at least 1 measured run (got {config.runs}).",
            )
        )
    elif config.runs == 1:
        errors.append(
            ValidationError(
                field="runs",
                message="A single run gives no standard deviation.",
                severity="warning",
            )
        )

    if config.warmup < 0:
        errors.append(
            ValidationError(
                field="warmup",
                message=f"Warmup runs cannot be negative (got {config.warmup}).",
            )
        )

    if config.timeout is not None and config.timeout <= 0:
        errors.append(
            ValidationError(
                field="timeout",
                message=f"Timeout must be positive (got {config.timeout}).",
            )
        )

    if config.setup_command is not None and not config.setup_command.strip():
        errors.append(
            ValidationError(
                field="setup_command",
                message="Setup command is empty.",
            )
        )

    return errors


# ---------------------------------------------------------------------------
# YAML profile loading
# ---------------------------------------------------------------------------


def load_profile(profile_path: Path) -> dict[str, Any]:
    """Load a benchmark profile from a YAML file.

    Profile format::

        runs: 20
        warmup: 3
        setup: "make -C ./demo"
        shell: /bin/sh
        timeout: 600

        commands:
          - "./demo/fast --input data.txt"
          - "./demo/slow --input data.txt"

    Returns:
        The parsed YAML as a dict.
    """
    if not profile_path.exists():
        raise FileNotFoundError(f"Profile not found: {profile_path}")

    text = profile_path.read_text()
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in profile {profile_path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Profile must be a YAML mapping, got {type(data).__name__}")

    log.debug("Loaded profile %s", profile_path)
    return data


def config_from_profile(
    profile_data: dict[str, Any],
    *,
    cli_overrides: dict[str, Any] | None = None,
) -> BenchConfig:
    """Build a BenchConfig from a parsed YAML profile.

    CLI overrides take precedence over profile values.  Commands given
    on the command line are benchmarked after the profile's commands.

    Args:
        profile_data: Parsed YAML profile dict.
        cli_overrides: Dict of CLI option values.  Keys match BenchConfig
            field names; ``None`` means "not given".

    Returns:
        BenchConfig with commands and settings populated.
    """
    cli = cli_overrides or {}

    commands = profile_data.get("commands", [])
    if isinstance(commands, str):
        commands = [commands]
    if not isinstance(commands, list) or not all(isinstance(c, str) for c in commands):
        raise ValueError("Profile 'commands' must be a list of command strings")

    config = BenchConfig(
        commands=list(commands) + list(cli.get("commands") or []),
        runs=cli["runs"] if cli.get("runs") is not None else profile_data.get("runs", 10),
        warmup=(cli["warmup"] if cli.get("warmup") is not None else profile_data.get("warmup", 0)),
        setup_command=cli.get("setup_command") or profile_data.get("setup"),
        shell=cli.get("shell") or profile_data.get("shell"),
        timeout=(
            cli["timeout"] if cli.get("timeout") is not None else profile_data.get("timeout")
        ),
    )

    for name in ("runs", "warmup"):
        if not isinstance(getattr(config, name), int):
            raise ValueError(f"Profile '{name}' must be an integer")

    return config
