"""Kernel configuration — the knobs fixed at boot.

A ``KernelConfig`` plays the part of the kernel image's boot
arguments: everything the bootloader needs to build the process
table, the controller, and the application programs.  It is frozen —
nothing in the running kernel may change it.

Configuration can come from three places, all validated the same way:

- keyword arguments (``KernelConfig(num_apps=4)``),
- a plain mapping (``KernelConfig.from_mapping({...})``),
- a JSON file (``load_config(path)``).

Any invalid value raises ``ConfigurationError`` before a single
process record exists.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from kernelsim.io.channels import MAX_RESUME_POINT, Operation

if TYPE_CHECKING:
    from pathlib import Path

MIN_APPS = 3
MAX_APPS = 6
DEFAULT_NUM_APPS = 3
DEFAULT_TIME_SLICE = 1
DEFAULT_IO_DURATION = 3
DEFAULT_MAX_ITERATIONS = 30


def _default_syscall_schedule() -> dict[int, Operation]:
    return {
        5: Operation.READ,
        10: Operation.WRITE,
        15: Operation.READ,
        20: Operation.WRITE,
    }


class ConfigurationError(ValueError):
    """Raise when the kernel cannot be configured as requested."""


class ResumePolicy(StrEnum):
    """Where a process continues after its blocking syscall returns.

    - SKIP: resume at the instruction *after* the syscall
      (``resume_point + 1``).
    - REEXECUTE: resume *at* the syscall instruction
      (``resume_point``).
    """

    SKIP = "skip"
    REEXECUTE = "reexecute"

    def apply(self, resume_point: int) -> int:
        """Return the offset actually delivered for *resume_point*."""
        if self is ResumePolicy.SKIP:
            return resume_point + 1
        return resume_point


@dataclass(frozen=True)
class KernelConfig:
    """Validated boot-time configuration.

    Attributes:
        num_apps: Number of application processes (3 to 6).
        time_slice: Controller ticks between timer interrupts.
        io_duration: Controller ticks an I/O operation takes.
        max_iterations: Instructions each application executes.
        syscall_schedule: Program counter → operation that triggers a syscall.
        resume_policy: How a saved resume point is turned into an offset.
        tick_seconds: Wall-clock length of one tick in live mode.
        instruction_seconds: Wall-clock length of one instruction in live mode.

    """

    num_apps: int = DEFAULT_NUM_APPS
    time_slice: int = DEFAULT_TIME_SLICE
    io_duration: int = DEFAULT_IO_DURATION
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    syscall_schedule: Mapping[int, Operation] = field(default_factory=_default_syscall_schedule)
    resume_policy: ResumePolicy = ResumePolicy.SKIP
    tick_seconds: float = 1.0
    instruction_seconds: float = 1.0

    def __post_init__(self) -> None:
        """Validate every field.

        Raises:
            ConfigurationError: If any value is out of range.

        """
        if isinstance(self.num_apps, bool) or not isinstance(self.num_apps, int):
            msg = f"num_apps must be an integer, got {self.num_apps!r}"
            raise ConfigurationError(msg)
        if not MIN_APPS <= self.num_apps <= MAX_APPS:
            msg = f"num_apps must be between {MIN_APPS} and {MAX_APPS}, got {self.num_apps}"
            raise ConfigurationError(msg)
        for name in ("time_slice", "io_duration", "max_iterations"):
            value = getattr(self, name)
            if not isinstance(value, int) or value <= 0:
                msg = f"{name} must be a positive integer, got {value!r}"
                raise ConfigurationError(msg)
        for name in ("tick_seconds", "instruction_seconds"):
            value = getattr(self, name)
            if not isinstance(value, int | float) or value <= 0:
                msg = f"{name} must be positive, got {value!r}"
                raise ConfigurationError(msg)
        if not isinstance(self.resume_policy, ResumePolicy):
            object.__setattr__(self, "resume_policy", _parse_policy(self.resume_policy))
        object.__setattr__(self, "syscall_schedule", _parse_schedule(self.syscall_schedule))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> KernelConfig:
        """Build a config from a plain mapping (e.g. parsed JSON).

        Unknown keys are rejected so typos do not pass silently.

        Raises:
            ConfigurationError: On unknown keys or invalid values.

        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            msg = f"Unknown configuration keys: {', '.join(unknown)}"
            raise ConfigurationError(msg)
        return cls(**dict(data))

    def replace(self, **changes: Any) -> KernelConfig:
        """Return a copy with *changes* applied (and re-validated)."""
        current = {f.name: getattr(self, f.name) for f in fields(self)}
        current.update(changes)
        return KernelConfig.from_mapping(current)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly view of the configuration."""
        return {
            "num_apps": self.num_apps,
            "time_slice": self.time_slice,
            "io_duration": self.io_duration,
            "max_iterations": self.max_iterations,
            "syscall_schedule": {str(pc): str(op) for pc, op in self.syscall_schedule.items()},
            "resume_policy": str(self.resume_policy),
            "tick_seconds": self.tick_seconds,
            "instruction_seconds": self.instruction_seconds,
        }


def _parse_policy(value: object) -> ResumePolicy:
    try:
        return ResumePolicy(str(value).lower())
    except ValueError as e:
        choices = ", ".join(p.value for p in ResumePolicy)
        msg = f"resume_policy must be one of {choices}, got {value!r}"
        raise ConfigurationError(msg) from e


def _parse_schedule(value: object) -> dict[int, Operation]:
    """Normalise a schedule whose keys/values may be strings (from JSON)."""
    if not isinstance(value, Mapping):
        msg = f"syscall_schedule must be a mapping, got {value!r}"
        raise ConfigurationError(msg)
    schedule: dict[int, Operation] = {}
    for raw_pc, raw_op in value.items():
        try:
            pc = int(raw_pc)
            op = raw_op if isinstance(raw_op, Operation) else Operation(str(raw_op).upper()[:1])
        except ValueError as e:
            msg = f"Invalid syscall_schedule entry {raw_pc!r}: {raw_op!r}"
            raise ConfigurationError(msg) from e
        if not 0 <= pc <= MAX_RESUME_POINT:
            msg = f"syscall_schedule program counters must be >= 0 and <= {MAX_RESUME_POINT}, got {pc}"
            raise ConfigurationError(msg)
        schedule[pc] = op
    return schedule


def load_config(path: Path, **overrides: Any) -> KernelConfig:
    """Load a configuration from a JSON file.

    Args:
        path: JSON file containing an object of config keys.
        overrides: Values that take precedence over the file.

    Raises:
        ConfigurationError: If the file is unreadable or invalid.

    """
    try:
        data = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        msg = f"Cannot load configuration from {path}: {e}"
        raise ConfigurationError(msg) from e
    if not isinstance(data, dict):
        msg = f"Configuration file {path} must contain a JSON object"
        raise ConfigurationError(msg)
    data.update({k: v for k, v in overrides.items() if v is not None})
    return KernelConfig.from_mapping(data)
