"""Kernel log buffer.

Every decision the simulated kernel makes — preempting a process,
dispatching another, accepting an I/O syscall, waking a blocked
process — is recorded here.  This is the kernel's ``dmesg``: an
append-only buffer that tests and the shell can query after the fact.

- **LogLevel** — severity levels ordered for filtering (DEBUG < ERROR).
- **LogEntry** — a single structured record (level, message, source, pid).
- **Logger** — the buffer itself, with filtering, clearing, and an
  optional *sink* that echoes each formatted line as it is written
  (the CLI passes ``print`` so the run is visible live).

Design choices:
    - **IntEnum for levels** so they compare naturally with ``<``.
    - **Frozen dataclass for entries** — log records should be immutable.
    - **A lock around the buffer** — in live mode application threads
      and the kernel loop write concurrently.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from threading import Lock
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable


class LogLevel(IntEnum):
    """Severity levels for log entries."""

    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3


@dataclass(frozen=True)
class LogEntry:
    """A single structured log record.

    Attributes:
        level: The severity of this event.
        message: A human-readable description of what happened.
        source: The subsystem that generated the event (e.g. "kernel").
        pid: The process slot the event concerns, or None.

    """

    level: LogLevel
    message: str
    source: str
    pid: int | None = None

    def __str__(self) -> str:
        """Format as ``[LEVEL] source: message``."""
        return f"[{self.level.name}] {self.source}: {self.message}"


class Logger:
    """Append-only log buffer with filtering.

    Entries below ``echo_level`` are still stored; they are just not
    passed to the sink.
    """

    def __init__(
        self,
        *,
        sink: Callable[[str], None] | None = None,
        echo_level: LogLevel = LogLevel.INFO,
    ) -> None:
        """Create an empty logger.

        Args:
            sink: Optional callable receiving each formatted line.
            echo_level: Minimum level forwarded to the sink.

        """
        self._entries: list[LogEntry] = []
        self._sink = sink
        self._echo_level = echo_level
        self._lock = Lock()

    @property
    def entries(self) -> list[LogEntry]:
        """Return all log entries in chronological order."""
        with self._lock:
            return list(self._entries)

    def log(
        self,
        level: LogLevel,
        message: str,
        *,
        source: str,
        pid: int | None = None,
    ) -> None:
        """Append a new entry to the log.

        Args:
            level: Severity of the event.
            message: Human-readable event description.
            source: Subsystem that generated the event.
            pid: Process slot associated with the event.

        """
        entry = LogEntry(level=level, message=message, source=source, pid=pid)
        with self._lock:
            self._entries.append(entry)
        if self._sink is not None and level >= self._echo_level:
            self._sink(str(entry))

    def debug(self, message: str, *, source: str, pid: int | None = None) -> None:
        """Shorthand for ``log(LogLevel.DEBUG, ...)``."""
        self.log(LogLevel.DEBUG, message, source=source, pid=pid)

    def info(self, message: str, *, source: str, pid: int | None = None) -> None:
        """Shorthand for ``log(LogLevel.INFO, ...)``."""
        self.log(LogLevel.INFO, message, source=source, pid=pid)

    def warning(self, message: str, *, source: str, pid: int | None = None) -> None:
        """Shorthand for ``log(LogLevel.WARNING, ...)``."""
        self.log(LogLevel.WARNING, message, source=source, pid=pid)

    def filter(
        self,
        *,
        min_level: LogLevel | None = None,
        source: str | None = None,
        pid: int | None = None,
    ) -> list[LogEntry]:
        """Return entries matching the given criteria.

        Args:
            min_level: If set, only return entries at or above this level.
            source: If set, only return entries from this source.
            pid: If set, only return entries about this process slot.

        Returns:
            A filtered list of log entries.

        """
        result = self.entries
        if min_level is not None:
            result = [e for e in result if e.level >= min_level]
        if source is not None:
            result = [e for e in result if e.source == source]
        if pid is not None:
            result = [e for e in result if e.pid == pid]
        return result

    def messages(self, *, source: str | None = None) -> list[str]:
        """Return just the message text of matching entries."""
        return [e.message for e in self.filter(source=source)]

    def clear(self) -> None:
        """Remove all log entries."""
        with self._lock:
            self._entries.clear()
