"""Process handles — the kernel's grip on a running program.

The kernel never executes application code itself.  All it can do to
a process is stop it or let it continue, exactly like ``SIGSTOP`` and
``SIGCONT`` on Unix.  ``ProcessHandle`` captures that capability as a
structural protocol, so anything with ``suspend()`` and ``resume()``
can sit in the process table:

- ``kernelsim.apps.Application`` — the stepped, deterministic program.
- ``kernelsim.apps.ThreadedApplication`` — the same program on a thread.
- ``RecordingHandle`` — a fake that just remembers what was done to it.
"""

from typing import Protocol


class ProcessHandle(Protocol):
    """Interface every schedulable unit must satisfy."""

    @property
    def name(self) -> str:
        """Return a human-readable label (e.g. "A0")."""
        ...  # pragma: no cover

    def suspend(self) -> None:
        """Stop the unit; it must not execute until resumed."""
        ...  # pragma: no cover

    def resume(self) -> None:
        """Let the unit continue executing."""
        ...  # pragma: no cover


class RecordingHandle:
    """A handle that records every action instead of controlling anything.

    Handy for driving the kernel directly: each suspend/resume is
    appended to ``actions`` as ``("suspend", name)`` or
    ``("resume", name)``, and ``suspended`` tracks the current gate.
    """

    def __init__(self, name: str, *, actions: list[tuple[str, str]] | None = None) -> None:
        """Create a recording handle.

        Args:
            name: Label for this handle.
            actions: Optional shared list so several handles record
                into one ordered timeline.

        """
        self._name = name
        self.actions: list[tuple[str, str]] = actions if actions is not None else []
        self.suspended = True

    @property
    def name(self) -> str:
        """Return the handle label."""
        return self._name

    def suspend(self) -> None:
        """Record a suspend action."""
        self.suspended = True
        self.actions.append(("suspend", self._name))

    def resume(self) -> None:
        """Record a resume action."""
        self.suspended = False
        self.actions.append(("resume", self._name))
