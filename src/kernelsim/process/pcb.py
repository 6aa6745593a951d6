"""Process Control Block — the kernel's record of one application slot.

The process table holds one ``ProcessRecord`` per application, created
at boot and never destroyed.  A record tracks:

- the **handle** used to suspend and resume the real unit,
- the scheduling **state** (READY, RUNNING, BLOCKED),
- whether an **I/O operation** is pending for it,
- the **saved context** captured at its last syscall, if any,
- the **channels** it shares with the kernel.

State machine::

    READY ⇄ RUNNING → BLOCKED → READY

Each transition method checks its source state.  A wrong source
state means the dispatcher or scheduler has a bug, so it raises
``LogicInvariantViolation`` instead of quietly corrupting the table.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from kernelsim.io.channels import ChannelPair, Operation

if TYPE_CHECKING:
    from kernelsim.process.handles import ProcessHandle


class LogicInvariantViolation(RuntimeError):  # noqa: N818
    """Raise when the kernel's own bookkeeping has gone wrong.

    These are bugs, not runtime conditions: nothing catches them.
    """


class ProcessState(StrEnum):
    """Scheduling states of an application slot.

    - READY: runnable, waiting for its turn on the CPU.
    - RUNNING: owns the CPU (at most one record at a time).
    - BLOCKED: waiting for its I/O to complete.
    """

    READY = "ready"
    RUNNING = "running"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class SavedContext:
    """The execution context captured at a blocking syscall.

    A record with ``saved_context is None`` has nothing to restore,
    which is different from a context whose resume point is 0.
    """

    resume_point: int
    operation: Operation


class ProcessRecord:
    """The PCB for one application slot."""

    def __init__(self, *, index: int, handle: ProcessHandle) -> None:
        """Create a READY record with no pending I/O and no saved context.

        Args:
            index: Slot number in the process table.
            handle: Capability to suspend/resume the application.

        """
        self._index = index
        self._handle = handle
        self._channels = ChannelPair(name=self.name)
        self.state: ProcessState = ProcessState.READY
        self.io_pending: bool = False
        self.pending_operation: Operation | None = None
        self._saved_context: SavedContext | None = None

    @property
    def index(self) -> int:
        """Return the slot number."""
        return self._index

    @property
    def name(self) -> str:
        """Return the display name, ``A<index>``."""
        return f"A{self._index}"

    @property
    def handle(self) -> ProcessHandle:
        """Return the suspend/resume capability."""
        return self._handle

    @property
    def channels(self) -> ChannelPair:
        """Return the kernel channels for this process."""
        return self._channels

    @property
    def saved_context(self) -> SavedContext | None:
        """Return the saved context, or None if there is nothing to restore."""
        return self._saved_context

    @property
    def has_saved_context(self) -> bool:
        """Return True while a captured context awaits delivery."""
        return self._saved_context is not None

    def save_context(self, context: SavedContext) -> None:
        """Store the context captured at a syscall."""
        self._saved_context = context
        self.pending_operation = context.operation

    def take_context(self) -> SavedContext | None:
        """Return the saved context and clear it, in one step.

        This is the only way the context is cleared, so it can be
        delivered at most once.
        """
        context, self._saved_context = self._saved_context, None
        return context

    # -- transitions ---------------------------------------------------------

    def _transition(self, action: str, expected: ProcessState, target: ProcessState) -> None:
        if self.state is not expected:
            msg = f"Cannot {action}: process {self.name} is {self.state}, expected {expected}"
            raise LogicInvariantViolation(msg)
        self.state = target

    def dispatch(self) -> None:
        """Transition READY → RUNNING."""
        self._transition("dispatch", ProcessState.READY, ProcessState.RUNNING)

    def preempt(self) -> None:
        """Transition RUNNING → READY."""
        self._transition("preempt", ProcessState.RUNNING, ProcessState.READY)

    def block(self) -> None:
        """Move to BLOCKED with I/O pending.

        A syscall normally comes from the RUNNING process, but the timer
        may have preempted it between the trap and the kernel handling
        it, so READY is accepted too.
        """
        if self.state is ProcessState.BLOCKED:
            msg = f"Cannot block: process {self.name} is already blocked"
            raise LogicInvariantViolation(msg)
        self.state = ProcessState.BLOCKED
        self.io_pending = True

    def wake(self) -> None:
        """Transition BLOCKED → READY and clear the pending I/O."""
        self._transition("wake", ProcessState.BLOCKED, ProcessState.READY)
        self.io_pending = False

    def snapshot(self) -> dict[str, Any]:
        """Return a JSON-friendly view of the record."""
        context = self._saved_context
        return {
            "index": self._index,
            "name": self.name,
            "state": str(self.state),
            "io_pending": self.io_pending,
            "saved_resume_point": context.resume_point if context is not None else None,
            "pending_operation": str(self.pending_operation) if self.pending_operation else None,
        }

    def __repr__(self) -> str:
        """Return a debug-friendly representation."""
        return f"ProcessRecord(index={self._index}, state={self.state}, io_pending={self.io_pending})"
