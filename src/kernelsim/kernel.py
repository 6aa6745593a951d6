"""The kernel — interrupt dispatching on top of the scheduler.

The kernel owns one ``KernelState``: the process table, the blocked
queue, which slot is running, and whether the I/O device is busy.
Nothing outside the kernel touches that state.  The outside world only
rings interrupts:

    IRQ0  timer tick      → schedule()
    IRQ1  I/O complete    → wake the serviced process, start the next
                            queued I/O, schedule()
    IRQ2  syscall (index) → capture context, block, queue for I/O,
                            start I/O if the device is idle, schedule()

Every handler runs to completion before the next IRQ is taken (see
``kernelsim.io.interrupts``), and every handler ends in ``schedule()``.

Quanta
    A dispatch restarts the timer's count, so the process chosen gets
    a whole time slice.  An IRQ raised before the running process was
    dispatched does not reschedule: that process has not executed yet,
    and the event belongs to the quantum it replaced.

I/O wake-up order
    When I/O completes, the process woken is the one the device was
    actually servicing, remembered when its I/O started.  Scanning the
    table for the first BLOCKED slot instead would wake processes in
    index order rather than request order, and a low-index process
    could overtake one that asked first.

Errors
    A bad syscall context is a ``ProtocolViolation``: logged, and the
    process is blocked without a context.  Odd events (a syscall from a
    slot that is already blocked, an IRQ1 with no I/O outstanding) are
    logged and ignored.  ``LogicInvariantViolation`` is never caught —
    it means the kernel itself is wrong.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

from kernelsim.config import ResumePolicy
from kernelsim.io.channels import ProtocolViolation
from kernelsim.io.interrupts import InterruptController, InterruptRequest, Vector
from kernelsim.logging import Logger
from kernelsim.process.blocked import BlockedQueue
from kernelsim.process.pcb import LogicInvariantViolation, ProcessState, SavedContext
from kernelsim.process.scheduler import Scheduler, SchedulingPolicy
from kernelsim.process.table import ProcessTable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from kernelsim.process.handles import ProcessHandle

_SOURCE = "kernel"


class IoDevice(Protocol):
    """The one thing the kernel asks of the I/O controller."""

    def start_io(self, index: int) -> None:
        """Begin servicing I/O for process slot *index*."""
        ...  # pragma: no cover


class QuantumTimer(Protocol):
    """The interval timer, as far as the kernel drives it."""

    def restart_quantum(self) -> None:
        """Start a fresh time slice."""
        ...  # pragma: no cover


@dataclass
class KernelState:
    """Everything the kernel mutates, in one explicitly owned value.

    Attributes:
        table: One record per application slot.
        blocked: Slots waiting for the I/O device, in request order.
        current_running: The RUNNING slot, or None.
        io_in_progress: True while the device services a request.
        io_in_service: The slot whose I/O the device is servicing.
        cursor: The last slot dispatched; round robin resumes after it.

    """

    table: ProcessTable
    blocked: BlockedQueue
    current_running: int | None = None
    io_in_progress: bool = False
    io_in_service: int | None = None
    cursor: int | None = None

    @classmethod
    def create(cls, handles: Sequence[ProcessHandle]) -> KernelState:
        """Build the boot-time state: every slot READY, nothing queued."""
        table = ProcessTable(handles)
        return cls(table=table, blocked=BlockedQueue(capacity=len(table)))

    def check_invariants(self) -> None:
        """Verify the bookkeeping is self-consistent.

        Raises:
            LogicInvariantViolation: On the first inconsistency found.

        """
        running = self.table.running()
        if len(running) > 1:
            msg = f"More than one RUNNING process: {running}"
            raise LogicInvariantViolation(msg)
        expected = running[0] if running else None
        if self.current_running != expected:
            msg = f"current_running is {self.current_running}, table says {expected}"
            raise LogicInvariantViolation(msg)
        if self.io_in_progress != (self.io_in_service is not None):
            msg = "io_in_progress disagrees with io_in_service"
            raise LogicInvariantViolation(msg)
        queued = self.blocked.snapshot()
        if self.io_in_service is not None and self.io_in_service in queued:
            msg = f"A{self.io_in_service} is both queued and in service"
            raise LogicInvariantViolation(msg)
        for record in self.table:
            waiting = record.index in queued or record.index == self.io_in_service
            if record.io_pending != waiting:
                msg = f"{record.name} io_pending={record.io_pending} but waiting={waiting}"
                raise LogicInvariantViolation(msg)
            if waiting and record.state is not ProcessState.BLOCKED:
                msg = f"{record.name} waits for I/O but is {record.state}"
                raise LogicInvariantViolation(msg)

    def snapshot(self) -> dict[str, Any]:
        """Return a JSON-friendly view of the whole state."""
        return {
            "processes": self.table.snapshot(),
            "blocked_queue": self.blocked.snapshot(),
            "current_running": self.current_running,
            "io_in_progress": self.io_in_progress,
            "io_in_service": self.io_in_service,
        }


class Kernel:
    """The interrupt dispatcher and the scheduler it drives."""

    def __init__(
        self,
        *,
        handles: Sequence[ProcessHandle],
        io_device: IoDevice | None = None,
        timer: QuantumTimer | None = None,
        interrupts: InterruptController | None = None,
        policy: SchedulingPolicy | None = None,
        resume_policy: ResumePolicy = ResumePolicy.SKIP,
        logger: Logger | None = None,
    ) -> None:
        """Create a kernel managing one slot per handle.

        Args:
            handles: The application units, slot *i* = ``handles[i]``.
            io_device: Receives I/O-start requests (may be attached
                later with ``attach_io_device``).
            timer: Restarted on every dispatch (may be attached later
                with ``attach_timer``).
            interrupts: The IRQ queue (a fresh one by default).
            policy: Scheduling policy (round robin by default).
            resume_policy: How saved resume points become offsets.
            logger: The kernel log buffer.

        """
        self._logger = logger if logger is not None else Logger()
        self._state = KernelState.create(handles)
        self._io_device = io_device
        self._timer = timer
        self._interrupts = interrupts if interrupts is not None else InterruptController()
        self._scheduler = Scheduler(
            state=self._state,
            policy=policy,
            resume_policy=resume_policy,
            logger=self._logger,
        )
        self._interrupts.register_handler(Vector.TIMER, self._on_timer_interrupt)
        self._interrupts.register_handler(Vector.IO_COMPLETE, self._on_io_interrupt)
        self._interrupts.register_handler(Vector.SYSCALL, self._on_syscall_interrupt)
        self._protocol_violations = 0
        self._dispatch_mark = 0

    # -- accessors -------------------------------------------------------------

    @property
    def state(self) -> KernelState:
        """Return the kernel state."""
        return self._state

    @property
    def table(self) -> ProcessTable:
        """Return the process table."""
        return self._state.table

    @property
    def blocked(self) -> BlockedQueue:
        """Return the blocked queue."""
        return self._state.blocked

    @property
    def scheduler(self) -> Scheduler:
        """Return the scheduler."""
        return self._scheduler

    @property
    def interrupts(self) -> InterruptController:
        """Return the interrupt controller."""
        return self._interrupts

    @property
    def logger(self) -> Logger:
        """Return the kernel log buffer."""
        return self._logger

    @property
    def protocol_violations(self) -> int:
        """Return how many syscall contexts could not be read."""
        return self._protocol_violations

    def attach_io_device(self, io_device: IoDevice) -> None:
        """Connect the device that services I/O requests."""
        self._io_device = io_device

    def attach_timer(self, timer: QuantumTimer) -> None:
        """Connect the interval timer restarted on each dispatch."""
        self._timer = timer

    def dmesg(self) -> list[str]:
        """Return the kernel log as formatted lines."""
        return [str(e) for e in self._logger.entries]

    # -- control ---------------------------------------------------------------

    def start(self) -> int | None:
        """Make the first scheduling decision."""
        self._logger.info("Starting scheduling", source=_SOURCE)
        return self.schedule()

    def schedule(self) -> int | None:
        """Run the scheduler once.

        A dispatch is stamped with the last IRQ sequence number raised
        so far, and restarts the timer's quantum.

        Returns:
            The slot dispatched, or None if the CPU was left as it was.

        """
        chosen = self._scheduler.schedule()
        if chosen is not None:
            self._dispatch_mark = self._interrupts.last_sequence
            if self._timer is not None:
                self._timer.restart_quantum()
        return chosen

    def raise_syscall(self, index: int) -> None:
        """Raise IRQ2 on behalf of process *index*."""
        self._interrupts.raise_interrupt(Vector.SYSCALL, data=index)

    def service_pending(self) -> int:
        """Handle every queued IRQ in arrival order."""
        return self._interrupts.service_pending()

    def snapshot(self) -> dict[str, Any]:
        """Return the kernel state plus counters."""
        snap = self._state.snapshot()
        snap["context_switches"] = self._scheduler.context_switches
        snap["interrupts_serviced"] = self._interrupts.total_serviced
        snap["protocol_violations"] = self._protocol_violations
        return snap

    # -- IRQ entry points ------------------------------------------------------

    def _on_timer_interrupt(self, irq: InterruptRequest) -> None:
        self.handle_timer_tick(raised_at=irq.sequence)

    def _on_io_interrupt(self, irq: InterruptRequest) -> None:
        self.handle_io_complete(raised_at=irq.sequence)

    def _on_syscall_interrupt(self, irq: InterruptRequest) -> None:
        self.handle_syscall(irq.data, raised_at=irq.sequence)

    def _reschedule(self, raised_at: int | None) -> None:
        """End a handler: schedule, unless the IRQ predates the running process."""
        running = self._state.current_running
        if raised_at is not None and running is not None and raised_at <= self._dispatch_mark:
            self._logger.debug(
                f"IRQ #{raised_at} was raised before A{running} was dispatched; A{running} keeps the CPU",
                source=_SOURCE,
                pid=running,
            )
            return
        self.schedule()

    # -- handlers --------------------------------------------------------------

    def handle_timer_tick(self, *, raised_at: int | None = None) -> None:
        """IRQ0: end of the current quantum.

        Args:
            raised_at: Sequence number of the IRQ when it came through
                the interrupt queue.

        """
        self._logger.debug("IRQ0 (end of time slice)", source=_SOURCE)
        self._reschedule(raised_at)

    def handle_syscall(self, index: object, *, raised_at: int | None = None) -> None:
        """IRQ2: process *index* requests blocking I/O."""
        table = self._state.table
        if not isinstance(index, int) or not 0 <= index < len(table):
            self._logger.warning(f"IRQ2 with invalid process index {index!r}, ignored", source=_SOURCE)
            self._reschedule(raised_at)
            return

        record = table.get(index)
        self._logger.info(f"IRQ2 (I/O syscall) from process {record.name}", source=_SOURCE, pid=index)
        if record.state is ProcessState.BLOCKED:
            self._logger.warning(
                f"Process {record.name} is already blocked, syscall ignored",
                source=_SOURCE,
                pid=index,
            )
            self._reschedule(raised_at)
            return

        try:
            context = record.channels.read_context()
        except ProtocolViolation as e:
            self._protocol_violations += 1
            self._logger.warning(
                f"Protocol violation from {record.name}: {e}; no context saved",
                source=_SOURCE,
                pid=index,
            )
        else:
            record.save_context(
                SavedContext(resume_point=context.resume_point, operation=context.operation)
            )
            self._logger.debug(
                f"Saved context of {record.name}: pc={context.resume_point} op={context.operation}",
                source=_SOURCE,
                pid=index,
            )

        record.handle.suspend()
        record.block()
        if self._state.current_running == index:
            self._state.current_running = None
        self._state.blocked.enqueue(index)
        if not self._state.io_in_progress:
            self._start_next_io()
        self._reschedule(raised_at)

    def handle_io_complete(self, *, raised_at: int | None = None) -> None:
        """IRQ1: the device finished the request it was servicing."""
        state = self._state
        if not state.io_in_progress or state.io_in_service is None:
            self._logger.warning("IRQ1 with no I/O in progress, ignored", source=_SOURCE)
            self._reschedule(raised_at)
            return

        index = state.io_in_service
        state.io_in_progress = False
        state.io_in_service = None
        record = state.table.get(index)
        record.wake()
        self._logger.info(f"IRQ1 (I/O complete): process {record.name} is READY", source=_SOURCE, pid=index)

        if not state.blocked.is_empty():
            self._start_next_io()
        self._reschedule(raised_at)

    def _start_next_io(self) -> None:
        """Hand the head of the blocked queue to the I/O device."""
        state = self._state
        index = state.blocked.dequeue()
        if index is None:
            return
        if self._io_device is None:
            msg = "No I/O device attached to the kernel"
            raise LogicInvariantViolation(msg)
        state.table.get(index).io_pending = True
        state.io_in_progress = True
        state.io_in_service = index
        self._logger.info(f"Sending process A{index} to the I/O device", source=_SOURCE, pid=index)
        self._io_device.start_io(index)
