"""Application processes — the programs the kernel schedules.

Each application is a tiny program with a program counter.  Every
instruction it executes:

    1. drains its inbound channel — if the kernel delivered a resume
       point, that becomes the program counter;
    2. executes the instruction at ``pc`` (it just logs it);
    3. if the instruction is in the syscall schedule, traps into the
       kernel for blocking I/O;
    4. moves on to ``pc + 1``.

It stops after ``max_iterations`` instructions, or, if its last
instruction traps, once it has been resumed.  The default schedule
reads at pc 5 and 15 and writes at pc 10 and 20.

Trapping (``_trap``) follows the channel protocol: the application
stops itself, writes a ``SyscallContext`` to its outbound channel, and
only then raises IRQ2.  Stopping first means it cannot run ahead
before the kernel has blocked it.

If the kernel resumes it *at* the syscall instruction (the REEXECUTE
policy) the instruction runs again, but the syscall, already served,
is not issued a second time.

``Application`` is stepped by the deterministic simulation.
``ThreadedApplication`` runs the same program on its own thread,
gated by a ``threading.Event`` that ``suspend``/``resume`` clear/set.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from kernelsim.config import DEFAULT_MAX_ITERATIONS
from kernelsim.io.channels import ChannelPair, Operation, ProtocolViolation, SyscallContext
from kernelsim.logging import Logger

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

_SOURCE = "app"


class Application:
    """A deterministic, stepped application process."""

    def __init__(
        self,
        *,
        index: int,
        syscall_schedule: Mapping[int, Operation] | None = None,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        logger: Logger | None = None,
    ) -> None:
        """Create an application that has not executed anything yet.

        Args:
            index: Slot number; the name is ``A<index>``.
            syscall_schedule: Program counter → operation to request.
            max_iterations: The program ends when ``pc`` reaches this.
            logger: Where executed instructions are logged.

        """
        self._index = index
        self._schedule: dict[int, Operation] = dict(syscall_schedule or {})
        self._max_iterations = max_iterations
        self._logger = logger if logger is not None else Logger()
        self._lock = threading.RLock()
        self._pc = 0
        self._executed = 0
        self._suspended = False
        self._served_syscall: int | None = None
        self._awaiting_resume = False
        self._syscalls: list[SyscallContext] = []
        self._channels: ChannelPair | None = None
        self._notify: Callable[[], None] | None = None

    def attach(self, *, channels: ChannelPair, notify: Callable[[], None]) -> None:
        """Connect the application to its kernel channels and IRQ2 line."""
        self._channels = channels
        self._notify = notify

    @property
    def name(self) -> str:
        """Return ``A<index>``."""
        return f"A{self._index}"

    @property
    def index(self) -> int:
        """Return the slot number."""
        return self._index

    @property
    def pc(self) -> int:
        """Return the program counter (the next instruction)."""
        return self._pc

    @property
    def executed(self) -> int:
        """Return how many instructions have been executed."""
        return self._executed

    @property
    def suspended(self) -> bool:
        """Return True while the application is stopped."""
        return self._suspended

    @property
    def finished(self) -> bool:
        """Return True once the program has run off its end.

        An application that trapped on its last instruction is not
        finished until it has been resumed once: the kernel may send it
        back to that instruction.
        """
        return self._pc >= self._max_iterations and not self._awaiting_resume

    @property
    def syscalls(self) -> list[SyscallContext]:
        """Return every syscall context this application has sent."""
        return list(self._syscalls)

    def suspend(self) -> None:
        """Stop the application (SIGSTOP)."""
        with self._lock:
            self._suspended = True

    def resume(self) -> None:
        """Let the application continue (SIGCONT)."""
        with self._lock:
            self._suspended = False

    def step(self) -> bool:
        """Execute one instruction if the application may run.

        Returns:
            True if an instruction was executed.

        """
        with self._lock:
            if self._suspended or self.finished:
                return False
            self._load_resume_point()
            self._awaiting_resume = False
            if self._pc >= self._max_iterations:
                self._logger.info(f"{self.name}: program finished", source=_SOURCE, pid=self._index)
                return False

            pc = self._pc
            self._logger.debug(f"{self.name}: executing instruction (PC={pc})", source=_SOURCE, pid=self._index)
            operation = self._schedule.get(pc)
            if operation is not None and pc != self._served_syscall:
                self._trap(operation)
            self._served_syscall = None
            self._pc = pc + 1
            self._executed += 1
            if self.finished:
                self._logger.info(f"{self.name}: program finished", source=_SOURCE, pid=self._index)
            return True

    def _load_resume_point(self) -> None:
        if self._channels is None:
            return
        try:
            resume_point = self._channels.receive_resume_point()
        except ProtocolViolation as e:
            self._logger.warning(f"{self.name}: bad resume point: {e}", source=_SOURCE, pid=self._index)
            return
        if resume_point is None:
            return
        if resume_point < self._pc:
            # Resuming at an instruction we already ran means its syscall was served.
            self._served_syscall = resume_point
        self._pc = resume_point

    def _trap(self, operation: Operation) -> None:
        """Issue a blocking syscall for *operation* at the current pc."""
        if self._channels is None or self._notify is None:
            msg = f"{self.name} is not attached to a kernel"
            raise RuntimeError(msg)
        verb = "READ from" if operation is Operation.READ else "WRITE to"
        self._logger.info(f"{self.name} (PC={self._pc}): syscall {verb} disk D1", source=_SOURCE, pid=self._index)
        context = SyscallContext(resume_point=self._pc, operation=operation)
        self.suspend()
        self._awaiting_resume = True
        self._channels.send_context(context)
        self._syscalls.append(context)
        self._notify()

    def __repr__(self) -> str:
        """Return a debug-friendly representation."""
        return f"{type(self).__name__}(name={self.name!r}, pc={self._pc}, suspended={self._suspended})"


class ThreadedApplication(Application):
    """The same program, running on its own daemon thread.

    The thread waits on a gate before each instruction.  ``suspend``
    closes the gate, ``resume`` opens it.  An instruction already under
    way when the gate closes finishes first, as a real process would
    finish the instruction it is executing when SIGSTOP arrives.
    """

    def __init__(
        self,
        *,
        index: int,
        syscall_schedule: Mapping[int, Operation] | None = None,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        instruction_seconds: float = 1.0,
        logger: Logger | None = None,
    ) -> None:
        """Create a threaded application (the thread is not started).

        Args:
            index: Slot number; the name is ``A<index>``.
            syscall_schedule: Program counter → operation to request.
            max_iterations: The program ends when ``pc`` reaches this.
            instruction_seconds: Wall-clock time per instruction.
            logger: Where executed instructions are logged.

        """
        super().__init__(
            index=index,
            syscall_schedule=syscall_schedule,
            max_iterations=max_iterations,
            logger=logger,
        )
        self._instruction_seconds = instruction_seconds
        self._gate = threading.Event()
        self._gate.set()
        self._stopping = threading.Event()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)

    @property
    def alive(self) -> bool:
        """Return True while the thread is running."""
        return self._thread.is_alive()

    def suspend(self) -> None:
        """Close the gate."""
        with self._lock:
            super().suspend()
            self._gate.clear()

    def resume(self) -> None:
        """Open the gate."""
        with self._lock:
            super().resume()
            self._gate.set()

    def start(self) -> None:
        """Start the application thread."""
        self._thread.start()

    def stop(self) -> None:
        """Ask the thread to exit at its next gate check."""
        self._stopping.set()
        self._gate.set()

    def join(self, timeout: float | None = None) -> None:
        """Wait for the thread to exit."""
        self._thread.join(timeout)

    def _run(self) -> None:
        while not self._stopping.is_set() and not self.finished:
            self._gate.wait()
            if self._stopping.is_set():
                break
            if self.step():
                self._stopping.wait(self._instruction_seconds)
