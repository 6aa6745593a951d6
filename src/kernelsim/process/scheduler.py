"""CPU scheduler — decides which READY process gets the CPU next.

The scheduler is split the same way a real one is:

- a **policy** picks the next slot (``SchedulingPolicy`` protocol);
- the **scheduler** carries the decision out — it hands the winner
  any saved resume point, preempts whoever is running, dispatches the
  winner, and finally lets it run.

Only round robin ships.  ``RoundRobinPolicy`` walks the table in
index order, starting just after the last process dispatched and
wrapping around.  The first READY record wins.  A process that has
just come back from I/O is not favoured; it waits its turn like
everyone else.

Design: Strategy pattern
    The Scheduler is the *context*; SchedulingPolicy is the *strategy*.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from kernelsim.config import ResumePolicy
from kernelsim.io.channels import ProtocolViolation
from kernelsim.logging import Logger
from kernelsim.process.pcb import ProcessState

if TYPE_CHECKING:
    from kernelsim.kernel import KernelState
    from kernelsim.process.pcb import ProcessRecord
    from kernelsim.process.table import ProcessTable

_SOURCE = "scheduler"


class SchedulingPolicy(Protocol):
    """Interface every selection algorithm must satisfy."""

    def select(self, table: ProcessTable, *, after: int | None) -> int | None:
        """Return the index of the next process to run, or None."""
        ...  # pragma: no cover


class RoundRobinPolicy:
    """Round robin — strict circular index order.

    The scan starts at ``after + 1`` and visits every slot once,
    ending at ``after`` itself.  With ``after=None`` (nothing has run
    yet) it starts at slot 0.
    """

    def select(self, table: ProcessTable, *, after: int | None) -> int | None:
        """Return the first READY index in circular order, or None."""
        count = len(table)
        start = 0 if after is None else (after + 1) % count
        for offset in range(count):
            index = (start + offset) % count
            if table.get(index).state is ProcessState.READY:
                return index
        return None


class Scheduler:
    """Carry out scheduling decisions on a kernel's state."""

    def __init__(
        self,
        *,
        state: KernelState,
        policy: SchedulingPolicy | None = None,
        resume_policy: ResumePolicy = ResumePolicy.SKIP,
        logger: Logger | None = None,
    ) -> None:
        """Create a scheduler bound to one kernel state.

        Args:
            state: The kernel state this scheduler mutates.
            policy: Selection algorithm (round robin by default).
            resume_policy: How a saved resume point becomes an offset.
            logger: Where decisions are logged.

        """
        self._state = state
        self._policy: SchedulingPolicy = policy if policy is not None else RoundRobinPolicy()
        self._resume_policy = resume_policy
        self._logger = logger if logger is not None else Logger()
        self._context_switches = 0

    @property
    def policy(self) -> SchedulingPolicy:
        """Return the selection policy."""
        return self._policy

    @property
    def resume_policy(self) -> ResumePolicy:
        """Return the resume-point policy."""
        return self._resume_policy

    @property
    def context_switches(self) -> int:
        """Return how many dispatches have happened."""
        return self._context_switches

    def schedule(self) -> int | None:
        """Pick the next READY process and switch to it.

        When nothing is READY, nothing happens: the current process (if
        any) keeps the CPU and no suspend/resume is issued.

        Returns:
            The index dispatched, or None if the CPU stays as it is.

        """
        state = self._state
        table = state.table
        chosen = self._policy.select(table, after=state.cursor)
        if chosen is None:
            self._logger.debug("No READY process, idling", source=_SOURCE)
            return None

        record = table.get(chosen)
        self._restore_context(record)

        current = state.current_running
        if current is not None:
            running = table.get(current)
            if running.state is ProcessState.RUNNING:
                self._logger.info(f"Preempting process {running.name}", source=_SOURCE, pid=current)
                running.handle.suspend()
                running.preempt()
            state.current_running = None

        record.dispatch()
        state.current_running = chosen
        state.cursor = chosen

        self._logger.info(f"Running process {record.name}", source=_SOURCE, pid=chosen)
        record.handle.resume()
        self._context_switches += 1
        return chosen

    def _restore_context(self, record: ProcessRecord) -> None:
        """Deliver *record*'s saved resume point, consuming the context.

        Runs before any state changes, so a resume point that cannot be
        delivered leaves the process to run without it.
        """
        context = record.take_context()
        if context is None:
            return
        offset = self._resume_policy.apply(context.resume_point)
        try:
            record.channels.deliver_resume_point(offset)
        except ProtocolViolation as e:
            self._logger.warning(
                f"Cannot restore context of {record.name}: {e}; running without it",
                source=_SOURCE,
                pid=record.index,
            )
            return
        self._logger.info(
            f"Restoring context of {record.name}: resume at {offset}",
            source=_SOURCE,
            pid=record.index,
        )
