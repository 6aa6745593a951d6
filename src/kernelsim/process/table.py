"""The process table — every PCB, addressed by slot index."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from kernelsim.process.pcb import ProcessRecord, ProcessState

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from kernelsim.process.handles import ProcessHandle


class ProcessTable:
    """A fixed-size, index-addressed sequence of process records.

    The table does no validation beyond bounds checking; keeping the
    states consistent is the dispatcher's and scheduler's job.
    """

    def __init__(self, handles: Sequence[ProcessHandle]) -> None:
        """Create one READY record per handle, in order.

        Args:
            handles: The units to manage; slot *i* gets ``handles[i]``.

        """
        self._records: tuple[ProcessRecord, ...] = tuple(
            ProcessRecord(index=i, handle=h) for i, h in enumerate(handles)
        )

    def _check(self, index: int) -> None:
        if not 0 <= index < len(self._records):
            msg = f"Process index {index} out of range (0..{len(self._records) - 1})"
            raise IndexError(msg)

    def get(self, index: int) -> ProcessRecord:
        """Return the record in slot *index*.

        Raises:
            IndexError: If *index* is outside the table.

        """
        self._check(index)
        return self._records[index]

    def set_state(self, index: int, state: ProcessState) -> None:
        """Overwrite the state of slot *index* with no transition checks.

        Raises:
            IndexError: If *index* is outside the table.

        """
        self._check(index)
        self._records[index].state = state

    def count(self) -> int:
        """Return the number of slots."""
        return len(self._records)

    def __len__(self) -> int:
        """Return the number of slots."""
        return len(self._records)

    def __iter__(self) -> Iterator[ProcessRecord]:
        """Iterate records in index order."""
        return iter(self._records)

    def running(self) -> list[int]:
        """Return the indices of every RUNNING record (normally zero or one)."""
        return [r.index for r in self._records if r.state is ProcessState.RUNNING]

    def in_state(self, state: ProcessState) -> list[int]:
        """Return the indices of records in *state*, in index order."""
        return [r.index for r in self._records if r.state is state]

    def snapshot(self) -> list[dict[str, Any]]:
        """Return a JSON-friendly view of every record."""
        return [r.snapshot() for r in self._records]
