"""Blocked queue — processes waiting for the I/O device, in request order.

The I/O controller services one request at a time.  Everyone else who
asked for I/O waits here, and the order they asked in is the order
they are served.  That FIFO order is the fairness guarantee of the
I/O subsystem.

The queue is a classic fixed-capacity ring buffer: a list of slots,
a head index, and a size.  Capacity equals the number of processes,
and since a blocked process cannot ask for I/O again, the queue can
never legitimately overflow.  If it does, the dispatcher is broken,
so ``enqueue`` raises ``BlockedQueueOverflow``.
"""

from __future__ import annotations

from kernelsim.process.pcb import LogicInvariantViolation


class BlockedQueueOverflow(LogicInvariantViolation):
    """Raise when more indices are enqueued than there are process slots."""


class BlockedQueue:
    """A bounded circular FIFO of process indices."""

    def __init__(self, *, capacity: int) -> None:
        """Create an empty queue.

        Args:
            capacity: Maximum number of entries (the process count).

        Raises:
            ValueError: If capacity is not positive.

        """
        if capacity <= 0:
            msg = f"Capacity must be positive, got {capacity}"
            raise ValueError(msg)
        self._slots: list[int | None] = [None] * capacity
        self._head = 0
        self._size = 0

    @property
    def capacity(self) -> int:
        """Return the maximum number of entries."""
        return len(self._slots)

    def __len__(self) -> int:
        """Return the number of queued entries."""
        return self._size

    def is_empty(self) -> bool:
        """Return True if nothing is queued."""
        return self._size == 0

    def enqueue(self, index: int) -> None:
        """Append *index* at the tail.

        Raises:
            BlockedQueueOverflow: If the queue is already full.

        """
        if self._size == len(self._slots):
            msg = f"Blocked queue full ({self._size} entries), cannot enqueue A{index}"
            raise BlockedQueueOverflow(msg)
        tail = (self._head + self._size) % len(self._slots)
        self._slots[tail] = index
        self._size += 1

    def dequeue(self) -> int | None:
        """Remove and return the oldest entry, or None if empty."""
        if self._size == 0:
            return None
        index = self._slots[self._head]
        self._slots[self._head] = None
        self._head = (self._head + 1) % len(self._slots)
        self._size -= 1
        return index

    def peek(self) -> int | None:
        """Return the oldest entry without removing it, or None."""
        if self._size == 0:
            return None
        return self._slots[self._head]

    def __contains__(self, index: object) -> bool:
        """Return True if *index* is queued."""
        return index in self.snapshot()

    def snapshot(self) -> list[int]:
        """Return the queued indices, head first."""
        capacity = len(self._slots)
        result: list[int] = []
        for offset in range(self._size):
            entry = self._slots[(self._head + offset) % capacity]
            if entry is not None:
                result.append(entry)
        return result
