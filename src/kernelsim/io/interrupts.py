"""Interrupt controller — one ordered line of events into the kernel.

Interrupts are the kernel's doorbells.  This system has three:

    - **IRQ0** — timer tick: the running process's quantum is over.
    - **IRQ1** — I/O complete: the device finished the one request it
      was servicing.
    - **IRQ2** — syscall: a process asks for blocking I/O.  The
      request carries the slot index of the caller.

Doorbells can ring from anywhere — the timer thread, any application
thread — but the kernel must answer them one at a time.  So every
``raise_interrupt`` drops an ``InterruptRequest`` into a single
thread-safe FIFO, and only the kernel takes them out.  Events are
serviced strictly in arrival order: no priorities, no coalescing, no
dropping.  Each handler runs to completion before the next IRQ is
taken, which is what keeps the process table consistent.
"""

from __future__ import annotations

import queue
from collections.abc import Callable
from dataclasses import dataclass
from enum import IntEnum, StrEnum
from threading import Lock


class InterruptType(StrEnum):
    """Classify interrupts by source."""

    TIMER = "timer"
    IO = "io"
    SYSCALL = "syscall"


class Vector(IntEnum):
    """Interrupt lines, numbered like the IRQs they model."""

    TIMER = 0
    IO_COMPLETE = 1
    SYSCALL = 2

    @property
    def interrupt_type(self) -> InterruptType:
        """Return the interrupt class of this line."""
        return _TYPES[self]


_TYPES = {
    Vector.TIMER: InterruptType.TIMER,
    Vector.IO_COMPLETE: InterruptType.IO,
    Vector.SYSCALL: InterruptType.SYSCALL,
}


@dataclass(frozen=True)
class InterruptRequest:
    """A pending interrupt waiting to be serviced.

    Attributes:
        vector: Which line was raised.
        data: Payload (the caller's index for IRQ2, None otherwise).
        sequence: Arrival number, assigned by the controller.

    """

    vector: Vector
    data: object = None
    sequence: int = 0

    def __str__(self) -> str:
        """Format as ``IRQ<n>`` plus payload."""
        suffix = f" ({self.data})" if self.data is not None else ""
        return f"IRQ{int(self.vector)}{suffix}"


class InterruptController:
    """Queue IRQs from any thread, dispatch them from one."""

    def __init__(self) -> None:
        """Create a controller with no handlers and an empty queue."""
        self._handlers: dict[Vector, Callable[[InterruptRequest], None]] = {}
        self._pending: queue.Queue[InterruptRequest] = queue.Queue()
        self._sequence = 0
        self._raise_lock = Lock()
        self._total_serviced = 0
        self._serviced_by_vector: dict[Vector, int] = dict.fromkeys(Vector, 0)

    @property
    def total_serviced(self) -> int:
        """Return the total number of interrupts serviced."""
        return self._total_serviced

    def serviced(self, vector: Vector) -> int:
        """Return how many IRQs have been serviced on *vector*."""
        return self._serviced_by_vector[vector]

    def register_handler(self, vector: Vector, handler: Callable[[InterruptRequest], None]) -> None:
        """Attach the handler for *vector*, replacing any previous one."""
        self._handlers[Vector(vector)] = handler

    def raise_interrupt(self, vector: Vector, *, data: object = None) -> InterruptRequest:
        """Queue an interrupt request.  Safe to call from any thread.

        Returns:
            The queued request.

        """
        # Numbering and enqueueing together keep sequence equal to queue order.
        with self._raise_lock:
            self._sequence += 1
            irq = InterruptRequest(vector=Vector(vector), data=data, sequence=self._sequence)
            self._pending.put(irq)
        return irq

    @property
    def last_sequence(self) -> int:
        """Return the sequence number of the most recently raised IRQ."""
        with self._raise_lock:
            return self._sequence

    @property
    def pending_count(self) -> int:
        """Return the approximate number of queued IRQs."""
        return self._pending.qsize()

    def service_next(self, *, timeout: float | None = None) -> InterruptRequest | None:
        """Take one IRQ and run its handler to completion.

        Args:
            timeout: Seconds to wait for an IRQ.  ``None`` returns
                immediately when the queue is empty; use a positive
                value to block.

        Returns:
            The serviced request, or None if none arrived in time.

        Raises:
            KeyError: If no handler is registered for the IRQ's vector.

        """
        try:
            if timeout is None:
                irq = self._pending.get_nowait()
            else:
                irq = self._pending.get(timeout=timeout)
        except queue.Empty:
            return None
        handler = self._handlers.get(irq.vector)
        if handler is None:
            msg = f"No handler registered for IRQ{int(irq.vector)}"
            raise KeyError(msg)
        handler(irq)
        self._total_serviced += 1
        self._serviced_by_vector[irq.vector] += 1
        return irq

    def service_pending(self) -> int:
        """Service every queued IRQ, in arrival order.

        IRQs raised by a handler while this runs are serviced too.

        Returns:
            The number of interrupts serviced in this call.

        """
        serviced = 0
        while self.service_next() is not None:
            serviced += 1
        return serviced

    def list_vectors(self) -> list[dict[str, object]]:
        """Return info about every interrupt line."""
        return [
            {
                "vector": int(v),
                "type": str(v.interrupt_type),
                "serviced": self._serviced_by_vector[v],
                "has_handler": v in self._handlers,
            }
            for v in Vector
        ]
