"""Timer and I/O controller — the hardware the kernel talks to.

One small device plays two roles:

    1. **Interval timer** — every ``time_slice`` ticks it raises IRQ0,
       ending the running process's quantum.  The kernel restarts the
       count whenever it dispatches a process.
    2. **I/O device** — the kernel asks it to start I/O for one
       process; ``io_duration`` ticks later it raises IRQ1.

The device has a single slot.  The kernel's blocked queue does all the
waiting, so the controller never sees a second request while one is
outstanding.  If it does, the kernel's bookkeeping is broken and
``start_io`` raises ``ControllerBusyError``.

Ticks are abstract.  The deterministic simulation calls ``tick()``
once per step; the live runtime calls it from a thread once per
``tick_seconds``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from threading import Lock
from typing import TYPE_CHECKING

from kernelsim.io.interrupts import InterruptController, Vector
from kernelsim.logging import Logger

if TYPE_CHECKING:
    from kernelsim.config import KernelConfig

_SOURCE = "controller"


class ControllerBusyError(RuntimeError):
    """Raise when I/O is started while another request is outstanding."""


class DeviceState(StrEnum):
    """Whether the I/O slot is in use."""

    IDLE = "idle"
    BUSY = "busy"


@dataclass(frozen=True)
class IoRequest:
    """The one outstanding I/O request."""

    index: int
    started_at: int
    completes_at: int


class InterController:
    """A tick-driven interval timer plus a single-slot I/O device."""

    def __init__(
        self,
        interrupts: InterruptController,
        *,
        time_slice: int = 1,
        io_duration: int = 3,
        logger: Logger | None = None,
    ) -> None:
        """Create the controller.

        Args:
            interrupts: Where IRQ0 and IRQ1 are raised.
            time_slice: Ticks between timer interrupts.
            io_duration: Ticks from ``start_io`` to IRQ1.
            logger: Where device events are logged.

        Raises:
            ValueError: If either period is not positive.

        """
        if time_slice <= 0 or io_duration <= 0:
            msg = f"Periods must be positive, got time_slice={time_slice}, io_duration={io_duration}"
            raise ValueError(msg)
        self._interrupts = interrupts
        self._time_slice = time_slice
        self._io_duration = io_duration
        self._logger = logger if logger is not None else Logger()
        self._lock = Lock()
        self._counter = 0
        self._total_ticks = 0
        self._timer_fires = 0
        self._io_completed = 0
        self._request: IoRequest | None = None

    @classmethod
    def from_config(
        cls,
        interrupts: InterruptController,
        config: KernelConfig,
        *,
        logger: Logger | None = None,
    ) -> InterController:
        """Create a controller with the periods from *config*."""
        return cls(
            interrupts,
            time_slice=config.time_slice,
            io_duration=config.io_duration,
            logger=logger,
        )

    @property
    def time_slice(self) -> int:
        """Return the ticks between timer interrupts."""
        return self._time_slice

    @property
    def io_duration(self) -> int:
        """Return the ticks an I/O operation takes."""
        return self._io_duration

    @property
    def total_ticks(self) -> int:
        """Return ticks since creation."""
        return self._total_ticks

    @property
    def timer_fires(self) -> int:
        """Return how many times IRQ0 has been raised."""
        return self._timer_fires

    @property
    def io_completed(self) -> int:
        """Return how many times IRQ1 has been raised."""
        return self._io_completed

    @property
    def status(self) -> DeviceState:
        """Return whether an I/O request is outstanding."""
        return DeviceState.BUSY if self._request is not None else DeviceState.IDLE

    @property
    def current_request(self) -> IoRequest | None:
        """Return the outstanding request, if any."""
        return self._request

    def start_io(self, index: int) -> None:
        """Begin servicing I/O for process slot *index*.

        Raises:
            ControllerBusyError: If a request is already outstanding.

        """
        with self._lock:
            if self._request is not None:
                msg = f"I/O for A{self._request.index} still in progress, cannot start A{index}"
                raise ControllerBusyError(msg)
            self._request = IoRequest(
                index=index,
                started_at=self._total_ticks,
                completes_at=self._total_ticks + self._io_duration,
            )
        self._logger.info(f"Starting I/O for A{index}", source=_SOURCE, pid=index)

    def restart_quantum(self) -> None:
        """Start a fresh time slice for a process just dispatched."""
        with self._lock:
            self._counter = 0

    def tick(self) -> list[Vector]:
        """Advance one tick and raise whatever interrupts are due.

        I/O completion is raised before the timer when both fall on the
        same tick, so the finished process is READY when the tick
        reschedules.

        Returns:
            The vectors raised on this tick, in order.

        """
        raised: list[Vector] = []
        with self._lock:
            self._total_ticks += 1
            self._counter += 1
            request = self._request
            io_done = request is not None and self._total_ticks >= request.completes_at
            if io_done:
                self._request = None
                self._io_completed += 1
            timer_due = self._counter >= self._time_slice
            if timer_due:
                self._counter = 0
                self._timer_fires += 1

        if io_done and request is not None:
            self._logger.debug(f"I/O for A{request.index} complete", source=_SOURCE, pid=request.index)
            self._interrupts.raise_interrupt(Vector.IO_COMPLETE)
            raised.append(Vector.IO_COMPLETE)
        if timer_due:
            self._interrupts.raise_interrupt(Vector.TIMER)
            raised.append(Vector.TIMER)
        return raised
