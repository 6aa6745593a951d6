"""Live runtime — the same kernel, driven by real threads and real time.

Producers and one consumer:

- a **timer thread** calls ``controller.tick()`` every
  ``tick_seconds``, raising IRQ0 and IRQ1;
- one **application thread** per process executes instructions and
  raises IRQ2 when it traps;
- the **kernel loop** (the thread that calls ``run``) is the only
  consumer of the interrupt queue, handling one IRQ at a time.

The kernel state is touched only from the kernel loop, so the
producers can be as unruly as they like.
"""

from __future__ import annotations

import threading
from time import monotonic
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kernelsim.apps import ThreadedApplication
    from kernelsim.config import KernelConfig
    from kernelsim.io.controller import InterController
    from kernelsim.kernel import Kernel

_POLL_SECONDS = 0.05
_JOIN_SECONDS = 2.0


class LiveRuntime:
    """Run a booted kernel with threaded producers."""

    def __init__(
        self,
        *,
        kernel: Kernel,
        controller: InterController,
        apps: list[ThreadedApplication],
        config: KernelConfig,
        boot_log: list[str] | None = None,
    ) -> None:
        """Assemble a runtime from booted parts (see ``Bootloader.boot_live``)."""
        self._kernel = kernel
        self._controller = controller
        self._apps = apps
        self._config = config
        self._boot_log = list(boot_log or [])
        self._stopping = threading.Event()
        self._timer_thread = threading.Thread(target=self._timer_loop, name="timer", daemon=True)

    @property
    def kernel(self) -> Kernel:
        """Return the kernel."""
        return self._kernel

    @property
    def apps(self) -> list[ThreadedApplication]:
        """Return the applications, in slot order."""
        return list(self._apps)

    @property
    def boot_log(self) -> list[str]:
        """Return the boot messages."""
        return list(self._boot_log)

    @property
    def finished(self) -> bool:
        """Return True once every program has ended and no I/O is outstanding."""
        return all(app.finished for app in self._apps) and not self._kernel.state.io_in_progress

    def run(self, *, seconds: float | None = None) -> int:
        """Run until every program ends, *seconds* pass, or ``stop`` is called.

        Returns:
            The number of IRQs the kernel serviced.

        """
        deadline = None if seconds is None else monotonic() + seconds
        for app in self._apps:
            app.start()
        self._timer_thread.start()
        self._kernel.start()

        serviced = 0
        try:
            while not self._stopping.is_set() and not self.finished:
                if deadline is not None and monotonic() >= deadline:
                    break
                if self._kernel.interrupts.service_next(timeout=_POLL_SECONDS) is not None:
                    serviced += 1
        finally:
            self.stop()
        return serviced

    def stop(self) -> None:
        """Stop the timer and every application thread."""
        self._stopping.set()
        for app in self._apps:
            app.stop()
        for app in self._apps:
            app.join(_JOIN_SECONDS)
        if self._timer_thread.is_alive():
            self._timer_thread.join(_JOIN_SECONDS)

    def _timer_loop(self) -> None:
        while not self._stopping.wait(self._config.tick_seconds):
            self._controller.tick()
