"""Deterministic simulation — the whole system on one thread.

Instead of real time, the simulation advances in steps.  One step:

    1. the RUNNING application executes one instruction
       (which may trap and raise IRQ2);
    2. the controller ticks (which may raise IRQ1 and/or IRQ0);
    3. the kernel services every queued IRQ in arrival order.

A process dispatched in step 3 runs in the next step even if IRQ0 was
raised on the same tick (see ``kernelsim.kernel``).

Same inputs, same run, every time — which is what the tests, the
shell, and the web dashboard need.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from kernelsim.apps import Application
    from kernelsim.config import KernelConfig
    from kernelsim.io.controller import InterController
    from kernelsim.io.interrupts import Vector
    from kernelsim.kernel import Kernel

DEFAULT_TICK_LIMIT = 1000


@dataclass(frozen=True)
class StepResult:
    """What happened during one simulation step."""

    tick: int
    executed: str | None
    raised: tuple[Vector, ...]
    serviced: int
    running: int | None


class Simulation:
    """Step a kernel, its controller, and its applications together."""

    def __init__(
        self,
        *,
        kernel: Kernel,
        controller: InterController,
        apps: list[Application],
        config: KernelConfig,
        boot_log: list[str] | None = None,
    ) -> None:
        """Assemble a simulation from booted parts (see ``Bootloader``)."""
        self._kernel = kernel
        self._controller = controller
        self._apps = apps
        self._config = config
        self._boot_log = list(boot_log or [])
        self._tick = 0
        self._started = False

    @property
    def kernel(self) -> Kernel:
        """Return the kernel."""
        return self._kernel

    @property
    def controller(self) -> InterController:
        """Return the timer/I/O controller."""
        return self._controller

    @property
    def apps(self) -> list[Application]:
        """Return the applications, in slot order."""
        return list(self._apps)

    @property
    def config(self) -> KernelConfig:
        """Return the boot configuration."""
        return self._config

    @property
    def boot_log(self) -> list[str]:
        """Return the boot messages."""
        return list(self._boot_log)

    @property
    def tick(self) -> int:
        """Return the number of steps taken."""
        return self._tick

    @property
    def finished(self) -> bool:
        """Return True once every program has ended and no I/O is outstanding."""
        return all(app.finished for app in self._apps) and not self._kernel.state.io_in_progress

    def start(self) -> None:
        """Make the first scheduling decision (once)."""
        if not self._started:
            self._started = True
            self._kernel.start()

    def step(self) -> StepResult:
        """Advance the whole system by one tick."""
        self.start()
        self._tick += 1
        executed: str | None = None
        running = self._kernel.state.current_running
        if running is not None:
            app = self._apps[running]
            if app.step():
                executed = app.name
        raised = self._controller.tick()
        serviced = self._kernel.service_pending()
        return StepResult(
            tick=self._tick,
            executed=executed,
            raised=tuple(raised),
            serviced=serviced,
            running=self._kernel.state.current_running,
        )

    def run(self, *, ticks: int) -> list[StepResult]:
        """Take exactly *ticks* steps."""
        return [self.step() for _ in range(ticks)]

    def run_until_finished(self, *, max_ticks: int = DEFAULT_TICK_LIMIT) -> int:
        """Step until every program has ended, or *max_ticks* is reached.

        Returns:
            The number of steps taken by this call.

        """
        taken = 0
        while not self.finished and taken < max_ticks:
            self.step()
            taken += 1
        return taken

    def snapshot(self) -> dict[str, Any]:
        """Return a JSON-friendly view of the whole system."""
        snap = self._kernel.snapshot()
        snap["tick"] = self._tick
        snap["finished"] = self.finished
        snap["io_request"] = (
            self._controller.current_request.index if self._controller.current_request is not None else None
        )
        snap["apps"] = [
            {"name": app.name, "pc": app.pc, "executed": app.executed, "finished": app.finished}
            for app in self._apps
        ]
        return snap
