"""Bootloader — bring the whole system up in the right order.

The boot chain mirrors what a small teaching kernel does in ``main``:

1. **Configuration** — load and validate the ``KernelConfig``
   (a bad process count stops everything here).
2. **Applications** — create N application processes.
3. **Kernel** — build the process table around them, wire each
   application to its channels and to IRQ2.
4. **Stop everyone** — every application is suspended so that no one
   runs before the scheduler says so.
5. **Controller** — create the timer/I/O controller.
6. **Start scheduling** — the first ``schedule()`` picks A0.

``boot()`` returns a ready-to-step ``Simulation``;
``boot_live()`` returns a ``LiveRuntime`` whose threads start when it
is run.
"""

from __future__ import annotations

from enum import StrEnum
from functools import partial
from typing import TYPE_CHECKING

from kernelsim.apps import Application, ThreadedApplication
from kernelsim.config import ConfigurationError, KernelConfig, load_config
from kernelsim.io.controller import InterController
from kernelsim.kernel import Kernel
from kernelsim.logging import Logger
from kernelsim.runtime import LiveRuntime
from kernelsim.simulation import Simulation

if TYPE_CHECKING:
    from pathlib import Path

_SOURCE = "boot"


class BootStage(StrEnum):
    """The current phase of the boot chain."""

    CONFIG = "config"
    APPLICATIONS = "applications"
    KERNEL = "kernel"
    CONTROLLER = "controller"
    RUNNING = "running"


class BootError(RuntimeError):
    """Raise when the boot chain cannot continue."""


class Bootloader:
    """Build a kernel, its applications, and its controller.

    Usage::

        simulation = Bootloader(config=KernelConfig(num_apps=4)).boot()
        simulation.run(ticks=50)

    """

    def __init__(
        self,
        *,
        config: KernelConfig | None = None,
        config_path: Path | None = None,
        logger: Logger | None = None,
    ) -> None:
        """Create a bootloader.

        Args:
            config: The configuration to boot with.
            config_path: JSON file to load instead (wins over *config*).
            logger: The kernel log buffer shared by every component.

        """
        self._config = config
        self._config_path = config_path
        self._logger = logger if logger is not None else Logger()
        self._stage = BootStage.CONFIG
        self._boot_log: list[str] = []

    @property
    def stage(self) -> BootStage:
        """Return the current boot stage."""
        return self._stage

    @property
    def boot_log(self) -> list[str]:
        """Return the boot messages so far."""
        return list(self._boot_log)

    @property
    def logger(self) -> Logger:
        """Return the shared log buffer."""
        return self._logger

    def boot(self) -> Simulation:
        """Run the boot chain and return a started deterministic simulation.

        Raises:
            BootError: If the configuration cannot be loaded.

        """
        config = self._load_config()
        apps = [
            Application(
                index=i,
                syscall_schedule=config.syscall_schedule,
                max_iterations=config.max_iterations,
                logger=self._logger,
            )
            for i in range(config.num_apps)
        ]
        kernel, controller = self._boot_kernel(config, apps)
        simulation = Simulation(
            kernel=kernel,
            controller=controller,
            apps=apps,
            config=config,
            boot_log=self.boot_log,
        )
        simulation.start()
        self._stage = BootStage.RUNNING
        return simulation

    def boot_live(self) -> LiveRuntime:
        """Run the boot chain for thread-based execution.

        Scheduling starts when the returned runtime is run.

        Raises:
            BootError: If the configuration cannot be loaded.

        """
        config = self._load_config()
        apps = [
            ThreadedApplication(
                index=i,
                syscall_schedule=config.syscall_schedule,
                max_iterations=config.max_iterations,
                instruction_seconds=config.instruction_seconds,
                logger=self._logger,
            )
            for i in range(config.num_apps)
        ]
        kernel, controller = self._boot_kernel(config, apps)
        self._stage = BootStage.RUNNING
        return LiveRuntime(
            kernel=kernel,
            controller=controller,
            apps=apps,
            config=config,
            boot_log=self.boot_log,
        )

    def _note(self, message: str) -> None:
        self._boot_log.append(message)
        self._logger.info(message, source=_SOURCE)

    def _load_config(self) -> KernelConfig:
        self._stage = BootStage.CONFIG
        if self._config_path is not None:
            try:
                config = load_config(self._config_path)
            except ConfigurationError as e:
                msg = f"Cannot boot: {e}"
                raise BootError(msg) from e
        else:
            config = self._config if self._config is not None else KernelConfig()
        self._note(f"Configuration: {config.num_apps} apps, resume policy {config.resume_policy}")
        return config

    def _boot_kernel(
        self,
        config: KernelConfig,
        apps: list[Application] | list[ThreadedApplication],
    ) -> tuple[Kernel, InterController]:
        self._stage = BootStage.APPLICATIONS
        self._note(f"Creating {config.num_apps} application processes...")

        self._stage = BootStage.KERNEL
        kernel = Kernel(handles=apps, resume_policy=config.resume_policy, logger=self._logger)
        for app, record in zip(apps, kernel.table, strict=True):
            app.attach(channels=record.channels, notify=partial(kernel.raise_syscall, app.index))
            self._note(f"Process {app.name} created")

        self._note("Stopping all applications initially...")
        for app in apps:
            app.suspend()

        self._stage = BootStage.CONTROLLER
        controller = InterController.from_config(kernel.interrupts, config, logger=self._logger)
        kernel.attach_io_device(controller)
        kernel.attach_timer(controller)
        self._note(
            f"Timer/I-O controller ready (time slice {config.time_slice} tick(s), "
            f"I/O {config.io_duration} tick(s))"
        )
        return kernel, controller
