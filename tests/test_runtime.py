"""Tests for the live, thread-driven runtime.

Time is scaled down to milliseconds so a whole run takes well under a
second on any machine.
"""

from kernelsim.bootloader import Bootloader
from kernelsim.config import KernelConfig
from kernelsim.io.channels import Operation
from kernelsim.process import ProcessState

FAST = KernelConfig(
    max_iterations=12,
    syscall_schedule={3: Operation.READ, 8: Operation.WRITE},
    io_duration=2,
    tick_seconds=0.01,
    instruction_seconds=0.004,
)
DEADLINE_SECONDS = 20.0


class TestLiveRuntime:
    """Verify a complete threaded run."""

    def test_runs_to_completion(self) -> None:
        """Every program finishes and every syscall is served."""
        runtime = Bootloader(config=FAST).boot_live()
        serviced = runtime.run(seconds=DEADLINE_SECONDS)
        assert runtime.finished is True
        assert serviced > 0
        for app in runtime.apps:
            assert app.finished is True
            assert [c.resume_point for c in app.syscalls] == [3, 8]
        runtime.kernel.state.check_invariants()
        assert runtime.kernel.table.in_state(ProcessState.BLOCKED) == []

    def test_threads_stopped_after_run(self) -> None:
        """run() leaves no application thread behind."""
        runtime = Bootloader(config=FAST).boot_live()
        runtime.run(seconds=DEADLINE_SECONDS)
        assert not any(app.alive for app in runtime.apps)

    def test_deadline_stops_run(self) -> None:
        """A short deadline ends the run before the programs finish."""
        slow = FAST.replace(instruction_seconds=0.5, tick_seconds=0.5)
        runtime = Bootloader(config=slow).boot_live()
        runtime.run(seconds=0.1)
        assert runtime.finished is False
        assert not any(app.alive for app in runtime.apps)
