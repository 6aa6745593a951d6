"""Tests for the deterministic simulation.

With the default configuration (three apps, a one-tick time slice,
three-tick I/O) every app executes one instruction per three ticks,
so A0 reaches its first syscall (pc 5) on tick 16.
"""

import pytest

from kernelsim.bootloader import Bootloader
from kernelsim.config import DEFAULT_MAX_ITERATIONS, KernelConfig, ResumePolicy
from kernelsim.io.channels import Operation, SyscallContext
from kernelsim.io.interrupts import Vector
from kernelsim.process import ProcessState
from kernelsim.simulation import DEFAULT_TICK_LIMIT, Simulation

FIRST_SYSCALL_TICK = 16
FIRST_COMPLETION_TICK = 19
SHORT_PROGRAM = 5
SYSCALL_PCS = [5, 10, 15, 20]
SYSCALLS_PER_APP = len(SYSCALL_PCS)


def _boot(**changes: object) -> Simulation:
    return Bootloader(config=KernelConfig().replace(**changes)).boot()


class TestStepping:
    """Verify what one step does."""

    def test_booted_simulation_runs_a0(self) -> None:
        """Boot makes the first scheduling decision."""
        sim = _boot()
        assert sim.tick == 0
        assert sim.kernel.state.current_running == 0

    def test_first_steps_rotate(self) -> None:
        """Each step one app executes, then the timer rotates the CPU."""
        sim = _boot()
        results = sim.run(ticks=3)
        assert [(r.tick, r.executed, r.running) for r in results] == [
            (1, "A0", 1),
            (2, "A1", 2),
            (3, "A2", 0),
        ]
        assert all(r.raised == (Vector.TIMER,) for r in results)
        assert [app.pc for app in sim.apps] == [1, 1, 1]

    def test_first_syscall(self) -> None:
        """A0 blocks on its READ at pc 5 and the device takes it."""
        sim = _boot()
        sim.run(ticks=FIRST_SYSCALL_TICK)
        state = sim.kernel.state
        assert state.table.get(0).state is ProcessState.BLOCKED
        assert state.io_in_service == 0
        assert sim.controller.current_request is not None
        assert sim.controller.current_request.index == 0
        assert sim.apps[0].syscalls == [SyscallContext(resume_point=5, operation=Operation.READ)]

    def test_apps_after_a0_each_get_their_turn(self) -> None:
        """A1 and A2 each run once after A0 blocks, and trap in turn."""
        sim = _boot()
        sim.run(ticks=FIRST_SYSCALL_TICK)
        results = sim.run(ticks=2)
        assert [(r.executed, r.running) for r in results] == [("A1", 2), ("A2", None)]
        assert sim.kernel.blocked.snapshot() == [1, 2]

    def test_first_completion(self) -> None:
        """Three ticks later A0 is back on the CPU and A1's request is next."""
        sim = _boot()
        sim.run(ticks=FIRST_COMPLETION_TICK)
        state = sim.kernel.state
        assert state.current_running == 0
        assert state.io_in_service == 1
        assert state.blocked.snapshot() == [2]
        result = sim.step()
        assert result.executed == "A0"
        assert sim.apps[0].pc == 7

    def test_idle_step(self) -> None:
        """With every app blocked a step executes nothing."""
        sim = _boot()
        results = sim.run(ticks=FIRST_COMPLETION_TICK)
        assert results[-1].executed is None


class TestFullRun:
    """Verify complete runs."""

    def test_runs_to_completion(self) -> None:
        """Every app runs its whole program and issues every syscall once."""
        sim = _boot()
        taken = sim.run_until_finished()
        assert sim.finished is True
        assert taken == sim.tick
        for app in sim.apps:
            assert app.pc == DEFAULT_MAX_ITERATIONS
            assert app.executed == DEFAULT_MAX_ITERATIONS
            assert [c.resume_point for c in app.syscalls] == SYSCALL_PCS
        assert sim.controller.io_completed == SYSCALLS_PER_APP * len(sim.apps)

    def test_reexecute_runs_syscall_instructions_twice(self) -> None:
        """Under REEXECUTE each syscall instruction runs again, without a second trap."""
        sim = _boot(resume_policy=ResumePolicy.REEXECUTE)
        sim.run_until_finished()
        assert sim.finished is True
        for app in sim.apps:
            assert app.executed == DEFAULT_MAX_ITERATIONS + SYSCALLS_PER_APP
            assert len(app.syscalls) == SYSCALLS_PER_APP

    def test_invariants_hold_every_step(self) -> None:
        """The kernel bookkeeping is consistent after every step."""
        sim = _boot(num_apps=5, io_duration=4)
        while not sim.finished and sim.tick < DEFAULT_TICK_LIMIT:
            sim.step()
            sim.kernel.state.check_invariants()
            table = sim.kernel.table
            if table.in_state(ProcessState.READY):
                assert len(table.running()) == 1
        assert sim.finished is True

    def test_deterministic(self) -> None:
        """Two runs of the same configuration log exactly the same events."""
        first = _boot(num_apps=4)
        second = _boot(num_apps=4)
        first.run_until_finished()
        second.run_until_finished()
        assert first.kernel.dmesg() == second.kernel.dmesg()
        assert first.tick == second.tick

    def test_tick_limit(self) -> None:
        """run_until_finished stops at max_ticks."""
        sim = _boot()
        assert sim.run_until_finished(max_ticks=10) == 10
        assert sim.finished is False

    def test_no_protocol_violations(self) -> None:
        """Well-behaved apps always send a context."""
        sim = _boot()
        sim.run_until_finished()
        assert sim.kernel.protocol_violations == 0

    def test_reexecute_syscall_on_last_instruction(self) -> None:
        """An app sent back to its last instruction runs it and drains its channel."""
        sim = _boot(
            max_iterations=SHORT_PROGRAM,
            syscall_schedule={SHORT_PROGRAM - 1: Operation.READ},
            resume_policy=ResumePolicy.REEXECUTE,
        )
        sim.run_until_finished()
        assert sim.finished is True
        for app, record in zip(sim.apps, sim.kernel.table, strict=True):
            assert app.executed == SHORT_PROGRAM + 1
            assert record.channels.inbound.is_empty()


class TestQuanta:
    """Every dispatched process executes before it loses the CPU."""

    @pytest.mark.parametrize(
        "changes",
        [
            {},
            {"max_iterations": SHORT_PROGRAM + 1, "syscall_schedule": {1: Operation.READ}},
            {"num_apps": 5, "io_duration": 4},
            {"time_slice": 3, "io_duration": 2},
            {"resume_policy": ResumePolicy.REEXECUTE},
        ],
    )
    def test_dispatched_process_executes(self, changes: dict[str, object]) -> None:
        """A process on the CPU at the start of a step always executes in it."""
        sim = _boot(**changes)
        while not sim.finished and sim.tick < DEFAULT_TICK_LIMIT:
            running = sim.kernel.state.current_running
            switches = sim.kernel.scheduler.context_switches
            owed = None if running is None or sim.apps[running].finished else sim.apps[running].name
            result = sim.step()
            if owed is not None:
                assert result.executed == owed, f"tick {result.tick}"
            assert sim.kernel.scheduler.context_switches - switches <= 1, f"tick {result.tick}"
        assert sim.finished is True

    def test_rotation_after_syscall(self) -> None:
        """After A0 traps, A1 then A2 run, each for one quantum."""
        sim = _boot(max_iterations=SHORT_PROGRAM + 1, syscall_schedule={1: Operation.READ})
        results = sim.run(ticks=6)
        assert [r.executed for r in results] == ["A0", "A1", "A2", "A0", "A1", "A2"]

    def test_time_slice_restarts_on_dispatch(self) -> None:
        """A process dispatched mid-slice still gets a whole slice."""
        sim = _boot(time_slice=3, max_iterations=SHORT_PROGRAM + 1, syscall_schedule={1: Operation.READ})
        results = sim.run(ticks=5)
        assert [r.executed for r in results] == ["A0", "A0", "A1", "A1", "A2"]


class TestSnapshot:
    """Verify the JSON view."""

    def test_snapshot_keys(self) -> None:
        """The snapshot adds simulation fields to the kernel's."""
        sim = _boot()
        sim.run(ticks=FIRST_SYSCALL_TICK)
        snap = sim.snapshot()
        assert snap["tick"] == FIRST_SYSCALL_TICK
        assert snap["finished"] is False
        assert snap["io_request"] == 0
        assert snap["apps"][0] == {"name": "A0", "pc": 6, "executed": 6, "finished": False}
