"""Tests for the application programs."""

import time

import pytest

from kernelsim.apps import Application, ThreadedApplication
from kernelsim.io.channels import ChannelPair, Operation, SyscallContext
from kernelsim.logging import Logger

SYSCALL_PC = 2
SHORT_PROGRAM = 5
LAST_PC = SHORT_PROGRAM - 1
JOIN_SECONDS = 5.0


def _attached(
    *,
    schedule: dict[int, Operation] | None = None,
    max_iterations: int = SHORT_PROGRAM,
    logger: Logger | None = None,
) -> tuple[Application, ChannelPair, list[int]]:
    app = Application(index=0, syscall_schedule=schedule, max_iterations=max_iterations, logger=logger)
    channels = ChannelPair("A0")
    notified: list[int] = []
    app.attach(channels=channels, notify=lambda: notified.append(app.pc))
    return app, channels, notified


class TestExecution:
    """Verify plain instruction stepping."""

    def test_initial_state(self) -> None:
        """A new application is at pc 0 and has done nothing."""
        app = Application(index=3)
        assert app.name == "A3"
        assert app.pc == 0
        assert app.executed == 0
        assert app.finished is False

    def test_step_advances(self) -> None:
        """Each step executes one instruction."""
        app, _, _ = _attached()
        assert app.step() is True
        assert app.pc == 1
        assert app.executed == 1

    def test_suspended_does_not_run(self) -> None:
        """A stopped application executes nothing."""
        app, _, _ = _attached()
        app.suspend()
        assert app.step() is False
        assert app.pc == 0
        app.resume()
        assert app.step() is True

    def test_finishes(self) -> None:
        """The program ends after max_iterations instructions."""
        logger = Logger()
        app, _, _ = _attached(logger=logger)
        for _ in range(SHORT_PROGRAM):
            app.step()
        assert app.finished is True
        assert app.step() is False
        assert "A0: program finished" in logger.messages(source="app")


class TestSyscall:
    """Verify the trap sequence."""

    def test_trap_sends_context_and_stops(self) -> None:
        """At a scheduled pc the app stops, writes its context, then rings IRQ2."""
        app, channels, notified = _attached(schedule={SYSCALL_PC: Operation.READ})
        for _ in range(SYSCALL_PC + 1):
            app.step()
        assert app.suspended is True
        assert notified == [SYSCALL_PC]
        assert channels.read_context() == SyscallContext(resume_point=SYSCALL_PC, operation=Operation.READ)
        assert app.syscalls == [SyscallContext(resume_point=SYSCALL_PC, operation=Operation.READ)]
        assert app.pc == SYSCALL_PC + 1
        assert app.step() is False

    def test_trap_logged(self) -> None:
        """The syscall is logged with its pc and direction."""
        logger = Logger()
        app, _, _ = _attached(schedule={0: Operation.WRITE}, logger=logger)
        app.step()
        assert "A0 (PC=0): syscall WRITE to disk D1" in logger.messages(source="app")

    def test_skip_resume(self) -> None:
        """Resuming after the syscall continues with the next instruction."""
        app, channels, notified = _attached(schedule={SYSCALL_PC: Operation.READ})
        for _ in range(SYSCALL_PC + 1):
            app.step()
        channels.read_context()
        channels.deliver_resume_point(SYSCALL_PC + 1)
        app.resume()
        app.step()
        assert app.pc == SYSCALL_PC + 2
        assert notified == [SYSCALL_PC]

    def test_reexecute_resume_does_not_trap_again(self) -> None:
        """Resuming at the syscall re-runs the instruction without a second syscall."""
        app, channels, notified = _attached(schedule={SYSCALL_PC: Operation.READ})
        for _ in range(SYSCALL_PC + 1):
            app.step()
        channels.read_context()
        channels.deliver_resume_point(SYSCALL_PC)
        app.resume()
        app.step()
        assert app.pc == SYSCALL_PC + 1
        assert app.executed == SYSCALL_PC + 2
        assert notified == [SYSCALL_PC]
        assert app.suspended is False

    def test_trap_on_last_instruction_not_finished(self) -> None:
        """A program that traps on its last instruction waits to be resumed."""
        app, _, _ = _attached(schedule={LAST_PC: Operation.READ})
        for _ in range(SHORT_PROGRAM):
            app.step()
        assert app.pc == SHORT_PROGRAM
        assert app.finished is False

    def test_reexecute_last_instruction(self) -> None:
        """Sent back to its last instruction, the app drains the point and runs it again."""
        logger = Logger()
        app, channels, notified = _attached(schedule={LAST_PC: Operation.READ}, logger=logger)
        for _ in range(SHORT_PROGRAM):
            app.step()
        channels.read_context()
        channels.deliver_resume_point(LAST_PC)
        app.resume()
        assert app.step() is True
        assert channels.inbound.is_empty()
        assert app.pc == SHORT_PROGRAM
        assert app.executed == SHORT_PROGRAM + 1
        assert app.finished is True
        assert notified == [LAST_PC]
        assert logger.messages(source="app").count("A0: program finished") == 1

    def test_skip_past_last_instruction(self) -> None:
        """Resumed past its last instruction, the app drains the point and ends."""
        logger = Logger()
        app, channels, _ = _attached(schedule={LAST_PC: Operation.WRITE}, logger=logger)
        for _ in range(SHORT_PROGRAM):
            app.step()
        channels.read_context()
        channels.deliver_resume_point(SHORT_PROGRAM)
        app.resume()
        assert app.step() is False
        assert channels.inbound.is_empty()
        assert app.executed == SHORT_PROGRAM
        assert app.finished is True
        assert "A0: program finished" in logger.messages(source="app")

    def test_no_resume_point_continues(self) -> None:
        """With nothing delivered the app carries on from its own counter."""
        app, channels, _ = _attached(schedule={SYSCALL_PC: Operation.READ})
        for _ in range(SYSCALL_PC + 1):
            app.step()
        channels.read_context()
        app.resume()
        app.step()
        assert app.pc == SYSCALL_PC + 2

    def test_bad_resume_point_ignored(self) -> None:
        """A malformed delivery is logged and the app carries on."""
        logger = Logger()
        app, channels, _ = _attached(logger=logger)
        channels.inbound.write(b"\x01")
        assert app.step() is True
        assert app.pc == 1
        assert any("bad resume point" in m for m in logger.messages(source="app"))

    def test_unattached_trap_raises(self) -> None:
        """A syscall with no kernel to ring is a wiring bug."""
        app = Application(index=0, syscall_schedule={0: Operation.READ})
        with pytest.raises(RuntimeError, match="not attached"):
            app.step()


class TestThreadedApplication:
    """Verify the gated thread."""

    def test_runs_to_completion(self) -> None:
        """With the gate open the thread runs the whole program."""
        app = ThreadedApplication(index=0, max_iterations=SHORT_PROGRAM, instruction_seconds=0.001)
        app.start()
        app.join(JOIN_SECONDS)
        assert app.finished is True
        assert app.alive is False

    def test_suspended_thread_waits(self) -> None:
        """A closed gate stops execution until resume."""
        app = ThreadedApplication(index=0, max_iterations=SHORT_PROGRAM, instruction_seconds=0.001)
        app.suspend()
        app.start()
        time.sleep(0.05)
        assert app.executed == 0
        app.resume()
        app.join(JOIN_SECONDS)
        assert app.finished is True

    def test_stop_releases_suspended_thread(self) -> None:
        """stop ends the thread even while it is gated."""
        app = ThreadedApplication(index=0, max_iterations=SHORT_PROGRAM, instruction_seconds=0.001)
        app.suspend()
        app.start()
        app.stop()
        app.join(JOIN_SECONDS)
        assert app.alive is False
        assert app.executed == 0
