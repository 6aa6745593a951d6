"""The shell — poke at a running simulation one command at a time.

The shell reads a command string, dispatches it to a handler, and
returns the output as a string.  It never prints: the REPL (or a
test, or the web dashboard) decides what to do with the text.

Commands:

    help              list commands
    ps                the process table
    queue             the blocked queue and the I/O device
    status            tick count and kernel counters
    step [n]          advance n ticks (default 1)
    run [max]         step until every program has finished
    log [level]       kernel log entries at or above level
    dmesg             the boot log
    exit              leave the shell
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, TypeAlias

from kernelsim.logging import LogLevel

if TYPE_CHECKING:
    from kernelsim.simulation import Simulation

_Handler: TypeAlias = Callable[[list[str]], str]

_DEFAULT_LOG_LINES = 20


class Shell:
    """Command interpreter bound to one simulation."""

    EXIT_SENTINEL = "__EXIT__"

    def __init__(self, *, simulation: Simulation) -> None:
        """Create a shell for *simulation*."""
        self._simulation = simulation
        self._commands: dict[str, _Handler] = {
            "help": self._cmd_help,
            "ps": self._cmd_ps,
            "queue": self._cmd_queue,
            "status": self._cmd_status,
            "step": self._cmd_step,
            "run": self._cmd_run,
            "log": self._cmd_log,
            "dmesg": self._cmd_dmesg,
            "exit": self._cmd_exit,
        }

    @property
    def commands(self) -> list[str]:
        """Return the command names, sorted."""
        return sorted(self._commands)

    def execute(self, command: str) -> str:
        """Run one command line and return its output."""
        parts = command.strip().split()
        if not parts:
            return ""
        handler = self._commands.get(parts[0])
        if handler is None:
            return f"Unknown command: {parts[0]}"
        return handler(parts[1:])

    # -- Command handlers ------------------------------------------------

    def _cmd_help(self, _args: list[str]) -> str:
        """List available commands."""
        return "Available commands: " + ", ".join(self.commands)

    def _cmd_ps(self, _args: list[str]) -> str:
        """Show the process table."""
        kernel = self._simulation.kernel
        apps = self._simulation.apps
        lines = ["SLOT  STATE     IO   PC   SAVED  OP"]
        for record in kernel.table:
            snap = record.snapshot()
            saved = snap["saved_resume_point"]
            lines.append(
                f"{record.name:<5} {record.state!s:<9} "
                f"{'yes' if record.io_pending else 'no':<4} "
                f"{apps[record.index].pc:<4} "
                f"{'-' if saved is None else saved!s:<6} "
                f"{snap['pending_operation'] or '-'}"
            )
        return "\n".join(lines)

    def _cmd_queue(self, _args: list[str]) -> str:
        """Show the blocked queue and the I/O device."""
        state = self._simulation.kernel.state
        queued = " ".join(f"A{i}" for i in state.blocked.snapshot()) or "(empty)"
        device = f"A{state.io_in_service}" if state.io_in_service is not None else "idle"
        return f"Blocked queue: {queued}\nI/O device: {device}"

    def _cmd_status(self, _args: list[str]) -> str:
        """Show counters."""
        snap = self._simulation.snapshot()
        running = snap["current_running"]
        return "\n".join(
            [
                f"tick: {snap['tick']}",
                f"running: {'-' if running is None else f'A{running}'}",
                f"context switches: {snap['context_switches']}",
                f"interrupts serviced: {snap['interrupts_serviced']}",
                f"protocol violations: {snap['protocol_violations']}",
                f"finished: {'yes' if snap['finished'] else 'no'}",
            ]
        )

    def _cmd_step(self, args: list[str]) -> str:
        """Advance the simulation."""
        count = _parse_count(args, default=1)
        if count is None:
            return "Usage: step [n]"
        results = self._simulation.run(ticks=count)
        lines = []
        for r in results:
            running = "-" if r.running is None else f"A{r.running}"
            executed = r.executed or "-"
            lines.append(f"tick {r.tick}: executed {executed}, now running {running}")
        return "\n".join(lines)

    def _cmd_run(self, args: list[str]) -> str:
        """Run until every program has finished."""
        if args:
            limit = _parse_count(args, default=0)
            if limit is None:
                return "Usage: run [max_ticks]"
            taken = self._simulation.run_until_finished(max_ticks=limit)
        else:
            taken = self._simulation.run_until_finished()
        done = "all programs finished" if self._simulation.finished else "tick limit reached"
        return f"Ran {taken} tick(s): {done}"

    def _cmd_log(self, args: list[str]) -> str:
        """Show recent kernel log entries."""
        level = LogLevel.INFO
        if args:
            try:
                level = LogLevel[args[0].upper()]
            except KeyError:
                return f"Unknown level: {args[0]}"
        entries = self._simulation.kernel.logger.filter(min_level=level)
        return "\n".join(str(e) for e in entries[-_DEFAULT_LOG_LINES:])

    def _cmd_dmesg(self, _args: list[str]) -> str:
        """Show the boot log."""
        return "\n".join(self._simulation.boot_log)

    def _cmd_exit(self, _args: list[str]) -> str:
        """Leave the shell."""
        return self.EXIT_SENTINEL


def _parse_count(args: list[str], *, default: int) -> int | None:
    """Parse an optional positive integer argument."""
    if not args:
        return default
    try:
        value = int(args[0])
    except ValueError:
        return None
    return value if value > 0 else None
