"""Interactive REPL for the simulator.

Boot a simulation, then loop: read a command, run it through the
``Shell``, print the result.  The helpers here are pure; ``run()`` is
the only function that touches ``stdin``/``stdout``.
"""

import readline

from kernelsim.bootloader import Bootloader
from kernelsim.shell import Shell
from kernelsim.simulation import Simulation

_BANNER_WIDTH = 38


def format_boot_log(boot_log: list[str]) -> str:
    """Format the boot log into a banner string."""
    border = "=" * _BANNER_WIDTH
    header = f"\n  {border}\n       kernelsim: round robin + I/O\n  {border}\n\n"
    body = "\n".join(f"  {msg}" for msg in boot_log)
    footer = "\nType 'help' for commands, 'exit' to quit.\n"
    return header + body + footer


def build_prompt(simulation: Simulation) -> str:
    """Build a prompt showing the tick and the running process."""
    running = simulation.kernel.state.current_running
    who = "idle" if running is None else f"A{running}"
    return f"[t={simulation.tick} {who}] $ "


def run(bootloader: Bootloader | None = None) -> None:
    """Boot and run the interactive loop until ``exit`` or Ctrl+D."""
    bootloader = bootloader if bootloader is not None else Bootloader()
    simulation = bootloader.boot()
    shell = Shell(simulation=simulation)

    readline.set_completer(
        lambda text, state: ([c for c in shell.commands if c.startswith(text)] + [None])[state]
    )
    readline.parse_and_bind("tab: complete")

    print(format_boot_log(simulation.boot_log))  # noqa: T201

    try:
        while True:
            try:
                command = input(build_prompt(simulation))
            except EOFError:
                print()  # noqa: T201
                break

            result = shell.execute(command)
            if result == Shell.EXIT_SENTINEL:
                break
            if result:
                print(result)  # noqa: T201
    except KeyboardInterrupt:
        print("\nInterrupted.")  # noqa: T201
