"""Command-line entry point.

    kernelsim NUM_APPS [--ticks N] [--config FILE] [--resume-policy POLICY]
                       [--live [--seconds S]] [--interactive] [--quiet | --verbose]

Without ``--ticks`` the deterministic simulation runs until every
program has finished.  ``--live`` runs the threaded runtime in real
time instead.  ``--interactive`` drops into the shell.  Options that
belong to another mode are rejected rather than ignored.

Exit status is 1 for a configuration error, 2 for a usage error and 0
otherwise.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from kernelsim import repl
from kernelsim.bootloader import Bootloader, BootError
from kernelsim.config import MAX_APPS, MIN_APPS, ConfigurationError, KernelConfig, ResumePolicy, load_config
from kernelsim.logging import Logger, LogLevel


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="kernelsim",
        description="Round-robin scheduler with blocking I/O, simulated.",
    )
    parser.add_argument(
        "num_apps",
        type=int,
        nargs="?",
        help=f"number of application processes ({MIN_APPS} to {MAX_APPS})",
    )
    parser.add_argument("--config", type=Path, help="JSON configuration file")
    parser.add_argument("--ticks", type=int, help="stop after this many ticks")
    parser.add_argument(
        "--resume-policy",
        choices=[p.value for p in ResumePolicy],
        help="resume after (skip) or at (reexecute) the syscall instruction",
    )
    parser.add_argument("--live", action="store_true", help="run with threads in real time")
    parser.add_argument("--seconds", type=float, help="live mode: stop after this many seconds")
    parser.add_argument("--interactive", action="store_true", help="open the interactive shell")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("--quiet", action="store_true", help="only print warnings and errors")
    verbosity.add_argument("--verbose", action="store_true", help="also print debug messages")
    return parser


def _check_args(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    """Reject option combinations that would otherwise be silently ignored."""
    if args.interactive:
        clashing = [
            flag
            for flag, given in (
                ("--live", args.live),
                ("--ticks", args.ticks is not None),
                ("--seconds", args.seconds is not None),
                ("--quiet", args.quiet),
                ("--verbose", args.verbose),
            )
            if given
        ]
        if clashing:
            parser.error(f"--interactive cannot be combined with {', '.join(clashing)}")
    if args.seconds is not None and not args.live:
        parser.error("--seconds only applies with --live")
    if args.ticks is not None and args.live:
        parser.error("--ticks does not apply with --live; use --seconds")
    if args.ticks is not None and args.ticks < 1:
        parser.error(f"--ticks must be at least 1, got {args.ticks}")
    if args.seconds is not None and args.seconds <= 0:
        parser.error(f"--seconds must be positive, got {args.seconds}")


def _build_config(args: argparse.Namespace) -> KernelConfig:
    overrides = {"num_apps": args.num_apps, "resume_policy": args.resume_policy}
    if args.config is not None:
        return load_config(args.config, **overrides)
    return KernelConfig.from_mapping({k: v for k, v in overrides.items() if v is not None})


def main(argv: list[str] | None = None) -> int:
    """Run the simulator.

    Returns:
        The process exit status.

    Raises:
        SystemExit: With status 2 on a usage error.

    """
    parser = build_parser()
    args = parser.parse_args(argv)
    _check_args(parser, args)
    try:
        config = _build_config(args)
    except ConfigurationError as e:
        print(f"ERROR: {e}", file=sys.stderr)  # noqa: T201
        return 1

    if args.interactive:
        repl.run(Bootloader(config=config))
        return 0

    echo_level = LogLevel.INFO
    if args.quiet:
        echo_level = LogLevel.WARNING
    elif args.verbose:
        echo_level = LogLevel.DEBUG

    logger = Logger(sink=print, echo_level=echo_level)
    bootloader = Bootloader(config=config, logger=logger)
    try:
        if args.live:
            runtime = bootloader.boot_live()
            try:
                runtime.run(seconds=args.seconds)
            except KeyboardInterrupt:
                runtime.stop()
            return 0

        simulation = bootloader.boot()
        if args.ticks is not None:
            simulation.run(ticks=args.ticks)
        else:
            simulation.run_until_finished()
    except BootError as e:
        print(f"ERROR: {e}", file=sys.stderr)  # noqa: T201
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted.")  # noqa: T201
    return 0


def entrypoint() -> None:
    """Console-script wrapper around ``main``."""
    sys.exit(main())
