"""
funge — command-line Befunge-98 interpreter.

Usage:
    funge program.b98 [ARGS...]
    funge -e '"olleH",,,,,@'
    funge -t --max-ticks 100 program.b98
"""

from __future__ import annotations

import argparse
import logging
import sys
import time

from colorama import Fore, Style, just_fix_windows_console

from . import loader
from .config import Config, ConfigError, ExecAction, FileView
from .devices import TextIO
from .machine import S_HALTED, FungeMachine, TraceRecord
from .instructions import describe

logger = logging.getLogger("funge")


# ---------------------------------------------------------------------------
# Colored output
# ---------------------------------------------------------------------------

class ColoredFormatter(logging.Formatter):
    """Log formatter coloring each message by its level."""

    LEVEL_COLORS = {
        logging.DEBUG: Style.DIM,
        logging.INFO: "",
        logging.WARNING: Fore.YELLOW,
        logging.ERROR: Fore.RED,
        logging.CRITICAL: Fore.RED + Style.BRIGHT,
    }

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        color = self.LEVEL_COLORS.get(record.levelno, "")
        return f"{color}{message}{Style.RESET_ALL}" if color else message


def setup_logging(level: int = logging.WARNING):
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ColoredFormatter("%(name)s: %(message)s"))
    root = logging.getLogger("funge")
    root.handlers[:] = [handler]
    root.setLevel(level)
    root.propagate = False


def print_trace(record: TraceRecord):
    stacks = [list(s) for s in record.stacks]
    mode = f" {Style.DIM}(string){Style.RESET_ALL}" if record.string_mode else ""
    print(
        f"{Fore.CYAN}funge:{Style.RESET_ALL} IP {Fore.GREEN}{record.ip_id}{Style.RESET_ALL} "
        f"hit {Fore.YELLOW}{describe(record.command)}{Style.RESET_ALL}{mode} "
        f"at {record.position}; stacks: {Fore.BLUE}{stacks}{Style.RESET_ALL}",
        file=sys.stderr,
    )


def error(message: str):
    print(f"{Fore.RED}error:{Style.RESET_ALL} {message}", file=sys.stderr)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Befunge-98 interpreter",
        prog="funge",
    )
    parser.add_argument("source", nargs="?", help="Path to the Befunge-98 program")
    parser.add_argument("args", nargs="*",
                        help="Arguments passed to the program (reported by y)")
    parser.add_argument("-e", "--expr", help="Program text to run instead of a file")
    parser.add_argument("-t", "--trace", action="store_true",
                        help="Print every executed instruction to stderr")
    parser.add_argument("-s", "--sleep", type=int, metavar="MS",
                        help="Pause after every instruction")
    parser.add_argument("-p", "--time", action="store_true",
                        help="Report execution time and counters when done")
    parser.add_argument("--max-ticks", type=int, metavar="N",
                        help="Stop with exit code 1 after N ticks")
    parser.add_argument("--seed", type=int, help="Seed for the ? instruction")
    parser.add_argument("--no-files", action="store_true",
                        help="Make i and o fail instead of touching files")
    parser.add_argument("--no-exec", action="store_true",
                        help="Make = fail instead of running commands")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Log interpreter events")
    parser.add_argument("-q", "--quiet", action="store_true",
                        help="Only log errors")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.source and args.expr is None:
        parser.error("Provide a program file or -e program text")

    just_fix_windows_console()
    if args.verbose:
        setup_logging(logging.DEBUG)
    elif args.quiet:
        setup_logging(logging.ERROR)
    else:
        setup_logging(logging.WARNING)

    if args.expr is not None:
        name = "-e"
        program_args = ([args.source] if args.source else []) + args.args
    else:
        name = args.source
        program_args = args.args

    try:
        config = Config.from_env(
            file_view=FileView.DENY if args.no_files else None,
            exec_action=ExecAction.DENY if args.no_exec else None,
            trace=True if args.trace else None,
            sleep=args.sleep / 1000.0 if args.sleep else None,
            max_ticks=args.max_ticks,
            seed=args.seed,
            args=[name, *program_args],
        )
    except ConfigError as e:
        error(str(e))
        return 1
    if config.trace:
        config.trace_hook = print_trace

    try:
        space = loader.load(args.expr) if args.expr is not None else loader.load_file(name)
    except loader.ProgramLoadError as e:
        error(str(e))
        return 1

    logger.debug("running %s with args %s", name, program_args)
    machine = FungeMachine(space, config=config, io=TextIO(sys.stdin, sys.stdout))
    started = time.perf_counter()
    exit_code = machine.run()
    elapsed = time.perf_counter() - started

    if machine.state == S_HALTED:
        error(f"stopped after {machine.ticks} ticks")
    if args.time:
        print(f"Executed in {elapsed:.3f}s", file=sys.stderr)
        print(machine.stats_summary(), file=sys.stderr)
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
