"""
Devices — the interpreter's view of the outside world.

TextIO serves ``~ & , .``, FileBridge serves ``i o =``, SystemInfo supplies
the environment facts that ``y`` reports. Each is a plain object so a host
can swap in its own (in-memory streams for tests, sandboxes, ...).
"""

from __future__ import annotations

import collections
import datetime
import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import TextIO as TextStream

from .config import Config, ExecAction, FileView

logger = logging.getLogger(__name__)

EOF = -1


class TextIO:
    """Character and decimal I/O over text streams.

    Input is consumed a line at a time into a pending buffer, so ``&``
    can leave the rest of a line for a later ``~``.
    """

    def __init__(self, input: TextStream | None = None,
                 output: TextStream | None = None):
        self.input = input if input is not None else sys.stdin
        self.output = output if output is not None else sys.stdout
        self.pending: collections.deque[str] = collections.deque()

    def _fill(self) -> bool:
        if self.pending:
            return True
        self.flush()
        line = self.input.readline()
        if not line:
            return False
        self.pending.extend(line)
        return True

    def read_char(self) -> int:
        """Next input character, or EOF."""
        if not self._fill():
            return EOF
        return ord(self.pending.popleft())

    def read_integer(self) -> int:
        """Next decimal integer, or EOF if input ends before a digit.

        Characters before the number are dropped; the character after it
        stays pending.
        """
        negative = False
        while True:
            if not self._fill():
                return EOF
            ch = self.pending.popleft()
            if ch.isdigit():
                break
            negative = ch == "-"

        digits = [ch]
        while self.pending and self.pending[0].isdigit():
            digits.append(self.pending.popleft())
        value = int("".join(digits))
        return -value if negative else value

    def write_char(self, value: int):
        """Write one character. Raises ValueError for an invalid code point."""
        if 0xD800 <= value <= 0xDFFF:
            raise ValueError(f"surrogate code point {value:#x}")
        self.output.write(chr(value))

    def write_integer(self, value: int):
        self.output.write(f"{value} ")

    def flush(self):
        self.output.flush()


class FileBridge:
    """File and command access, subject to the configured policy.

    Denied or failing operations raise OSError; callers report that to the
    program as a failure status.
    """

    def __init__(self, file_view: FileView = FileView.REAL,
                 exec_action: ExecAction = ExecAction.REAL):
        self.file_view = file_view
        self.exec_action = exec_action

    def read_file(self, name: str) -> bytes:
        if self.file_view is FileView.DENY:
            raise PermissionError(f"file access denied: {name}")
        logger.debug("reading %s", name)
        return Path(name).read_bytes()

    def write_file(self, name: str, data: bytes, offset: int = 0):
        """Write ``data`` at byte ``offset``; offset 0 replaces the file."""
        if self.file_view is FileView.DENY:
            raise PermissionError(f"file access denied: {name}")
        logger.debug("writing %d bytes to %s at offset %d", len(data), name, offset)
        path = Path(name)
        if offset == 0:
            path.write_bytes(data)
            return
        with open(path, "r+b" if path.exists() else "wb") as f:
            f.seek(offset)
            f.write(data)

    def execute_command(self, command: str) -> int:
        """Run ``command`` through the system shell; returns its exit status."""
        if self.exec_action is ExecAction.DENY:
            raise PermissionError(f"command execution denied: {command}")
        logger.debug("executing %r", command)
        completed = subprocess.run(command, shell=True)
        return completed.returncode


class SystemInfo:
    """Facts about the interpreter and its host, as ``y`` reports them."""

    HANDPRINT = 0x5059464E   # "PYFN"
    VERSION = (0, 1, 0)
    CELL_SIZE = 4            # bytes per cell
    DIMENSIONS = 2

    # Operating paradigm of ``=``
    PARADIGM_NONE = 0
    PARADIGM_SHELL = 2

    # Flag bits
    FLAG_CONCURRENT = 0x01
    FLAG_INPUT_FILE = 0x02
    FLAG_OUTPUT_FILE = 0x04
    FLAG_EXECUTE = 0x08

    def __init__(self, config: Config | None = None):
        self.config = config or Config()

    def flags(self) -> int:
        flags = self.FLAG_CONCURRENT
        if self.config.file_view is FileView.REAL:
            flags |= self.FLAG_INPUT_FILE | self.FLAG_OUTPUT_FILE
        if self.config.exec_action is ExecAction.REAL:
            flags |= self.FLAG_EXECUTE
        return flags

    def version(self) -> int:
        major, minor, patch = self.VERSION
        return (major << 16) | (minor << 8) | patch

    def paradigm(self) -> int:
        if self.config.exec_action is ExecAction.REAL:
            return self.PARADIGM_SHELL
        return self.PARADIGM_NONE

    def path_separator(self) -> int:
        return ord(os.sep)

    def date(self) -> int:
        now = self._now()
        return (now.year - 1900) * 256 * 256 + now.month * 256 + now.day

    def time(self) -> int:
        now = self._now()
        return now.hour * 256 * 256 + now.minute * 256 + now.second

    def args(self) -> list[str]:
        return list(self.config.args)

    def environment(self) -> dict[str, str]:
        return dict(os.environ)

    def _now(self) -> datetime.datetime:
        return datetime.datetime.now()
