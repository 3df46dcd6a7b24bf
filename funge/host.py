"""
FungeHost — high-level interface to the Funge machine.

Loads program text, wires up devices and runs it to completion, capturing
output in memory unless real streams are supplied.
"""

from __future__ import annotations

import io
from pathlib import Path
from typing import TextIO as TextStream

from . import loader
from .config import Config
from .devices import FileBridge, SystemInfo, TextIO
from .machine import S_DONE, FungeMachine


class FungeHost:
    """High-level interface to the Funge machine.

    Args:
        config: Interpreter settings. Defaults to ``Config()``.
        stdin: Stream read by ``~`` and ``&``. Defaults to empty input.
        stdout: Stream written by ``,`` and ``.``. Defaults to an in-memory
            buffer whose contents ``run`` returns as ``output``.
    """

    def __init__(self, config: Config | None = None,
                 stdin: TextStream | None = None,
                 stdout: TextStream | None = None):
        self.config = config or Config()
        self.stdin = stdin
        self.stdout = stdout
        self.machine: FungeMachine | None = None

    def load(self, source: str | bytes, input_text: str = "") -> FungeMachine:
        """Build a machine for ``source`` without running it."""
        stdin = self.stdin if self.stdin is not None else io.StringIO(input_text)
        stdout = self.stdout if self.stdout is not None else io.StringIO()
        self.machine = FungeMachine(
            loader.load(source),
            config=self.config,
            io=TextIO(stdin, stdout),
            files=FileBridge(self.config.file_view, self.config.exec_action),
            sysinfo=SystemInfo(self.config),
        )
        return self.machine

    def load_file(self, path: str | Path, input_text: str = "") -> FungeMachine:
        return self.load(loader.read_source(path), input_text)

    def run(self, source: str | bytes, input_text: str = "") -> dict:
        """Load ``source`` and run it to completion.

        Returns dict with exit code, captured output and stats.
        """
        machine = self.load(source, input_text)
        return self._finish(machine)

    def run_file(self, path: str | Path, input_text: str = "") -> dict:
        return self._finish(self.load_file(path, input_text))

    def _finish(self, machine: FungeMachine) -> dict:
        exit_code = machine.run()
        output = machine.io.output
        return {
            "ok": machine.state == S_DONE,
            "exit_code": exit_code,
            "output": output.getvalue() if isinstance(output, io.StringIO) else None,
            "stats": machine.stats(),
        }
