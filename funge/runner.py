"""
ProgramRunner — step-by-step control over a Funge program.

Wraps FungeHost so a caller can advance a program one tick at a time,
inspect the collected trace, and read the output produced so far.
"""

from __future__ import annotations

from pathlib import Path

from . import loader
from .config import Config
from .host import FungeHost
from .machine import S_RUNNING, FungeMachine, TraceRecord


class ProgramRunner:
    """Runs a program tick by tick, recording a trace of every instruction."""

    def __init__(self, config: Config | None = None, **host_kwargs):
        config = config or Config()
        self.host = FungeHost(config=config, **host_kwargs)
        self.machine: FungeMachine | None = None
        self.trace: list[TraceRecord] = []
        self.phase: str = "idle"  # "idle" | "running" | "done"
        self._user_hook = config.trace_hook

    # -------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------

    def load_file(self, path: str | Path, input_text: str = ""):
        self.load_source(loader.read_source(path), input_text)

    def load_source(self, source: str | bytes, input_text: str = ""):
        self.machine = self.host.load(source, input_text)
        self.machine.trace_hook = self._record
        self.trace = []
        self.phase = "running"

    def _record(self, record: TraceRecord):
        self.trace.append(record)
        if self._user_hook is not None:
            self._user_hook(record)

    # -------------------------------------------------------------------
    # Execution control
    # -------------------------------------------------------------------

    def tick(self) -> bool:
        """Advance the program one tick. Returns False once it has ended."""
        if self.phase != "running":
            return False
        if not self.machine.tick():
            self.phase = "done"
            self.machine.io.flush()
            return False
        return True

    def run_ticks(self, n: int) -> list[TraceRecord]:
        """Run up to ``n`` ticks; returns the trace records they produced."""
        start = len(self.trace)
        for _ in range(n):
            if not self.tick():
                break
        return self.trace[start:]

    def run(self) -> int | None:
        while self.tick():
            pass
        return self.exit_code

    # -------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self.machine is not None and self.machine.state == S_RUNNING

    @property
    def exit_code(self) -> int | None:
        return self.machine.exit_code if self.machine is not None else None

    @property
    def output(self) -> str:
        out = self.machine.io.output if self.machine is not None else None
        return out.getvalue() if hasattr(out, "getvalue") else ""

    def records_for(self, ip_id: int) -> list[TraceRecord]:
        return [r for r in self.trace if r.ip_id == ip_id]
