"""
Funge machine — tick-driven scheduler for concurrent Funge-98 IPs.

Every tick runs each live IP for exactly one instruction, in ascending id
order. IPs created by ``t`` join the live set after the tick they were
created in; ``@`` retires an IP, ``q`` stops the whole machine at once.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass

from . import instructions
from .config import Config
from .devices import FileBridge, SystemInfo, TextIO
from .fingerprints import REGISTRY, Fingerprint
from .ip import InstructionPointer
from .space import ProgramSpace, Vector

logger = logging.getLogger(__name__)

# Machine states
S_RUNNING = 0
S_DONE = 1      # every IP stopped, or ``q``
S_HALTED = 2    # tick budget exhausted

# Exit code reported when the tick budget runs out.
BUDGET_EXIT_CODE = 1


@dataclass(frozen=True)
class TraceRecord:
    """One executed instruction, as seen right after it ran."""
    tick: int
    ip_id: int
    command: int
    position: Vector
    stacks: tuple[tuple[int, ...], ...]
    string_mode: bool = False

    def format(self) -> str:
        stacks = [list(s) for s in self.stacks]
        return (f"IP {self.ip_id} hit {instructions.describe(self.command)} "
                f"at {self.position}; stacks: {stacks}")


def _log_trace(record: TraceRecord):
    logger.debug("%s", record.format())


class FungeMachine:
    """Runs a loaded program space to completion."""

    def __init__(self, space: ProgramSpace | None = None,
                 config: Config | None = None,
                 io: TextIO | None = None,
                 files: FileBridge | None = None,
                 sysinfo: SystemInfo | None = None,
                 fingerprints: dict[int, Fingerprint] | None = None):
        self.config = config or Config()
        self.space = space or ProgramSpace()

        # --- Devices ---
        self.io = io or TextIO()
        self.files = files or FileBridge(self.config.file_view, self.config.exec_action)
        self.sysinfo = sysinfo or SystemInfo(self.config)
        self.fingerprints = REGISTRY if fingerprints is None else fingerprints
        self.rng = random.Random(self.config.seed)

        self.trace_hook = self.config.trace_hook
        if self.trace_hook is None and self.config.trace:
            self.trace_hook = _log_trace

        # --- Scheduler ---
        self.ips: list[InstructionPointer] = []
        self._spawned: list[InstructionPointer] = []
        self._next_id = 0
        self.state = S_RUNNING
        self.exit_code: int | None = None

        # --- Counters ---
        self.ticks = 0
        self.instructions = 0
        self.ips_spawned = 0
        self.ips_retired = 0
        self.ips_peak = 0

        first = self._new_ip()
        first.find_command(self.space)
        self.ips.append(first)
        self.ips_peak = 1

    def _new_ip(self) -> InstructionPointer:
        ip = InstructionPointer(self._next_id)
        self._next_id += 1
        return ip

    # -------------------------------------------------------------------
    # Scheduler control (called by instructions)
    # -------------------------------------------------------------------

    def split(self, parent: InstructionPointer):
        """Clone ``parent`` heading the other way; it runs from the next tick."""
        child = parent.clone(self._next_id)
        self._next_id += 1
        child.reflect()
        child.advance(self.space)
        self._spawned.append(child)
        self.ips_spawned += 1
        logger.debug("IP %d spawned IP %d at %s", parent.id, child.id, child.position)

    def retire(self, ip: InstructionPointer):
        ip.alive = False
        self.ips_retired += 1
        logger.debug("IP %d stopped at %s", ip.id, ip.position)

    def halt(self, code: int):
        self.exit_code = code
        self.state = S_DONE
        logger.debug("halted with exit code %d", code)

    # -------------------------------------------------------------------
    # Tick
    # -------------------------------------------------------------------

    def tick(self) -> bool:
        """Run every live IP once. Returns True if still running."""
        if self.state != S_RUNNING:
            return False
        max_ticks = self.config.max_ticks
        if max_ticks is not None and self.ticks >= max_ticks:
            self.state = S_HALTED
            self.exit_code = BUDGET_EXIT_CODE
            logger.warning("tick budget of %d exhausted", max_ticks)
            return False

        self.ticks += 1
        for ip in self.ips:
            self._execute(ip)
            if self.state != S_RUNNING:
                self.ips = []
                self._spawned = []
                return False

        self.ips = [ip for ip in self.ips if ip.alive] + self._spawned
        self._spawned = []
        self.ips_peak = max(self.ips_peak, len(self.ips))
        if not self.ips:
            self.exit_code = 0
            self.state = S_DONE
            return False
        return True

    def _execute(self, ip: InstructionPointer):
        position = ip.position
        string_mode = ip.string_mode
        command = instructions.step(ip, self)
        self.instructions += 1
        if self.trace_hook is not None:
            self.trace_hook(TraceRecord(
                tick=self.ticks,
                ip_id=ip.id,
                command=command,
                position=position,
                stacks=ip.stacks.snapshot(),
                string_mode=string_mode,
            ))
        if self.config.sleep:
            time.sleep(self.config.sleep)

    # -------------------------------------------------------------------
    # Run to completion
    # -------------------------------------------------------------------

    def run(self) -> int:
        """Tick until the program ends. Returns the exit code."""
        try:
            while self.tick():
                pass
        finally:
            self.io.flush()
        return self.exit_code

    def reset_counters(self):
        self.ticks = 0
        self.instructions = 0
        self.ips_spawned = 0
        self.ips_retired = 0
        self.ips_peak = len(self.ips)
        self.space.reads = 0
        self.space.writes = 0

    def stats(self) -> dict:
        return {
            "ticks": self.ticks,
            "instructions": self.instructions,
            "ips_spawned": self.ips_spawned,
            "ips_retired": self.ips_retired,
            "ips_peak": self.ips_peak,
            "space_reads": self.space.reads,
            "space_writes": self.space.writes,
            "cells": len(self.space),
        }

    def stats_summary(self) -> str:
        s = self.stats()
        return (
            f"Ticks: {s['ticks']}\n"
            f"Instructions: {s['instructions']}\n"
            f"IPs: {s['ips_spawned']} spawned, {s['ips_retired']} stopped, "
            f"peak {s['ips_peak']}\n"
            f"Space: {s['space_reads']}R/{s['space_writes']}W "
            f"({s['cells']} cells defined)"
        )
