"""
Instruction pointer — position, delta, storage offset and stacks of one thread.
"""

from __future__ import annotations

from typing import Callable

from .space import EAST, SEMICOLON, SPACE, ProgramSpace, Vector
from .stacks import StackStack


class InstructionPointer:
    """One execution thread over program space."""

    def __init__(self, ip_id: int = 0, position: Vector = (0, 0),
                 delta: Vector = EAST):
        self.id = ip_id
        self.position = position
        self.delta = delta
        self.storage: Vector = (0, 0)
        self.stacks = StackStack()
        self.string_mode = False
        self.alive = True
        # Fingerprint letter -> stack of handlers; the last one is active.
        self.semantics: dict[str, list[Callable]] = {}

    def clone(self, ip_id: int) -> InstructionPointer:
        """Independent copy with a new id; stacks and semantics are copied."""
        other = InstructionPointer(ip_id, self.position, self.delta)
        other.storage = self.storage
        other.stacks = self.stacks.copy()
        other.string_mode = self.string_mode
        other.semantics = {k: list(v) for k, v in self.semantics.items()}
        return other

    # -------------------------------------------------------------------
    # Stack shortcuts (TOSS)
    # -------------------------------------------------------------------

    def push(self, value: int):
        self.stacks.push(value)

    def pop(self) -> int:
        return self.stacks.pop()

    def push_vector(self, vector: Vector):
        self.stacks.push_vector(vector)

    def pop_vector(self) -> Vector:
        return self.stacks.pop_vector()

    # -------------------------------------------------------------------
    # Direction
    # -------------------------------------------------------------------

    def reflect(self):
        self.delta = (-self.delta[0], -self.delta[1])

    def turn_left(self):
        dx, dy = self.delta
        self.delta = (dy, -dx)

    def turn_right(self):
        dx, dy = self.delta
        self.delta = (-dy, dx)

    def offset(self, vector: Vector) -> Vector:
        """``vector`` relative to the storage offset."""
        return (vector[0] + self.storage[0], vector[1] + self.storage[1])

    # -------------------------------------------------------------------
    # Movement
    # -------------------------------------------------------------------

    def step(self, space: ProgramSpace):
        """One raw move along the delta, wrapping at the bounds."""
        self.position = space.next_position(self.position, self.delta)

    def advance(self, space: ProgramSpace, collapse: bool = False):
        """Move to the next cell to execute.

        Outside string mode, spaces and ``;`` regions are skipped. In string
        mode every cell counts, except that ``collapse`` (set after a space
        was pushed) skips the rest of a run of spaces.
        """
        self.step(space)
        if not self.string_mode:
            self.find_command(space)
        elif collapse:
            self._skip_spaces(space)

    def find_command(self, space: ProgramSpace):
        """Skip spaces and ``;...;`` regions from the current position.

        If the path loops back without meeting a command the IP stops on
        the blank cell it started the loop from.
        """
        skipping = False
        seen = None
        while True:
            value = space.get(*self.position)
            if value == SEMICOLON:
                skipping = not skipping
            elif value != SPACE and not skipping:
                return
            if seen is None:
                seen = set()
            state = (self.position, skipping)
            if state in seen:
                return
            seen.add(state)
            self.step(space)

    def _skip_spaces(self, space: ProgramSpace):
        seen = set()
        while space.get(*self.position) == SPACE and self.position not in seen:
            seen.add(self.position)
            self.step(space)

    def peek_command(self, space: ProgramSpace) -> tuple[Vector, int]:
        """Position and value of the next command, without moving."""
        position = self.position
        self.step(space)
        self.find_command(space)
        target = self.position
        self.position = position
        return target, space.get(*target)

    def __repr__(self) -> str:
        return (f"InstructionPointer(id={self.id}, pos={self.position}, "
                f"delta={self.delta})")
