"""
Stacks — the per-IP stack of stacks.

Cells are signed 32-bit integers. Popping an empty stack yields 0, so a
stack behaves as if it sat on an endless pile of zeros.
"""

from __future__ import annotations

from typing import Iterator

from .space import Vector

CELL_BITS = 32
CELL_MASK = (1 << CELL_BITS) - 1
CELL_SIGN = 1 << (CELL_BITS - 1)


def to_cell(value: int) -> int:
    """Wrap an arbitrary integer to a signed 32-bit cell."""
    return ((value + CELL_SIGN) & CELL_MASK) - CELL_SIGN


class Stack:
    """LIFO of cells; the end of ``cells`` is the top."""

    __slots__ = ("cells",)

    def __init__(self, cells: list[int] | None = None):
        self.cells: list[int] = list(cells) if cells else []

    def push(self, value: int):
        self.cells.append(value)

    def pop(self) -> int:
        return self.cells.pop() if self.cells else 0

    def peek(self) -> int:
        return self.cells[-1] if self.cells else 0

    def clear(self):
        self.cells.clear()

    def take(self, n: int) -> list[int]:
        """Remove the top ``n`` cells, returned bottom-first.

        Missing cells are supplied as zeros at the bottom.
        """
        if n <= 0:
            return []
        have = min(n, len(self.cells))
        taken = self.cells[len(self.cells) - have:]
        del self.cells[len(self.cells) - have:]
        return [0] * (n - have) + taken

    def discard(self, n: int):
        if n > 0:
            del self.cells[max(0, len(self.cells) - n):]

    def copy(self) -> Stack:
        return Stack(self.cells)

    def __len__(self) -> int:
        return len(self.cells)

    def __iter__(self) -> Iterator[int]:
        return iter(self.cells)

    def __repr__(self) -> str:
        return f"Stack({self.cells})"


class StackStack:
    """Ordered stacks; index 0 is the top of stack stack (TOSS).

    Instructions only ever touch the TOSS, except for block operations and
    ``u`` which move cells between the TOSS and the stack under it (SOSS).
    """

    def __init__(self):
        # Stored bottom-first so the TOSS is the last element.
        self.stacks: list[Stack] = [Stack()]

    @property
    def toss(self) -> Stack:
        return self.stacks[-1]

    @property
    def soss(self) -> Stack:
        return self.stacks[-2]

    def __getitem__(self, index: int) -> Stack:
        return self.stacks[len(self.stacks) - 1 - index]

    def __len__(self) -> int:
        return len(self.stacks)

    def single(self) -> bool:
        return len(self.stacks) == 1

    # -------------------------------------------------------------------
    # TOSS operations
    # -------------------------------------------------------------------

    def push(self, value: int):
        self.stacks[-1].push(value)

    def pop(self) -> int:
        return self.stacks[-1].pop()

    def peek(self) -> int:
        return self.stacks[-1].peek()

    def clear(self):
        self.stacks[-1].clear()

    def push_vector(self, vector: Vector):
        self.push(vector[0])
        self.push(vector[1])

    def pop_vector(self) -> Vector:
        y = self.pop()
        x = self.pop()
        return (x, y)

    def push_string(self, text: str) -> int:
        """Push a 0gnirts (reads in order from the top). Returns cells pushed."""
        self.push(0)
        for ch in reversed(text):
            self.push(ord(ch))
        return len(text) + 1

    def pop_string(self) -> str | None:
        """Pop a 0gnirts. Returns None if a cell is not a valid character."""
        chars = []
        valid = True
        while True:
            value = self.pop()
            if value == 0:
                break
            if valid and 0 < value <= 0x10FFFF and not 0xD800 <= value <= 0xDFFF:
                chars.append(chr(value))
            else:
                valid = False
        return "".join(chars) if valid else None

    def nth(self, n: int) -> int:
        """The ``n``-th cell from the top of the TOSS (1-based), or 0."""
        cells = self.stacks[-1].cells
        if 0 < n <= len(cells):
            return cells[-n]
        return 0

    def sizes(self) -> list[int]:
        """Cell count of each stack, TOSS first."""
        return [len(s) for s in reversed(self.stacks)]

    # -------------------------------------------------------------------
    # Block operations
    # -------------------------------------------------------------------

    def begin_block(self, n: int, offset: Vector):
        """Push a new TOSS, moving ``n`` cells onto it.

        A negative ``n`` instead pushes ``-n`` zeros onto the old TOSS. The
        storage offset is then saved on the old TOSS (now the SOSS).
        """
        soss = self.stacks[-1]
        toss = Stack(soss.take(n)) if n > 0 else Stack()
        if n < 0:
            soss.cells.extend([0] * -n)
        soss.push(offset[0])
        soss.push(offset[1])
        self.stacks.append(toss)

    def end_block(self, n: int) -> Vector:
        """Drop the TOSS, moving ``n`` cells back onto the SOSS.

        A negative ``n`` instead removes ``-n`` cells from the SOSS.
        Returns the storage offset that ``begin_block`` saved.
        """
        if self.single():
            raise IndexError("end of block with no enclosing block")
        toss = self.stacks.pop()
        soss = self.stacks[-1]
        offset = self.pop_vector()
        if n > 0:
            soss.cells.extend(toss.take(n))
        elif n < 0:
            soss.discard(-n)
        return offset

    def under(self, n: int):
        """Transfer ``n`` cells from the SOSS to the TOSS, one at a time.

        Each transfer pops and pushes, so the cells arrive reversed. A
        negative ``n`` transfers ``-n`` cells the other way.
        """
        if self.single():
            raise IndexError("stack under stack with a single stack")
        toss, soss = self.stacks[-1], self.stacks[-2]
        if n > 0:
            for _ in range(n):
                toss.push(soss.pop())
        elif n < 0:
            for _ in range(-n):
                soss.push(toss.pop())

    def copy(self) -> StackStack:
        clone = StackStack()
        clone.stacks = [s.copy() for s in self.stacks]
        return clone

    def snapshot(self) -> tuple[tuple[int, ...], ...]:
        """Every stack's cells (bottom-first), TOSS first."""
        return tuple(tuple(s.cells) for s in reversed(self.stacks))
