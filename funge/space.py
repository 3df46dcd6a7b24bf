"""
Funge-space — sparse, unbounded, self-modifying 2D program memory.

Cells live in a dict keyed by (x, y); unset coordinates read as a space.
The smallest box holding every non-space cell is tracked on each write,
because IP movement (Lahey-space wrapping) is defined relative to it.
"""

from __future__ import annotations

SPACE = 32       # ' '
SEMICOLON = 59   # ';'
QUOTE = 34       # '"'

Vector = tuple[int, int]

EAST: Vector = (1, 0)
SOUTH: Vector = (0, 1)
WEST: Vector = (-1, 0)
NORTH: Vector = (0, -1)
CARDINALS: tuple[Vector, ...] = (EAST, SOUTH, WEST, NORTH)


def cell_char(value: int) -> str:
    """Render a cell for display. Values outside Unicode become U+FFFD."""
    if 0 <= value <= 0x10FFFF and not 0xD800 <= value <= 0xDFFF:
        return chr(value)
    return "�"


class Bounds:
    """Inclusive bounding box of all non-space cells. Always holds the origin."""

    def __init__(self):
        self.min_x = 0
        self.min_y = 0
        self.max_x = 0
        self.max_y = 0

    def update(self, x: int, y: int):
        if x < self.min_x:
            self.min_x = x
        if x > self.max_x:
            self.max_x = x
        if y < self.min_y:
            self.min_y = y
        if y > self.max_y:
            self.max_y = y

    def contains(self, x: int, y: int) -> bool:
        return self.min_x <= x <= self.max_x and self.min_y <= y <= self.max_y

    def min(self) -> Vector:
        return (self.min_x, self.min_y)

    def max(self) -> Vector:
        return (self.max_x, self.max_y)

    def size(self) -> Vector:
        return (self.max_x - self.min_x + 1, self.max_y - self.min_y + 1)

    def __repr__(self) -> str:
        return f"Bounds({self.min()}..{self.max()})"


class ProgramSpace:
    """Sparse Funge-98 program space.

    A coordinate is *defined* once something has been stored there: every
    character of the loaded program text (spaces included) and every cell
    written with a non-space value. Writing a space to an undefined
    coordinate stores nothing, so blanking cells never grows the map.
    """

    def __init__(self):
        self.cells: dict[Vector, int] = {}
        self.bounds = Bounds()

        # --- Counters ---
        self.reads = 0
        self.writes = 0

    @classmethod
    def from_text(cls, text: str) -> ProgramSpace:
        space = cls()
        space.load_text(text)
        return space

    def load_text(self, text: str, origin: Vector = (0, 0)):
        """Lay program text out row by row, starting at ``origin``.

        Rows are padded with spaces to the width of the longest row, so a
        loaded program always occupies a fully defined rectangle. Carriage
        returns and form feeds are dropped; a trailing line break does not
        open an empty row.
        """
        lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
        if lines and lines[-1] == "":
            lines.pop()
        rows = [line.replace("\f", "") for line in lines]
        width = max((len(row) for row in rows), default=0)

        ox, oy = origin
        for y, row in enumerate(rows):
            for x, ch in enumerate(row.ljust(width)):
                self._store(ox + x, oy + y, ord(ch))

    # -------------------------------------------------------------------
    # Cell access
    # -------------------------------------------------------------------

    def get(self, x: int, y: int) -> int:
        self.reads += 1
        return self.cells.get((x, y), SPACE)

    def put(self, x: int, y: int, value: int):
        self.writes += 1
        if value == SPACE and (x, y) not in self.cells:
            return
        self._store(x, y, value)

    def _store(self, x: int, y: int, value: int):
        self.cells[(x, y)] = value
        if value != SPACE:
            self.bounds.update(x, y)

    def is_defined(self, x: int, y: int) -> bool:
        return (x, y) in self.cells

    def __len__(self) -> int:
        return len(self.cells)

    def min(self) -> Vector:
        return self.bounds.min()

    def max(self) -> Vector:
        return self.bounds.max()

    # -------------------------------------------------------------------
    # Movement
    # -------------------------------------------------------------------

    def next_position(self, position: Vector, delta: Vector) -> Vector:
        """Position after one step of ``delta``, wrapping if it leaves the bounds."""
        nx = position[0] + delta[0]
        ny = position[1] + delta[1]
        if self.bounds.contains(nx, ny):
            return (nx, ny)
        return self.wrap(position, delta)

    def is_last(self, position: Vector, delta: Vector) -> bool:
        """True if one more step of ``delta`` would leave the bounds."""
        return not self.bounds.contains(position[0] + delta[0], position[1] + delta[1])

    def wrap(self, position: Vector, delta: Vector) -> Vector:
        """Lahey-space wrap: where an IP stepping off the bounds reappears.

        Backs up from ``position`` along ``-delta`` as far as the bounds
        allow, so the IP re-enters at the far edge of the line it travels
        on. Undefined cells between that edge and the next command are
        skipped by the IP itself.
        """
        dx, dy = delta
        if dx == 0 and dy == 0:
            return position

        x, y = position
        (x0, y0), (x1, y1) = self.bounds.min(), self.bounds.max()
        steps = []
        if dx:
            steps.append((x - x0) // dx if dx > 0 else (x1 - x) // -dx)
        if dy:
            steps.append((y - y0) // dy if dy > 0 else (y1 - y) // -dy)
        n = max(min(steps), 0)
        return (x - dx * n, y - dy * n)

    # -------------------------------------------------------------------
    # Rendering
    # -------------------------------------------------------------------

    def region_rows(self, x: int, y: int, width: int, height: int) -> list[str]:
        """Text of a rectangular region, one string per row."""
        rows = []
        for j in range(height):
            rows.append("".join(
                cell_char(self.cells.get((x + i, y + j), SPACE))
                for i in range(width)
            ))
        return rows

    def render(self) -> str:
        """The whole bounding box as text, trailing spaces trimmed."""
        (x0, y0), (w, h) = self.bounds.min(), self.bounds.size()
        return "\n".join(row.rstrip(" ") for row in self.region_rows(x0, y0, w, h))
