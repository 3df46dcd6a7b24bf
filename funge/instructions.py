"""
Instruction semantics — what each Funge-98 command does to an IP.

Handlers are registered by character in COMMANDS and called as
``handler(ip, machine)``. They act on the IP's state, program space and
the machine's devices; movement to the next cell is left to ``step``.
Anything that has no handler reflects the IP.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from .space import CARDINALS, EAST, NORTH, QUOTE, SOUTH, SPACE, WEST, cell_char
from .stacks import to_cell

if TYPE_CHECKING:
    from .ip import InstructionPointer
    from .machine import FungeMachine

logger = logging.getLogger(__name__)

Handler = Callable[["InstructionPointer", "FungeMachine"], None]

COMMANDS: dict[int, Handler] = {}

# Status pushed when a device operation fails.
FAILURE_STATUS = -1

# Commands that give the same result however often ``k`` repeats them.
IDEMPOTENT = frozenset(map(ord, "<>^v_|?rnz@q[]"))


def instruction(chars: str):
    """Register the decorated handler for each character in ``chars``."""
    def register(fn: Handler) -> Handler:
        for ch in chars:
            COMMANDS[ord(ch)] = fn
        return fn
    return register


def execute(ip: InstructionPointer, m: FungeMachine, command: int):
    """Run a single command for ``ip``; the IP does not move on."""
    handler = COMMANDS.get(command)
    if handler is None:
        ip.reflect()
    else:
        handler(ip, m)


def step(ip: InstructionPointer, m: FungeMachine) -> int:
    """Execute the cell under ``ip`` and advance it. Returns the cell value."""
    space = m.space
    value = space.get(*ip.position)
    if ip.string_mode:
        if value == QUOTE:
            ip.string_mode = False
        else:
            ip.push(value)
        ip.advance(space, collapse=value == SPACE)
    else:
        execute(ip, m, value)
        if ip.alive:
            ip.advance(space)
    return value


# ---------------------------------------------------------------------------
# Arithmetic helpers (truncating, as on a 32-bit machine)
# ---------------------------------------------------------------------------

def divide(a: int, b: int) -> int:
    """Quotient rounded toward zero; dividing by zero gives 0."""
    if b == 0:
        return 0
    q = abs(a) // abs(b)
    return to_cell(q if (a < 0) == (b < 0) else -q)


def remainder(a: int, b: int) -> int:
    """Remainder with the sign of ``a``; modulo zero gives 0."""
    if b == 0:
        return 0
    return to_cell(a - b * divide(a, b))


# ---------------------------------------------------------------------------
# Literals and arithmetic
# ---------------------------------------------------------------------------

def _literal(value: int) -> Handler:
    def push_literal(ip, m):
        ip.push(value)
    return push_literal


for _i, _ch in enumerate("0123456789abcdef"):
    COMMANDS[ord(_ch)] = _literal(_i)


def _binary(op: Callable[[int, int], int]) -> Handler:
    def apply(ip, m):
        b = ip.pop()
        a = ip.pop()
        ip.push(op(a, b))
    return apply


COMMANDS[ord("+")] = _binary(lambda a, b: to_cell(a + b))
COMMANDS[ord("-")] = _binary(lambda a, b: to_cell(a - b))
COMMANDS[ord("*")] = _binary(lambda a, b: to_cell(a * b))
COMMANDS[ord("/")] = _binary(divide)
COMMANDS[ord("%")] = _binary(remainder)
COMMANDS[ord("`")] = _binary(lambda a, b: int(a > b))


@instruction("!")
def logical_not(ip, m):
    ip.push(int(ip.pop() == 0))


# ---------------------------------------------------------------------------
# Stack manipulation
# ---------------------------------------------------------------------------

@instruction(":")
def duplicate(ip, m):
    value = ip.pop()
    ip.push(value)
    ip.push(value)


@instruction("$")
def discard(ip, m):
    ip.pop()


@instruction("\\")
def swap(ip, m):
    b = ip.pop()
    a = ip.pop()
    ip.push(b)
    ip.push(a)


@instruction("n")
def clear_stack(ip, m):
    ip.stacks.clear()


@instruction("{")
def begin_block(ip, m):
    n = ip.pop()
    ip.stacks.begin_block(n, ip.storage)
    ip.storage = (ip.position[0] + ip.delta[0], ip.position[1] + ip.delta[1])


@instruction("}")
def end_block(ip, m):
    if ip.stacks.single():
        ip.reflect()
        return
    n = ip.pop()
    ip.storage = ip.stacks.end_block(n)


@instruction("u")
def stack_under_stack(ip, m):
    if ip.stacks.single():
        ip.reflect()
        return
    ip.stacks.under(ip.pop())


# ---------------------------------------------------------------------------
# Direction
# ---------------------------------------------------------------------------

def _go(delta) -> Handler:
    def go(ip, m):
        ip.delta = delta
    return go


COMMANDS[ord(">")] = _go(EAST)
COMMANDS[ord("<")] = _go(WEST)
COMMANDS[ord("^")] = _go(NORTH)
COMMANDS[ord("v")] = _go(SOUTH)


@instruction("?")
def go_away(ip, m):
    ip.delta = m.rng.choice(CARDINALS)


@instruction("_")
def east_west_if(ip, m):
    ip.delta = EAST if ip.pop() == 0 else WEST


@instruction("|")
def north_south_if(ip, m):
    ip.delta = SOUTH if ip.pop() == 0 else NORTH


@instruction("[")
def turn_left(ip, m):
    ip.turn_left()


@instruction("]")
def turn_right(ip, m):
    ip.turn_right()


@instruction("w")
def compare(ip, m):
    b = ip.pop()
    a = ip.pop()
    if a < b:
        ip.turn_left()
    elif a > b:
        ip.turn_right()


@instruction("r")
def reflect(ip, m):
    ip.reflect()


@instruction("x")
def absolute_delta(ip, m):
    ip.delta = ip.pop_vector()


# ---------------------------------------------------------------------------
# Flow control
# ---------------------------------------------------------------------------

@instruction("#")
def trampoline(ip, m):
    ip.step(m.space)


@instruction("j")
def jump_forward(ip, m):
    n = ip.pop()
    if n:
        dx, dy = ip.delta
        ip.position = m.space.next_position(ip.position, (dx * n, dy * n))


@instruction("k")
def iterate(ip, m):
    n = ip.pop()
    target, command = ip.peek_command(m.space)
    if n == 0:
        ip.position = target
        return
    if n < 0:
        return
    if command in IDEMPOTENT:
        n = 1
    position, delta = ip.position, ip.delta
    for _ in range(n):
        execute(ip, m, command)
        if not ip.alive or m.exit_code is not None:
            return
    if ip.position == position and ip.delta == delta:
        ip.position = target


@instruction("z")
def no_operation(ip, m):
    pass


@instruction("@")
def stop(ip, m):
    m.retire(ip)


@instruction("q")
def quit_program(ip, m):
    m.halt(ip.pop())


@instruction("t")
def split(ip, m):
    m.split(ip)


# ---------------------------------------------------------------------------
# Strings and self-modification
# ---------------------------------------------------------------------------

@instruction('"')
def string_mode(ip, m):
    ip.string_mode = True


@instruction("'")
def fetch_character(ip, m):
    ip.position = m.space.next_position(ip.position, ip.delta)
    ip.push(m.space.get(*ip.position))


@instruction("s")
def store_character(ip, m):
    ip.position = m.space.next_position(ip.position, ip.delta)
    m.space.put(*ip.position, ip.pop())


@instruction("g")
def get_cell(ip, m):
    x, y = ip.offset(ip.pop_vector())
    ip.push(m.space.get(x, y))


@instruction("p")
def put_cell(ip, m):
    x, y = ip.offset(ip.pop_vector())
    m.space.put(x, y, ip.pop())


# ---------------------------------------------------------------------------
# Standard I/O
# ---------------------------------------------------------------------------

@instruction(",")
def output_character(ip, m):
    value = ip.pop()
    try:
        m.io.write_char(value)
    except ValueError:
        ip.reflect()
    except OSError as e:
        logger.warning("IP %d: output failed: %s", ip.id, e)
        ip.reflect()


@instruction(".")
def output_integer(ip, m):
    value = ip.pop()
    try:
        m.io.write_integer(value)
    except OSError as e:
        logger.warning("IP %d: output failed: %s", ip.id, e)
        ip.reflect()


@instruction("~")
def input_character(ip, m):
    try:
        ip.push(m.io.read_char())
    except OSError as e:
        logger.warning("IP %d: input failed: %s", ip.id, e)
        ip.push(FAILURE_STATUS)


@instruction("&")
def input_integer(ip, m):
    try:
        ip.push(to_cell(m.io.read_integer()))
    except OSError as e:
        logger.warning("IP %d: input failed: %s", ip.id, e)
        ip.push(FAILURE_STATUS)


# ---------------------------------------------------------------------------
# Files and commands
# ---------------------------------------------------------------------------

BINARY_INPUT = 0x1   # ``i`` flag: no line handling, every byte is a cell
TEXT_OUTPUT = 0x1    # ``o`` flag: trim trailing spaces and blank lines


def decode_text(data: bytes) -> str:
    """UTF-8 where possible, otherwise one character per byte."""
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def place_text(space, text: str, origin, binary: bool):
    """Write file text into space at ``origin``. Returns its size (w, h).

    Spaces in the text are transparent: cells under them keep their value.
    """
    ox, oy = origin
    if binary:
        for i, ch in enumerate(text):
            if ch != " ":
                space.put(ox + i, oy, ord(ch))
        return (len(text), 1 if text else 0)

    text = text.replace("\r\n", "\n").replace("\r", "\n")
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    for y, line in enumerate(lines):
        for x, ch in enumerate(line):
            if ch != " ":
                space.put(ox + x, oy + y, ord(ch))
    width = max((len(line) for line in lines), default=0)
    return (width, len(lines))


@instruction("i")
def input_file(ip, m):
    name = ip.stacks.pop_string()
    flags = ip.pop()
    origin = ip.offset(ip.pop_vector())
    if name is None:
        ip.push(FAILURE_STATUS)
        return
    try:
        data = m.files.read_file(name)
    except OSError as e:
        logger.warning("IP %d: cannot read %s: %s", ip.id, name, e)
        ip.push(FAILURE_STATUS)
        return
    binary = bool(flags & BINARY_INPUT)
    text = data.decode("latin-1") if binary else decode_text(data)
    size = place_text(m.space, text, origin, binary)
    ip.push_vector(size)
    ip.push_vector(origin)


@instruction("o")
def output_file(ip, m):
    name = ip.stacks.pop_string()
    flags = ip.pop()
    x, y = ip.offset(ip.pop_vector())
    width, height = ip.pop_vector()
    if name is None or width < 0 or height < 0:
        ip.push(FAILURE_STATUS)
        return
    rows = m.space.region_rows(x, y, width, height)
    if flags & TEXT_OUTPUT:
        rows = [row.rstrip(" ") for row in rows]
        while rows and not rows[-1]:
            rows.pop()
    data = "".join(row + "\n" for row in rows).encode("utf-8", "replace")
    try:
        m.files.write_file(name, data)
    except OSError as e:
        logger.warning("IP %d: cannot write %s: %s", ip.id, name, e)
        ip.push(FAILURE_STATUS)


@instruction("=")
def execute_command(ip, m):
    command = ip.stacks.pop_string()
    if command is None:
        ip.push(FAILURE_STATUS)
        return
    try:
        ip.push(to_cell(m.files.execute_command(command)))
    except OSError as e:
        logger.warning("IP %d: cannot execute %r: %s", ip.id, command, e)
        ip.push(FAILURE_STATUS)


# ---------------------------------------------------------------------------
# System information
# ---------------------------------------------------------------------------

def push_system_info(ip, m) -> int:
    """Push the ``y`` report, cell 1 ending on top. Returns cells pushed."""
    info = m.sysinfo
    stacks = ip.stacks
    before = len(stacks.toss)

    # 20. environment, each "KEY=VALUE" as a 0gnirts, then an extra 0
    stacks.push(0)
    for key, value in sorted(info.environment().items(), reverse=True):
        stacks.push_string(f"{key}={value}")
    # 19. arguments, ended by two zeros
    stacks.push(0)
    stacks.push(0)
    for arg in reversed(info.args()):
        stacks.push_string(arg)
    # 18. size of each stack, listed from TOSS; 17. number of stacks
    sizes = stacks.sizes()
    sizes[0] = before
    for size in reversed(sizes):
        stacks.push(size)
    stacks.push(len(sizes))
    # 16. time, 15. date
    stacks.push(info.time())
    stacks.push(info.date())
    # 14. greatest point relative to least, 13. least point
    (x0, y0), (x1, y1) = m.space.min(), m.space.max()
    stacks.push_vector((x1 - x0, y1 - y0))
    stacks.push_vector((x0, y0))
    # 12. storage offset, 11. delta, 10. position
    stacks.push_vector(ip.storage)
    stacks.push_vector(ip.delta)
    stacks.push_vector(ip.position)
    # 9. team number, 8. IP id
    stacks.push(0)
    stacks.push(ip.id)
    # 7. dimensions, 6. path separator, 5. operating paradigm
    stacks.push(info.DIMENSIONS)
    stacks.push(info.path_separator())
    stacks.push(info.paradigm())
    # 4. version, 3. handprint, 2. bytes per cell, 1. flags
    stacks.push(info.version())
    stacks.push(info.HANDPRINT)
    stacks.push(info.CELL_SIZE)
    stacks.push(info.flags())
    return len(stacks.toss) - before


@instruction("y")
def system_info(ip, m):
    n = ip.pop()
    count = push_system_info(ip, m)
    if n > 0:
        value = ip.stacks.nth(n)
        ip.stacks.toss.discard(count)
        ip.push(value)


# ---------------------------------------------------------------------------
# Fingerprints
# ---------------------------------------------------------------------------

def _fingerprint_code(ip) -> int | None:
    count = ip.pop()
    if count <= 0:
        return None
    code = 0
    for _ in range(count):
        code = ((code << 8) + ip.pop()) & 0xFFFFFFFF
    return code


@instruction("(")
def load_semantics(ip, m):
    code = _fingerprint_code(ip)
    fingerprint = m.fingerprints.get(code) if code is not None else None
    if fingerprint is None:
        ip.reflect()
        return
    fingerprint.load(ip)
    logger.debug("IP %d loaded fingerprint %s", ip.id, fingerprint.name)
    ip.push(code)
    ip.push(1)


@instruction(")")
def unload_semantics(ip, m):
    code = _fingerprint_code(ip)
    fingerprint = m.fingerprints.get(code) if code is not None else None
    if fingerprint is None:
        ip.reflect()
        return
    fingerprint.unload(ip)
    logger.debug("IP %d unloaded fingerprint %s", ip.id, fingerprint.name)


def _semantic(letter: str) -> Handler:
    def run_semantic(ip, m):
        handlers = ip.semantics.get(letter)
        if handlers:
            handlers[-1](ip, m)
        else:
            ip.reflect()
    return run_semantic


for _ch in "ABCDEFGHIJKLMNOPQRSTUVWXYZ":
    COMMANDS[ord(_ch)] = _semantic(_ch)


def describe(command: int) -> str:
    """Printable form of a command for traces."""
    return cell_char(command) if command != SPACE else "' '"
