"""
Instruction semantics, exercised through small programs and single commands.
"""

from __future__ import annotations

import io
import os

import pytest

from funge.config import Config, ExecAction, FileView
from funge.devices import SystemInfo, TextIO
from funge.host import FungeHost
from funge.instructions import FAILURE_STATUS, divide, execute, remainder
from funge.machine import FungeMachine
from funge.space import EAST, NORTH, SOUTH, WEST, ProgramSpace


def run(source: str, stdin: str = "", **config) -> dict:
    return FungeHost(Config(**config)).run(source, stdin)


def output(source: str, stdin: str = "", **config) -> str:
    return run(source, stdin, **config)["output"]


def make(source: str = "", **config):
    """A machine over ``source`` and its first IP, for single-command tests."""
    cfg = Config(**config)
    m = FungeMachine(ProgramSpace.from_text(source), config=cfg,
                     io=TextIO(io.StringIO(""), io.StringIO()))
    return m, m.ips[0]


def do(m, ip, commands: str):
    for ch in commands:
        execute(ip, m, ord(ch))


def push_name(ip, name: str):
    """Push a fingerprint name the way ``"EMAN"4`` would."""
    for ch in reversed(name):
        ip.push(ord(ch))
    ip.push(len(name))


# ---------------------------------------------------------------------------
# Arithmetic
# ---------------------------------------------------------------------------

def test_digits_and_hex_literals():
    m, ip = make()
    do(m, ip, "09af")
    assert ip.stacks.toss.cells == [0, 9, 10, 15]


@pytest.mark.parametrize("source,expected", [
    ("34+.@", "7 "),
    ("63-.@", "3 "),
    ("67*.@", "42 "),
    ("72/.@", "3 "),
    ("72%.@", "1 "),
    ("07-2/.@", "-3 "),
    ("07-2%.@", "-1 "),
    ("50/.@", "0 "),
    ("50%.@", "0 "),
    ("32`.@", "1 "),
    ("23`.@", "0 "),
    ("0!.@", "1 "),
    ("5!.@", "0 "),
])
def test_arithmetic(source, expected):
    assert output(source) == expected


def test_truncating_division_helpers():
    assert divide(-7, 2) == -3
    assert divide(7, -2) == -3
    assert remainder(-7, 2) == -1
    assert remainder(7, -2) == 1
    assert divide(1, 0) == 0
    assert remainder(1, 0) == 0


def test_arithmetic_wraps_to_32_bits():
    m, ip = make()
    ip.push(2**31 - 1)
    ip.push(1)
    do(m, ip, "+")
    assert ip.pop() == -(2**31)


# ---------------------------------------------------------------------------
# Stack manipulation
# ---------------------------------------------------------------------------

def test_duplicate_swap_discard_clear():
    m, ip = make()
    do(m, ip, "12\\")
    assert ip.stacks.toss.cells == [2, 1]
    do(m, ip, ":")
    assert ip.stacks.toss.cells == [2, 1, 1]
    do(m, ip, "$")
    assert ip.stacks.toss.cells == [2, 1]
    do(m, ip, "n")
    assert ip.stacks.toss.cells == []


def test_duplicate_on_empty_stack_pushes_two_zeros():
    m, ip = make()
    do(m, ip, ":")
    assert ip.stacks.toss.cells == [0, 0]


def test_block_round_trip_program():
    assert output("1233{3}...@") == "3 2 1 "


@pytest.mark.parametrize("source,expected", [
    ("120{0}..@", "2 1 "),
    ("13{3}...@", "1 0 0 "),
    ("1203-{03-}..@", "2 1 "),
])
def test_block_round_trip_program_counts(source, expected):
    result = run(source)
    assert result["output"] == expected
    assert result["exit_code"] == 0


def test_begin_block_sets_storage_offset():
    # The offset becomes the cell after ``{``, so ``00g`` reads that cell.
    assert output("0{00g,@") == "0"


def test_end_block_without_block_reflects():
    m, ip = make()
    do(m, ip, "}")
    assert ip.delta == WEST


def test_under_without_block_reflects():
    m, ip = make()
    do(m, ip, "u")
    assert ip.delta == WEST


def test_under_moves_cells_between_stacks():
    m, ip = make()
    do(m, ip, "1230{")
    ip.stacks.soss.discard(2)
    do(m, ip, "2u")
    assert ip.stacks.toss.cells == [3, 2]
    assert ip.stacks.soss.cells == [1]


# ---------------------------------------------------------------------------
# Direction and flow
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("command,delta", [
    (">", EAST), ("<", WEST), ("^", NORTH), ("v", SOUTH),
])
def test_direction_commands(command, delta):
    m, ip = make()
    do(m, ip, command)
    assert ip.delta == delta


def test_turns():
    m, ip = make()
    do(m, ip, "[")
    assert ip.delta == NORTH
    do(m, ip, "]]")
    assert ip.delta == SOUTH


def test_compare():
    m, ip = make()
    do(m, ip, "12w")
    assert ip.delta == NORTH
    m, ip = make()
    do(m, ip, "21w")
    assert ip.delta == SOUTH
    m, ip = make()
    do(m, ip, "22w")
    assert ip.delta == EAST


def test_absolute_delta():
    m, ip = make()
    do(m, ip, "23x")
    assert ip.delta == (2, 3)


def test_conditionals():
    m, ip = make()
    do(m, ip, "1_")
    assert ip.delta == WEST
    do(m, ip, "0_")
    assert ip.delta == EAST
    do(m, ip, "1|")
    assert ip.delta == NORTH
    do(m, ip, "0|")
    assert ip.delta == SOUTH


def test_go_away_is_reproducible_with_a_seed():
    def directions(seed):
        m, ip = make(seed=seed)
        seen = []
        for _ in range(20):
            do(m, ip, "?")
            seen.append(ip.delta)
        return seen

    assert directions(7) == directions(7)
    assert set(directions(7)) <= {EAST, WEST, NORTH, SOUTH}


def test_unknown_command_reflects():
    m, ip = make()
    do(m, ip, "H")
    assert ip.delta == WEST
    m, ip = make()
    do(m, ip, "\x01")
    assert ip.delta == WEST


def test_program_wraps_around_the_row():
    assert output("<@.1") == "1 "


def test_trampoline():
    assert output("#@1.@") == "1 "


def test_jump_forward():
    assert output("1j57.@") == "7 "
    assert output("2j12.@") == "0 "


def test_iterate_repeats_the_next_command():
    assert output("3k1++.@") == "3 "


def test_iterate_zero_skips_the_next_command():
    assert output("20k1.@") == "2 "


def test_semicolons_skip_code():
    assert output("1;2.@;.@") == "1 "


def test_string_mode_collapses_runs_of_spaces():
    assert output('"a   b",,,@') == "b a"


def test_fetch_character():
    assert output("'A,@") == "A"


def test_store_character():
    machine = FungeHost().load("7'@s1.@")
    machine.run()
    assert machine.io.output.getvalue() == "7 "
    assert machine.space.get(4, 0) == ord("@")


def test_put_and_get():
    assert output("'X05p05g,@") == "X"


def test_quit_sets_exit_code():
    result = run("7q")
    assert result["exit_code"] == 7


def test_stop_with_no_ips_left_exits_zero():
    result = run("@")
    assert result["ok"]
    assert result["exit_code"] == 0


# ---------------------------------------------------------------------------
# Standard I/O
# ---------------------------------------------------------------------------

def test_hello_world():
    assert output('a"!dlroW olleH">:#,_@') == "Hello World!\n"


def test_input_integer_leaves_rest_of_line():
    assert output("&&+.@", "3 4\n") == "7 "
    assert output("&~,@", "12x\n") == "x"


def test_input_negative_integer():
    assert output("&.@", "-15\n") == "-15 "


def test_input_at_end_of_file():
    assert output("~.@") == "-1 "
    assert output("&.@") == "-1 "


def test_input_characters():
    assert output("~~,,@", "ab") == "ba"


def test_output_invalid_character_reflects():
    m, ip = make()
    ip.push(-1)
    do(m, ip, ",")
    assert ip.delta == WEST


# ---------------------------------------------------------------------------
# Files and commands
# ---------------------------------------------------------------------------

def test_output_file(tmp_path):
    path = tmp_path / "out.txt"
    m, ip = make("ab  \ncd\n   ")
    ip.push_vector((4, 3))
    ip.push_vector((0, 0))
    ip.push(1)
    ip.stacks.push_string(str(path))
    do(m, ip, "o")
    assert path.read_text() == "ab\ncd\n"
    assert len(ip.stacks.toss) == 0


def test_input_file(tmp_path):
    path = tmp_path / "in.txt"
    path.write_text("xy\nz\n")
    m, ip = make()
    ip.push_vector((5, 5))
    ip.push(0)
    ip.stacks.push_string(str(path))
    do(m, ip, "i")
    assert ip.pop_vector() == (5, 5)
    assert ip.pop_vector() == (2, 2)
    assert m.space.get(5, 5) == ord("x")
    assert m.space.get(6, 5) == ord("y")
    assert m.space.get(5, 6) == ord("z")


def test_input_file_binary_mode(tmp_path):
    path = tmp_path / "in.bin"
    path.write_bytes(b"a\nb")
    m, ip = make()
    ip.push_vector((0, 1))
    ip.push(1)
    ip.stacks.push_string(str(path))
    do(m, ip, "i")
    assert ip.pop_vector() == (0, 1)
    assert ip.pop_vector() == (3, 1)
    assert m.space.get(1, 1) == ord("\n")


def test_input_missing_file_pushes_failure(tmp_path):
    m, ip = make()
    ip.push_vector((0, 0))
    ip.push(0)
    ip.stacks.push_string(str(tmp_path / "missing.txt"))
    do(m, ip, "i")
    assert ip.pop() == FAILURE_STATUS


def test_file_access_denied(tmp_path):
    path = tmp_path / "in.txt"
    path.write_text("x")
    m, ip = make(file_view=FileView.DENY)
    ip.push_vector((0, 0))
    ip.push(0)
    ip.stacks.push_string(str(path))
    do(m, ip, "i")
    assert ip.pop() == FAILURE_STATUS


def test_execute_denied():
    m, ip = make(exec_action=ExecAction.DENY)
    ip.stacks.push_string("true")
    do(m, ip, "=")
    assert ip.pop() == FAILURE_STATUS


@pytest.mark.skipif(os.name == "nt", reason="POSIX shell syntax")
def test_execute_returns_exit_status():
    m, ip = make()
    ip.stacks.push_string("exit 3")
    do(m, ip, "=")
    assert ip.pop() == 3


# ---------------------------------------------------------------------------
# System information
# ---------------------------------------------------------------------------

def test_system_info_first_cells():
    m, ip = make()
    ip.push(0)
    do(m, ip, "y")
    assert ip.pop() == m.sysinfo.flags()
    assert ip.pop() == SystemInfo.CELL_SIZE
    assert ip.pop() == SystemInfo.HANDPRINT
    assert ip.pop() == m.sysinfo.version()
    assert ip.pop() == m.sysinfo.paradigm()
    assert ip.pop() == ord(os.sep)
    assert ip.pop() == 2
    assert ip.pop() == ip.id
    assert ip.pop() == 0


def test_system_info_pick_leaves_one_cell():
    m, ip = make()
    ip.push(99)
    ip.push(2)
    do(m, ip, "y")
    assert ip.stacks.toss.cells == [99, SystemInfo.CELL_SIZE]


def test_system_info_flags_follow_config():
    m, ip = make(file_view=FileView.DENY, exec_action=ExecAction.DENY)
    assert m.sysinfo.flags() == SystemInfo.FLAG_CONCURRENT
    assert m.sysinfo.paradigm() == SystemInfo.PARADIGM_NONE


def test_system_info_reports_args():
    m, ip = make(args=["prog.b98", "one"])
    ip.push(0)
    do(m, ip, "y")
    cells = ip.stacks.toss.cells
    text = "".join(chr(c) if c else "|" for c in cells if 0 <= c < 0x110000)
    assert "|eno|89b.gorp" in text


# ---------------------------------------------------------------------------
# Fingerprints
# ---------------------------------------------------------------------------

def test_fingerprint_letters_reflect_when_unloaded():
    m, ip = make()
    do(m, ip, "A")
    assert ip.delta == WEST


def test_load_unknown_fingerprint_reflects():
    m, ip = make()
    push_name(ip, "ZZZZ")
    do(m, ip, "(")
    assert ip.delta == WEST


def test_load_fingerprint_pushes_code_and_success():
    m, ip = make()
    push_name(ip, "BOOL")
    do(m, ip, "(")
    assert ip.pop() == 1
    assert ip.pop() == 0x424F4F4C


def test_bool_program():
    assert output('"LOOB"4($$63A.@') == "2 "


def test_roma_program():
    assert output('"AMOR"4($$MD+.@') == "1500 "
