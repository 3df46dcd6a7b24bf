"""FungeHost, ProgramRunner, the loader and the devices."""

from __future__ import annotations

import io

import pytest

from funge import loader
from funge.config import Config, ExecAction, FileView
from funge.devices import EOF, FileBridge, TextIO
from funge.host import FungeHost
from funge.runner import ProgramRunner

COUNTER = ">987v>.v\nv456<  :\n>321 ^ _@\n"


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def test_load_utf8_source():
    space = loader.load("é@".encode("utf-8"))
    assert space.get(0, 0) == ord("é")


def test_load_strips_byte_order_mark():
    space = loader.load(b"\xef\xbb\xbf1.@")
    assert space.get(0, 0) == ord("1")


def test_load_falls_back_to_latin1():
    space = loader.load(b"\xff@")
    assert space.get(0, 0) == 0xFF


def test_load_missing_file(tmp_path):
    with pytest.raises(loader.ProgramLoadError):
        loader.load_file(tmp_path / "nope.b98")


def test_load_file(tmp_path):
    path = tmp_path / "prog.b98"
    path.write_bytes(b"12\n3")
    space = loader.load_file(path)
    assert space.get(0, 1) == ord("3")


# ---------------------------------------------------------------------------
# Host
# ---------------------------------------------------------------------------

def test_host_run_returns_result_dict():
    result = FungeHost().run(COUNTER)
    assert result["ok"]
    assert result["exit_code"] == 0
    assert result["output"] == "1 2 3 4 5 6 7 8 9 "
    assert result["stats"]["ticks"] == 69


def test_host_reads_input_text():
    result = FungeHost().run("&.@", "42\n")
    assert result["output"] == "42 "


def test_host_with_real_streams():
    out = io.StringIO()
    host = FungeHost(stdin=io.StringIO("z"), stdout=out)
    result = host.run("~,@")
    assert out.getvalue() == "z"
    assert result["output"] == "z"


def test_host_budget_is_not_ok():
    result = FungeHost(Config(max_ticks=20)).run(">")
    assert not result["ok"]
    assert result["exit_code"] == 1


def test_host_run_file(tmp_path):
    path = tmp_path / "hello.b98"
    path.write_text('"olleH",,,,,@')
    result = FungeHost().run_file(path)
    assert result["output"] == "Hello"


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

def test_runner_steps_one_tick_at_a_time():
    runner = ProgramRunner()
    runner.load_source(COUNTER)
    records = runner.run_ticks(3)
    assert [chr(r.command) for r in records] == [">", "9", "8"]
    assert runner.running
    assert runner.output == ""


def test_runner_runs_to_completion():
    runner = ProgramRunner()
    runner.load_source(COUNTER)
    assert runner.run() == 0
    assert runner.phase == "done"
    assert runner.output == "1 2 3 4 5 6 7 8 9 "
    assert len(runner.trace) == 69
    assert not runner.tick()


def test_runner_records_per_ip():
    runner = ProgramRunner()
    runner.load_source("t'A02p'A12p@@p21B'p30B'")
    runner.run()
    assert len(runner.records_for(0)) == 10
    assert len(runner.records_for(1)) == 9


def test_runner_forwards_to_user_hook():
    seen = []
    runner = ProgramRunner(Config(trace_hook=seen.append))
    runner.load_source("1.@")
    runner.run()
    assert len(seen) == 3
    assert seen == runner.trace


def test_runner_load_file(tmp_path):
    path = tmp_path / "p.b98"
    path.write_text("5.@")
    runner = ProgramRunner()
    runner.load_file(path, input_text="")
    runner.run()
    assert runner.output == "5 "


def test_runner_idle_before_load():
    runner = ProgramRunner()
    assert not runner.tick()
    assert runner.exit_code is None
    assert runner.output == ""


# ---------------------------------------------------------------------------
# Devices
# ---------------------------------------------------------------------------

def test_text_io_reads_lines_lazily():
    tio = TextIO(io.StringIO("ab\n7 8\n"), io.StringIO())
    assert tio.read_char() == ord("a")
    assert tio.read_char() == ord("b")
    assert tio.read_char() == ord("\n")
    assert tio.read_integer() == 7
    assert tio.read_integer() == 8
    assert tio.read_char() == ord("\n")
    assert tio.read_char() == EOF
    assert tio.read_integer() == EOF


def test_text_io_rejects_surrogates():
    tio = TextIO(io.StringIO(""), io.StringIO())
    with pytest.raises(ValueError):
        tio.write_char(0xD800)


def test_file_bridge_round_trip(tmp_path):
    bridge = FileBridge()
    path = tmp_path / "f.bin"
    bridge.write_file(str(path), b"hello")
    bridge.write_file(str(path), b"J", offset=0)
    assert bridge.read_file(str(path)) == b"J"
    bridge.write_file(str(path), b"ey", offset=1)
    assert path.read_bytes() == b"Jey"


def test_file_bridge_denies():
    bridge = FileBridge(FileView.DENY, ExecAction.DENY)
    with pytest.raises(PermissionError):
        bridge.read_file("anything")
    with pytest.raises(PermissionError):
        bridge.write_file("anything", b"")
    with pytest.raises(PermissionError):
        bridge.execute_command("true")
