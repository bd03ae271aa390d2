import json

import pytest

from regsim.cli import (
    EXIT_COMPILE_ERROR,
    EXIT_EXECUTION_ERROR,
    EXIT_OK,
    EXIT_READ_ERROR,
    EXIT_STEP_LIMIT,
    main,
)
from regsim.cheatsheet import cheat_sheet_manager


def test_run_prints_final_snapshot(write_source, capsys):
    path = write_source("main.asm", "load #10\nstore 1\nadd #5\nend\n")
    assert main(["run", str(path)]) == EXIT_OK
    out = capsys.readouterr().out.strip().splitlines()
    assert len(out) == 1
    assert out[0].startswith(f"{path}:4")
    assert "acc=15" in out[0]
    assert "r1=10" in out[0]


def test_run_trace_as_json(write_source, capsys):
    path = write_source("main.asm", "load #10\nstore 1\nadd #5\nend\n")
    assert main(["run", str(path), "--trace", "--json"]) == EXIT_OK
    records = [json.loads(line) for line in capsys.readouterr().out.strip().splitlines()]
    assert [r["line"] for r in records] == [0, 1, 2, 3]
    assert records[-1]["accumulator"] == 15
    assert records[-1]["registers"] == [10]


def test_run_with_seeded_memory(write_source, capsys):
    path = write_source("main.asm", "load 2\nmul 1\nend\n")
    assert main(["run", str(path), "--memory", "6,7", "--json"]) == EXIT_OK
    assert json.loads(capsys.readouterr().out)["accumulator"] == 42


def test_compile_error_exit_code(write_source, capsys):
    path = write_source("main.asm", "load 1\nstore #2\nend\n")
    assert main(["run", str(path)]) == EXIT_COMPILE_ERROR
    assert f"{path}:2: " in capsys.readouterr().err


def test_missing_source_exit_code(tmp_path, capsys):
    assert main(["check", str(tmp_path / "nope.asm")]) == EXIT_READ_ERROR
    assert "nope.asm" in capsys.readouterr().err


def test_execution_error_exit_code(write_source, capsys):
    path = write_source("main.asm", "load #1\ndiv #0\nend\n")
    assert main(["run", str(path)]) == EXIT_EXECUTION_ERROR
    assert "Division by zero" in capsys.readouterr().err


def test_step_limit_exit_code(write_source, capsys):
    path = write_source("loop.asm", "top: add #1\ngoto top\n")
    assert main(["run", str(path), "--max-steps", "20"]) == EXIT_STEP_LIMIT
    captured = capsys.readouterr()
    assert "step limit of 20 reached" in captured.err
    assert "acc=10" in captured.out


def test_check_only_compiles(write_source, capsys):
    path = write_source("main.asm", "start:\nload #1\nend\n")
    assert main(["check", str(path)]) == EXIT_OK
    assert capsys.readouterr().out.strip() == "OK: 3 line(s)"


def test_sheet_option_restricts_program(write_source, capsys):
    bundled = {path.name: path for path in cheat_sheet_manager.list_bundled()}
    path = write_source("main.asm", "load *1\nend\n")
    status = main(["check", str(path), "--sheet", str(bundled["direct_addressing.json"])])
    assert status == EXIT_COMPILE_ERROR
    assert "does not support operands ptr" in capsys.readouterr().err


def test_bad_memory_argument_is_rejected(write_source):
    path = write_source("main.asm", "end\n")
    with pytest.raises(SystemExit):
        main(["run", str(path), "--memory", "1,x"])
