from __future__ import annotations

import io
import sys

from befunge import run_cli
from examples import HELLO_WORLD, example_names, get_example

import pytest


def write_program(tmp_path, text: str) -> str:
    path = tmp_path / "program.bf"
    path.write_text(text, encoding="latin-1")
    return str(path)


def test_run_file(tmp_path, capsys):
    assert run_cli(["run", write_program(tmp_path, HELLO_WORLD)]) == 0
    assert capsys.readouterr().out == "Hello, World!\n"


def test_run_bundled_example(capsys):
    assert run_cli(["run", "-e", "eratosthenes"]) == 0
    assert capsys.readouterr().out == "2357111317192329313741434753596167717379"


def test_run_reads_stdin(monkeypatch, capsys):
    monkeypatch.setattr(sys, "stdin", io.TextIOWrapper(io.BytesIO(b"5")))
    assert run_cli(["run", "-e", "factorial"]) == 0
    assert capsys.readouterr().out == "120"


def test_show_prints_program_first(tmp_path, capsys):
    assert run_cli(["run", "--show", write_program(tmp_path, "1.@")]) == 0
    assert capsys.readouterr().out == "1.@\n1"


def test_runtime_error_prints_traceback(tmp_path, capsys):
    assert run_cli(["run", write_program(tmp_path, "12z")]) == 1
    captured = capsys.readouterr()
    assert "Step 2, at (2, 0), executing 'z'" in captured.err
    assert "UnrecognizedInstruction" in captured.err


def test_traceback_json(tmp_path, capsys):
    assert run_cli(["run", "--traceback-json", write_program(tmp_path, "10/@")]) == 1
    assert '"type": "ArithmeticByZero"' in capsys.readouterr().err


def test_missing_file(tmp_path, capsys):
    assert run_cli(["run", str(tmp_path / "nope.bf")]) == 1
    assert "LoadError" in capsys.readouterr().err


def test_time_reports_throughput(tmp_path, capsys):
    assert run_cli(["run", "--time", write_program(tmp_path, "123@")]) == 0
    assert "Executed 4 instructions in" in capsys.readouterr().err


def test_trace_goes_to_stderr(tmp_path, capsys):
    assert run_cli(["run", "--trace", write_program(tmp_path, "1.@")]) == 0
    captured = capsys.readouterr()
    assert captured.out == "1"
    assert len(captured.err.splitlines()) == 3


def test_ide_rejects_input_outside_latin1(capsys):
    assert run_cli(["ide", "-e", "input", "--input", "€5"]) == 1
    assert "InputError" in capsys.readouterr().err


def test_examples_lists_catalog(capsys):
    assert run_cli(["examples"]) == 0
    assert capsys.readouterr().out.split() == example_names()


def test_unknown_example_name():
    with pytest.raises(KeyError):
        get_example("dna")
