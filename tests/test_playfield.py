"""Program store: addressing, loading, bounds and rendering windows."""

from __future__ import annotations

import numpy as np
import pytest

from playfield import Position, Program, ProgramLoadError


def test_missing_cell_reads_as_space():
    program = Program()
    assert program.get(Position(0, 0)) == " "
    assert program.get(Position(-5, 1_000_000)) == " "
    assert len(program) == 0


def test_set_overwrites():
    program = Program()
    pos = Position(3, -2)
    program.set(pos, "a")
    program.set(pos, "b")
    assert program.get(pos) == "b"
    assert pos in program
    assert len(program) == 1


def test_set_rejects_multi_character_values():
    with pytest.raises(ValueError):
        Program().set(Position(0, 0), "ab")


def test_rows_grow_downward():
    program = Program.from_text("ab\ncd")
    assert program.get(Position(0, 0)) == "a"
    assert program.get(Position(1, 0)) == "b"
    assert program.get(Position(0, 1)) == "c"
    assert program.get(Position(1, 1)) == "d"


def test_crlf_lines_load_like_lf():
    assert Program.from_text("ab\r\ncd\r\n") == Program.from_text("ab\ncd\n")


def test_round_trip_over_occupied_rectangle():
    text = "v  <\n>12^\n  @ \n"
    program = Program.from_text(text)
    rows = {}
    for pos, ch in program.cells():
        rows.setdefault(pos.y, []).append(ch)
    rebuilt = ["".join(rows[y]) for y in sorted(rows)]
    assert rebuilt == ["v  <", ">12^", "  @ "]


def test_bounds():
    assert Program().bounds() is None
    program = Program.from_text("a\n   b\n c")
    program.set(Position(-2, 5), "z")
    assert program.bounds() == (Position(-2, 0), Position(3, 5))


def test_view_covers_rectangle_in_row_major_order():
    program = Program.from_text("ab\nc")
    cells = list(program.view(Position(0, 0), Position(2, 1)))
    assert [pos for pos, _ in cells] == [
        Position(0, 0), Position(1, 0), Position(2, 0),
        Position(0, 1), Position(1, 1), Position(2, 1),
    ]
    assert "".join(ch for _, ch in cells) == "ab c  "


def test_view_is_restartable_and_reads_live_cells():
    program = Program.from_text("xy")
    window = program.view(Position(0, 0), Position(1, 0))
    assert len(window) == 2
    assert list(window) == list(window)
    program.set(Position(1, 0), "z")
    assert [ch for _, ch in window] == ["x", "z"]


def test_empty_program_has_no_cells():
    assert list(Program().cells()) == []


def test_clone_is_independent():
    program = Program.from_text("ab")
    copy = program.clone()
    copy.set(Position(0, 0), "z")
    assert program.get(Position(0, 0)) == "a"
    assert copy != program


def test_to_array_fills_absent_cells_with_spaces():
    program = Program.from_text("ab\n c")
    grid = program.to_array(Position(0, 0), Position(2, 1))
    assert grid.dtype == np.uint8
    assert grid.shape == (2, 3)
    assert grid.tolist() == [[97, 98, 32], [32, 99, 32]]


def test_render_trims_trailing_spaces():
    program = Program.from_text("v <\n>^  ")
    assert program.render() == "v <\n>^"
    assert Program().render() == ""


def test_from_file_keeps_every_byte_as_one_cell(tmp_path):
    path = tmp_path / "prog.bf"
    path.write_bytes(b"\xe9@\n1")
    program = Program.from_file(str(path))
    assert ord(program.get(Position(0, 0))) == 0xE9
    assert program.get(Position(1, 0)) == "@"
    assert program.get(Position(0, 1)) == "1"


def test_from_file_reports_missing_file(tmp_path):
    with pytest.raises(ProgramLoadError):
        Program.from_file(str(tmp_path / "missing.bf"))


def test_positions_are_ordered_and_hashable():
    assert Position(0, 5) < Position(1, 0)
    assert Position(1, 2).shifted(-1, 1) == Position(0, 3)
    assert len({Position(1, 1), Position(1, 1)}) == 1
