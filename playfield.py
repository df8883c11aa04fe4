from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple

import numpy as np
from numpy.typing import NDArray


class BefungeError(Exception):
    """Base class for interpreter errors."""


class ProgramLoadError(BefungeError):
    """Raised when program text cannot be read."""


SPACE = " "


@dataclass(frozen=True, order=True)
class Position:
    x: int
    y: int

    def shifted(self, dx: int, dy: int) -> "Position":
        return Position(self.x + dx, self.y + dy)

    def __str__(self) -> str:
        return f"({self.x}, {self.y})"


class CellView:
    """Row-major walk over a rectangle of a Program.

    Iterating twice walks the rectangle twice; cells are read when they are
    reached, so writes made between iterations are visible.
    """

    def __init__(self, program: "Program", upper_left: Position, lower_right: Position) -> None:
        self.program = program
        self.upper_left = upper_left
        self.lower_right = lower_right

    def __iter__(self) -> Iterator[Tuple[Position, str]]:
        get = self.program.get
        for y in range(self.upper_left.y, self.lower_right.y + 1):
            for x in range(self.upper_left.x, self.lower_right.x + 1):
                pos = Position(x, y)
                yield pos, get(pos)

    def __len__(self) -> int:
        width = self.lower_right.x - self.upper_left.x + 1
        height = self.lower_right.y - self.upper_left.y + 1
        if width <= 0 or height <= 0:
            return 0
        return width * height


class Program:
    # Rows grow downward: line n of the source text is y == n, so '^' is y - 1.

    def __init__(self, cells: Optional[Dict[Position, str]] = None) -> None:
        self._cells: Dict[Position, str] = dict(cells) if cells else {}

    @classmethod
    def from_text(cls, source: str) -> "Program":
        program = cls()
        cells = program._cells
        for y, line in enumerate(source.split("\n")):
            if line.endswith("\r"):
                line = line[:-1]
            for x, ch in enumerate(line):
                cells[Position(x, y)] = ch
        return program

    @classmethod
    def from_file(cls, path: str) -> "Program":
        # latin-1 maps every byte to exactly one cell.
        try:
            with open(path, "r", encoding="latin-1", newline="") as handle:
                text = handle.read()
        except OSError as exc:
            raise ProgramLoadError(f"Failed to read '{path}': {exc}")
        return cls.from_text(text)

    def get(self, pos: Position) -> str:
        return self._cells.get(pos, SPACE)

    def set(self, pos: Position, ch: str) -> None:
        if not isinstance(ch, str) or len(ch) != 1:
            raise ValueError(f"Program cells hold exactly one character, got {ch!r}")
        self._cells[pos] = ch

    def bounds(self) -> Optional[Tuple[Position, Position]]:
        if not self._cells:
            return None
        xs = [p.x for p in self._cells]
        ys = [p.y for p in self._cells]
        return Position(min(xs), min(ys)), Position(max(xs), max(ys))

    def view(self, upper_left: Position, lower_right: Position) -> CellView:
        return CellView(self, upper_left, lower_right)

    def cells(self) -> CellView:
        rect = self.bounds()
        if rect is None:
            # An inverted rectangle walks nothing.
            return CellView(self, Position(0, 0), Position(-1, -1))
        return CellView(self, rect[0], rect[1])

    def clone(self) -> "Program":
        return Program(self._cells)

    def to_array(self, upper_left: Position, lower_right: Position) -> NDArray[np.uint8]:
        rows = max(0, lower_right.y - upper_left.y + 1)
        cols = max(0, lower_right.x - upper_left.x + 1)
        grid = np.full((rows, cols), ord(SPACE), dtype=np.uint8)
        for pos, ch in self._cells.items():
            row = pos.y - upper_left.y
            col = pos.x - upper_left.x
            if 0 <= row < rows and 0 <= col < cols:
                grid[row, col] = ord(ch) & 0xFF
        return grid

    def render(self) -> str:
        rect = self.bounds()
        if rect is None:
            return ""
        grid = self.to_array(rect[0], rect[1])
        lines: List[str] = []
        for row in grid:
            lines.append(bytes(row).decode("latin-1").rstrip(SPACE))
        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self._cells)

    def __contains__(self, pos: object) -> bool:
        return pos in self._cells

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Program):
            return NotImplemented
        return self._cells == other._cells

    def __repr__(self) -> str:
        return f"Program({len(self._cells)} cells, bounds={self.bounds()})"
