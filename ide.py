"""
Textual TUI for stepping, watching and editing Befunge programs.

The pointer cell is green while running and red once the program has
terminated; the cursor cell is magenta. Usage:
    befunge ide program.bf --rate 20
    befunge ide -e eratosthenes
"""

from __future__ import annotations

import io
import time
from itertools import groupby
from typing import List, Optional, Tuple

from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.widgets import Static

from interpreter import BefungeRuntimeError, Interpreter
from playfield import Position, Program


HELP_TEXT = (
    "space run/pause  t step  r restart  f follow  +/- rate  "
    "arrows move  i edit  esc stop editing  q quit"
)

_ARROWS = {
    "left": (-1, 0),
    "right": (1, 0),
    "up": (0, -1),
    "down": (0, 1),
}


class IDESession:
    """Debugger state, independent of the terminal UI."""

    def __init__(
        self,
        program: Program,
        *,
        instructions_per_second: int = 10,
        input_data: bytes = b"",
        seed: Optional[int] = None,
    ) -> None:
        # The edited source; the interpreter always runs on a clone of it.
        self.program = program
        self.input_data = input_data
        self.output = io.BytesIO()
        self.interpreter = Interpreter(
            program.clone(),
            input_stream=io.BytesIO(input_data),
            output_stream=self.output,
            seed=seed,
        )
        self.instructions_per_second = max(1, instructions_per_second)
        self.paused = True
        self.following = False
        self.editing = False
        self.cursor = Position(0, 0)
        self.error: Optional[BefungeRuntimeError] = None
        self._last_tick: Optional[float] = None

    @property
    def tick_time(self) -> float:
        return 1.0 / self.instructions_per_second

    def restart(self) -> None:
        self.interpreter.reset(self.program.clone())
        self.interpreter.input_stream = io.BytesIO(self.input_data)
        self.output.seek(0)
        self.output.truncate()

    def step_once(self) -> None:
        try:
            self.interpreter.step()
        except BefungeRuntimeError as error:
            self.paused = True
            self.restart()
            self.error = error
            return
        if self.following:
            self.cursor = self.interpreter.position

    def tick(self, now: float) -> int:
        """Run the steps that are due at ``now``; returns how many ran."""
        if self._last_tick is None or self.paused:
            self._last_tick = now
            return 0
        due = int((now - self._last_tick) / self.tick_time)
        if due <= 0:
            return 0
        self._last_tick += due * self.tick_time
        executed = 0
        for _ in range(due):
            if self.paused or self.interpreter.halted:
                break
            self.step_once()
            executed += 1
        return executed

    def handle_key(self, key: str, character: Optional[str] = None) -> bool:
        """Apply one key press; returns False when the session should end."""
        if key in _ARROWS:
            dx, dy = _ARROWS[key]
            self.cursor = self.cursor.shifted(dx, dy)
            self.following = False
            return True

        if self.editing:
            if key == "escape":
                self.editing = False
            elif character is not None and len(character) == 1 and character.isprintable():
                self.program.set(self.cursor, character)
                self.interpreter.program = self.program.clone()
            return True

        if key == "q":
            return False
        if key == "i":
            self.paused = True
            self.editing = True
            self.error = None
            self.restart()
        elif key == "r":
            self.error = None
            self.restart()
        elif key == "space":
            self.paused = not self.paused
        elif key == "t":
            self.paused = True
            self.step_once()
        elif key == "f":
            self.following = not self.following
        elif key == "plus" or character == "+":
            self.instructions_per_second += 1
        elif key == "minus" or character == "-":
            self.instructions_per_second = max(1, self.instructions_per_second - 1)
        return True

    def visible_rows(self, width: int, height: int) -> List[List[Tuple[Position, str]]]:
        upper_left = Position(self.cursor.x - width // 2, self.cursor.y - height // 2)
        lower_right = Position(upper_left.x + width - 1, upper_left.y + height - 1)
        cells = self.interpreter.view(upper_left, lower_right)
        return [list(row) for _, row in groupby(cells, key=lambda cell: cell[0].y)]

    def output_text(self) -> str:
        text = self.output.getvalue().decode("latin-1")
        if self.error is not None:
            text += f"\n{self.error.__class__.__name__}: {self.error.message}"
        return text

    def status_lines(self) -> List[str]:
        lines = []
        if self.editing:
            lines.append("editing")
        if self.paused:
            lines.append("paused")
        if self.following:
            lines.append("following")
        if self.interpreter.terminated:
            lines.append("terminated")
        lines.append(f"{self.instructions_per_second} ips")
        lines.append(f"step {self.interpreter.instruction_count}")
        return lines


IDE_CSS = """
Screen {
    layout: grid;
    grid-size: 2 3;
    grid-columns: 5fr 1fr;
    grid-rows: 4fr 1fr auto;
}

.panel {
    border: solid $accent;
    border-title-align: center;
    height: 100%;
}

#help {
    column-span: 2;
    height: 1;
}
"""


class ProgramPanel(Static):
    BORDER_TITLE = "Program"


class StackPanel(Static):
    BORDER_TITLE = "Stack"


class OutputPanel(Static):
    BORDER_TITLE = "Output"


class StatePanel(Static):
    BORDER_TITLE = "IDE"


def _display_char(ch: str) -> str:
    return ch if ch.isprintable() else "·"


class BefungeIDE(App):
    CSS = IDE_CSS
    TITLE = "Befunge IDE"

    def __init__(self, session: IDESession) -> None:
        super().__init__()
        self.session = session

    def compose(self) -> ComposeResult:
        yield ProgramPanel(id="program-panel", classes="panel")
        yield StackPanel(id="stack-panel", classes="panel")
        yield OutputPanel(id="output-panel", classes="panel")
        yield StatePanel(id="state-panel", classes="panel")
        yield Static(HELP_TEXT, id="help")

    def on_mount(self) -> None:
        self.set_interval(1 / 60, self._on_timer)
        self.refresh_panels()

    def _on_timer(self) -> None:
        if self.session.tick(time.monotonic()):
            self.refresh_panels()

    def on_key(self, event: events.Key) -> None:
        event.stop()
        if not self.session.handle_key(event.key, event.character):
            self.exit()
            return
        self.refresh_panels()

    def refresh_panels(self) -> None:
        self._refresh_program()
        self._refresh_stack()
        self._refresh_output()
        self._refresh_state()

    def _refresh_program(self) -> None:
        panel = self.query_one("#program-panel", ProgramPanel)
        width = panel.size.width or 40
        height = panel.size.height or 15
        session = self.session
        interpreter = session.interpreter
        pointer_style = "on red" if interpreter.terminated else "on green"

        grid = Text(no_wrap=True)
        for index, row in enumerate(session.visible_rows(width, height)):
            if index:
                grid.append("\n")
            for pos, ch in row:
                if pos == interpreter.position:
                    style = pointer_style
                elif pos == session.cursor:
                    style = "on magenta"
                else:
                    style = ""
                grid.append(_display_char(ch), style=style)
        panel.border_subtitle = f"(x, y) = ({session.cursor.x}, {session.cursor.y})"
        panel.update(grid)

    def _refresh_stack(self) -> None:
        items = self.session.interpreter.stack
        panel = self.query_one("#stack-panel", StackPanel)
        panel.update(Text("\n".join(str(v) for v in reversed(items)) if items else "(empty)"))

    def _refresh_output(self) -> None:
        panel = self.query_one("#output-panel", OutputPanel)
        panel.update(Text(self.session.output_text()))

    def _refresh_state(self) -> None:
        panel = self.query_one("#state-panel", StatePanel)
        panel.update(Text("\n".join(self.session.status_lines())))
