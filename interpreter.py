from __future__ import annotations
import json
import random
import re
import sys
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, BinaryIO, Callable, Dict, List, Optional, TextIO

from playfield import BefungeError, CellView, Position, Program


INT64_BITS = 64
_INT64_MASK = (1 << INT64_BITS) - 1
_INT64_SIGN = 1 << (INT64_BITS - 1)

_WHITESPACE = b" \t\r\n\x0b\x0c"
_INT_TOKEN = re.compile(rb"[+-]?[0-9]+")


def _to_int64(value: int) -> int:
    return ((value + _INT64_SIGN) & _INT64_MASK) - _INT64_SIGN


def _trunc_div(b: int, a: int) -> int:
    # Rounds toward zero like native signed division.
    q = abs(b) // abs(a)
    return q if (b < 0) == (a < 0) else -q


def _trunc_mod(b: int, a: int) -> int:
    # Remainder takes the sign of the dividend.
    return b - a * _trunc_div(b, a)


class BefungeRuntimeError(BefungeError):
    """Raised for faults while executing a program."""

    def __init__(
        self,
        message: str,
        *,
        location: Optional[Position] = None,
        instruction: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.location = location
        self.instruction = instruction
        self.step_index: Optional[int] = None


class UnrecognizedInstruction(BefungeRuntimeError):
    def __init__(self, position: Position, character: str) -> None:
        super().__init__(
            f"Unrecognized instruction {character!r} at {position}",
            location=position,
            instruction=character,
        )
        self.position = position
        self.character = character


class ArithmeticByZero(BefungeRuntimeError):
    """Raised when '/' or '%' pops a zero divisor."""


class InputReadFailed(BefungeRuntimeError):
    """Raised when '&' or '~' cannot obtain input."""


class MalformedInputToken(BefungeRuntimeError):
    """Raised when '&' reads a token that is not a decimal integer."""


class OutputWriteFailed(BefungeRuntimeError):
    """Raised when '.' or ',' cannot write to the output."""


class Direction(Enum):
    UP = (0, -1)
    DOWN = (0, 1)
    LEFT = (-1, 0)
    RIGHT = (1, 0)

    @property
    def dx(self) -> int:
        return self.value[0]

    @property
    def dy(self) -> int:
        return self.value[1]


DIRECTIONS = (Direction.UP, Direction.DOWN, Direction.LEFT, Direction.RIGHT)


@dataclass
class InstructionPointer:
    position: Position = field(default_factory=lambda: Position(0, 0))
    direction: Direction = Direction.RIGHT

    def advance(self) -> None:
        self.position = self.position.shifted(self.direction.dx, self.direction.dy)


class Stack:
    def __init__(self) -> None:
        self._items: List[int] = []

    def push(self, value: int) -> None:
        self._items.append(_to_int64(value))

    def pop(self) -> int:
        # An empty stack behaves as an endless supply of zeroes.
        if not self._items:
            return 0
        return self._items.pop()

    def peek(self) -> int:
        return self._items[-1] if self._items else 0

    def items(self) -> List[int]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)


@dataclass
class StateEntry:
    step_index: int
    position: Position
    instruction: str
    stack: List[int]
    timestamp: datetime


class StateLogger:
    def __init__(self, enabled: bool, stream: Optional[TextIO] = None) -> None:
        self.enabled = enabled
        self.stream = stream
        self.entries: List[StateEntry] = []

    def record(self, *, step_index: int, position: Position, instruction: str, stack: Stack) -> Optional[StateEntry]:
        if not self.enabled:
            return None
        entry = StateEntry(
            step_index=step_index,
            position=position,
            instruction=instruction,
            stack=stack.items(),
            timestamp=datetime.now(),
        )
        self.entries.append(entry)
        stream = self.stream if self.stream is not None else sys.stderr
        print(self.format_entry(entry), file=stream)
        return entry

    @staticmethod
    def format_entry(entry: StateEntry) -> str:
        stamp = entry.timestamp.strftime("%Y-%m-%d %H:%M:%S.%f")
        stack = " ".join(str(v) for v in entry.stack)
        return (
            f"{stamp} [{entry.step_index:4}] ({entry.position.x:2}, {entry.position.y:2}) "
            f"-> {entry.instruction} | {stack}"
        )

    def clear(self) -> None:
        self.entries.clear()


class Interpreter:
    def __init__(
        self,
        program: Program,
        *,
        trace: bool = False,
        input_stream: Optional[BinaryIO] = None,
        output_stream: Optional[BinaryIO] = None,
        rng: Optional[random.Random] = None,
        seed: Optional[int] = None,
        trace_stream: Optional[TextIO] = None,
    ) -> None:
        self.program = program
        self.trace = trace
        self.input_stream = input_stream
        self.output_stream = output_stream
        self.rng = rng if rng is not None else random.Random(seed)
        self.logger = StateLogger(enabled=trace, stream=trace_stream)

        self.pointer = InstructionPointer()
        self._stack = Stack()
        self.string_mode = False
        self.terminated = False
        self.instruction_count = 0
        self.error: Optional[BefungeRuntimeError] = None

        self.instructions: Dict[str, Callable[[], None]] = {}
        self._register("^", lambda: self._set_direction(Direction.UP))
        self._register("v", lambda: self._set_direction(Direction.DOWN))
        self._register(">", lambda: self._set_direction(Direction.RIGHT))
        self._register("<", lambda: self._set_direction(Direction.LEFT))
        self._register("?", self._random_direction)
        self._register("_", self._horizontal_if)
        self._register("|", self._vertical_if)
        self._register("+", lambda: self._binary(lambda b, a: b + a))
        self._register("-", lambda: self._binary(lambda b, a: b - a))
        self._register("*", lambda: self._binary(lambda b, a: b * a))
        self._register("/", self._div)
        self._register("%", self._mod)
        self._register("!", self._not)
        self._register("`", lambda: self._binary(lambda b, a: 1 if b > a else 0))
        self._register(":", self._dup)
        self._register("\\", self._swap)
        self._register("$", self._discard)
        self._register(".", self._write_int)
        self._register(",", self._write_char)
        self._register("#", self._skip)
        self._register("g", self._get)
        self._register("p", self._put)
        self._register("&", self._read_int)
        self._register("~", self._read_char)
        self._register(" ", lambda: None)
        for digit in "0123456789":
            self._register(digit, self._make_push(int(digit)))

    def _register(self, ch: str, impl: Callable[[], None]) -> None:
        self.instructions[ch] = impl

    # Accessors for drivers
    @property
    def position(self) -> Position:
        return self.pointer.position

    @property
    def direction(self) -> Direction:
        return self.pointer.direction

    @property
    def stack(self) -> List[int]:
        return self._stack.items()

    @property
    def halted(self) -> bool:
        return self.terminated or self.error is not None

    def view(self, upper_left: Position, lower_right: Position) -> CellView:
        return self.program.view(upper_left, lower_right)

    def reset(self, program: Optional[Program] = None) -> None:
        if program is not None:
            self.program = program
        self.pointer = InstructionPointer()
        self._stack = Stack()
        self.string_mode = False
        self.terminated = False
        self.instruction_count = 0
        self.error = None
        self.logger.clear()

    def run(self) -> int:
        while not self.halted:
            self.step()
        return self.instruction_count

    def step(self) -> None:
        if self.halted:
            return
        position = self.pointer.position
        ch = self.program.get(position)
        self.logger.record(
            step_index=self.instruction_count,
            position=position,
            instruction=ch,
            stack=self._stack,
        )
        self.instruction_count += 1

        try:
            if ch == '"':
                self.string_mode = not self.string_mode
            elif self.string_mode:
                self._stack.push(ord(ch) & 0xFF)
            elif ch == "@":
                # The pointer stays on the terminating cell.
                self.terminated = True
                return
            else:
                impl = self.instructions.get(ch)
                if impl is None:
                    raise UnrecognizedInstruction(position, ch)
                impl()
        except BefungeRuntimeError as error:
            if error.location is None:
                error.location = position
            if error.instruction is None:
                error.instruction = ch
            error.step_index = self.instruction_count - 1
            self.error = error
            raise

        self.pointer.advance()

    # Direction control
    def _set_direction(self, direction: Direction) -> None:
        self.pointer.direction = direction

    def _random_direction(self) -> None:
        self.pointer.direction = self.rng.choice(DIRECTIONS)

    def _horizontal_if(self) -> None:
        a = self._stack.pop()
        self.pointer.direction = Direction.RIGHT if a == 0 else Direction.LEFT

    def _vertical_if(self) -> None:
        a = self._stack.pop()
        self.pointer.direction = Direction.DOWN if a == 0 else Direction.UP

    def _skip(self) -> None:
        self.pointer.advance()

    # Arithmetic and stack manipulation
    def _binary(self, op: Callable[[int, int], int]) -> None:
        a = self._stack.pop()
        b = self._stack.pop()
        self._stack.push(op(b, a))

    def _div(self) -> None:
        a = self._stack.pop()
        b = self._stack.pop()
        if a == 0:
            raise ArithmeticByZero(f"Division by zero ({b} / 0)")
        self._stack.push(_trunc_div(b, a))

    def _mod(self) -> None:
        a = self._stack.pop()
        b = self._stack.pop()
        if a == 0:
            raise ArithmeticByZero(f"Modulo by zero ({b} % 0)")
        self._stack.push(_trunc_mod(b, a))

    def _not(self) -> None:
        b = self._stack.pop()
        self._stack.push(1 if b == 0 else 0)

    def _dup(self) -> None:
        a = self._stack.pop()
        self._stack.push(a)
        self._stack.push(a)

    def _swap(self) -> None:
        a = self._stack.pop()
        b = self._stack.pop()
        self._stack.push(a)
        self._stack.push(b)

    def _discard(self) -> None:
        self._stack.pop()

    def _make_push(self, value: int) -> Callable[[], None]:
        def impl() -> None:
            self._stack.push(value)

        return impl

    # Self-modification
    def _get(self) -> None:
        y = self._stack.pop()
        x = self._stack.pop()
        self._stack.push(ord(self.program.get(Position(x, y))) & 0xFF)

    def _put(self) -> None:
        y = self._stack.pop()
        x = self._stack.pop()
        v = self._stack.pop()
        self.program.set(Position(x, y), chr(v & 0xFF))

    # I/O
    def _write(self, data: bytes) -> None:
        if self.output_stream is None:
            raise OutputWriteFailed("No output attached")
        try:
            self.output_stream.write(data)
        except (OSError, ValueError) as exc:
            raise OutputWriteFailed(f"Failed to write output: {exc}")

    def _write_int(self) -> None:
        self._write(str(self._stack.pop()).encode("ascii"))

    def _write_char(self) -> None:
        self._write(bytes([self._stack.pop() & 0xFF]))

    def _read_byte(self) -> Optional[int]:
        if self.input_stream is None:
            raise InputReadFailed("No input attached")
        try:
            data = self.input_stream.read(1)
        except (OSError, ValueError) as exc:
            raise InputReadFailed(f"Failed to read input: {exc}")
        if not data:
            return None
        return data[0]

    def _read_int(self) -> None:
        byte = self._read_byte()
        while byte is not None and byte in _WHITESPACE:
            byte = self._read_byte()
        if byte is None:
            raise InputReadFailed("End of input while reading an integer")
        token = bytearray()
        # The whitespace byte that ends the token is consumed with it.
        while byte is not None and byte not in _WHITESPACE:
            token.append(byte)
            byte = self._read_byte()
        if _INT_TOKEN.fullmatch(bytes(token)) is None:
            raise MalformedInputToken(f"Expected a decimal integer, got {bytes(token)!r}")
        self._stack.push(int(token))

    def _read_char(self) -> None:
        byte = self._read_byte()
        if byte is None:
            raise InputReadFailed("End of input while reading a character")
        self._stack.push(byte)


@dataclass
class TimingReport:
    instruction_count: int
    elapsed: float

    @property
    def instructions_per_second(self) -> float:
        if self.elapsed <= 0:
            return 0.0
        return self.instruction_count / self.elapsed

    def format(self) -> str:
        return (
            f"Executed {self.instruction_count:,} instructions in {format_duration(self.elapsed)} "
            f"({int(self.instructions_per_second):,} instructions/second)"
        )


def format_duration(seconds: float) -> str:
    if seconds >= 60:
        minutes, rest = divmod(seconds, 60)
        return f"{int(minutes)}m {rest:.3f}s"
    if seconds >= 1:
        return f"{seconds:.3f}s"
    if seconds >= 1e-3:
        return f"{seconds * 1e3:.3f}ms"
    return f"{seconds * 1e6:.3f}us"


def time_run(interpreter: Interpreter) -> TimingReport:
    start = time.perf_counter()
    try:
        interpreter.run()
    finally:
        elapsed = time.perf_counter() - start
    return TimingReport(instruction_count=interpreter.instruction_count, elapsed=elapsed)


class TracebackFormatter:
    def __init__(self, interpreter: Interpreter) -> None:
        self.interpreter = interpreter

    def format_text(self, error: BefungeRuntimeError) -> str:
        lines = ["Traceback (most recent step last):"]
        step = error.step_index if error.step_index is not None else self.interpreter.instruction_count
        if error.location is not None:
            lines.append(f"  Step {step}, at {error.location}, executing {error.instruction!r}")
        else:
            lines.append(f"  Step {step}, <unknown location>")
        lines.append(f"    Direction: {self.interpreter.direction.name.lower()}")
        lines.append(f"    Stack: {' '.join(str(v) for v in self.interpreter.stack) or '<empty>'}")
        lines.append(f"{error.__class__.__name__}: {error.message}")
        return "\n".join(lines)

    def to_json(self, error: BefungeRuntimeError) -> str:
        data: Dict[str, Any] = {
            "error": {
                "type": error.__class__.__name__,
                "message": error.message,
                "failing_step_index": error.step_index,
            },
            "pointer": {
                "direction": self.interpreter.direction.name.lower(),
                "stack": self.interpreter.stack,
            },
        }
        if error.location is not None:
            data["pointer"]["position"] = {"x": error.location.x, "y": error.location.y}
            data["pointer"]["instruction"] = error.instruction
        return json.dumps(data, indent=2)
