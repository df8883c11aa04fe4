"""Befunge interpreter entry point."""

from __future__ import annotations
import argparse
import sys
from typing import List, Optional

from examples import example_names, get_example
from interpreter import BefungeRuntimeError, Interpreter, TracebackFormatter, time_run
from playfield import ProgramLoadError, Program


def _load_program(args: argparse.Namespace) -> Program:
    if args.example:
        return Program.from_text(get_example(args.example))
    if args.file is None:
        raise ProgramLoadError("Provide a program file or -e NAME")
    return Program.from_file(args.file)


def _add_source_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("file", nargs="?", help="File to read the program from")
    parser.add_argument("-e", "--example", choices=example_names(), help="Run a bundled example instead of a file")


def run_program(args: argparse.Namespace) -> int:
    try:
        program = _load_program(args)
    except ProgramLoadError as error:
        print(f"LoadError: {error}", file=sys.stderr)
        return 1

    if args.show:
        print(program.render())
        sys.stdout.flush()

    output = sys.stdout.buffer
    interpreter = Interpreter(
        program,
        trace=args.trace,
        input_stream=getattr(sys.stdin, "buffer", sys.stdin),
        output_stream=output,
        seed=args.seed,
    )
    try:
        if args.time:
            report = time_run(interpreter)
            output.flush()
            print(report.format(), file=sys.stderr)
        else:
            interpreter.run()
    except BefungeRuntimeError as error:
        output.flush()
        formatter = TracebackFormatter(interpreter)
        print(formatter.format_text(error), file=sys.stderr)
        if args.traceback_json:
            print(formatter.to_json(error), file=sys.stderr)
        return 1
    finally:
        output.flush()
    return 0


def run_ide(args: argparse.Namespace) -> int:
    # textual is only needed for the debugger.
    from ide import BefungeIDE, IDESession

    try:
        program = _load_program(args)
    except ProgramLoadError as error:
        print(f"LoadError: {error}", file=sys.stderr)
        return 1

    try:
        stdin_text = args.input.encode("latin-1")
    except UnicodeEncodeError as error:
        print(f"InputError: --input must be latin-1 text ({error.reason})", file=sys.stderr)
        return 1
    session = IDESession(program, instructions_per_second=args.rate, input_data=stdin_text, seed=args.seed)
    BefungeIDE(session).run()
    return 0


def list_examples(_: argparse.Namespace) -> int:
    for name in example_names():
        print(name)
    return 0


def run_cli(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Befunge reference interpreter")
    subcommands = parser.add_subparsers(dest="command", required=True)

    run_parser = subcommands.add_parser("run", help="Execute a program to termination")
    _add_source_arguments(run_parser)
    run_parser.add_argument("--show", action="store_true", help="Print the program before executing it")
    run_parser.add_argument("--trace", action="store_true", help="Trace every step to stderr")
    run_parser.add_argument("--time", action="store_true", help="Report instruction count and throughput")
    run_parser.add_argument("--traceback-json", action="store_true", help="Also emit JSON traceback")
    run_parser.add_argument("--seed", type=int, default=None, help="Seed for the '?' instruction")
    run_parser.set_defaults(handler=run_program)

    ide_parser = subcommands.add_parser("ide", help="Step, edit and watch a program in the terminal")
    _add_source_arguments(ide_parser)
    ide_parser.add_argument("--rate", type=int, default=10, help="Maximum instructions per second")
    ide_parser.add_argument("--input", default="", help="Text supplied to '&' and '~'")
    ide_parser.add_argument("--seed", type=int, default=None, help="Seed for the '?' instruction")
    ide_parser.set_defaults(handler=run_ide)

    examples_parser = subcommands.add_parser("examples", help="List the bundled example programs")
    examples_parser.set_defaults(handler=list_examples)

    args = parser.parse_args(argv)
    try:
        return args.handler(args)
    except KeyboardInterrupt:
        print(file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
