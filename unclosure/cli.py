"""Command-line entry point."""

from __future__ import annotations

import sys

from .backend.javascript import emit
from .frontend.ast import Program
from .frontend.parse import ParseError, parse
from .frontend.tokens import TokenizeError
from .middleend.hoisting import HoistError, hoist_closures
from .middleend.marks import mark_risks
from .middleend.scope import analyze_scope, format_scopes
from .runtime import UNDEFINED, JSThrow, RuntimeFault, display, run

PHASES: list[str] = [
    "parse",
    "scope",
    "hoist",
]

USAGE: str = """\
unclosure [OPTIONS] [INPUT] [-o OUTPUT]

Options:
  --script            Parse INPUT as a classic script (default: module)
  --compact           Treat INPUT as compact output; nothing is moved
  --stop-at PHASE     Stop after phase: parse, scope, hoist
  --run               Execute the resulting program and print its output
  -o, --output FILE   Write output to FILE instead of stdout
  --help              Show this help message
"""


class Options:
    def __init__(self) -> None:
        self.source_type: str = "module"
        self.compact: bool = False
        self.stop_at: str = "hoist"
        self.run: bool = False
        self.input_file: str | None = None
        self.output_file: str | None = None


def read_source(input_file: str | None) -> tuple[str, int]:
    """Read source from file or stdin. Returns (source, exit_code) where exit_code 0 means OK."""
    if input_file is not None:
        try:
            with open(input_file, "rb") as f:
                raw = f.read()
        except OSError:
            print("error: cannot open '" + input_file + "'", file=sys.stderr)
            return ("", 1)
    else:
        raw = sys.stdin.buffer.read()
    if len(raw) > 0:
        try:
            source = raw.decode("utf-8")
        except ValueError:
            print("error: invalid utf-8 in input", file=sys.stderr)
            return ("", 1)
        return (source, 0)
    return ("", 0)


def write_output(output: str, output_file: str | None) -> int:
    """Write output to file or stdout. Returns 0 on success, 1 on error."""
    if output_file is not None:
        try:
            with open(output_file, "w") as f:
                f.write(output)
        except OSError:
            print("error: cannot write '" + output_file + "'", file=sys.stderr)
            return 1
        return 0
    sys.stdout.write(output)
    return 0


# --- Pipeline ---


def _execute(program: Program) -> tuple[int, str]:
    """Run program; output is its console lines plus the completion value."""
    try:
        result = run(program)
    except (JSThrow, RuntimeFault) as e:
        print("error: " + str(e), file=sys.stderr)
        return (1, "")
    lines = list(result.output)
    if result.value is not UNDEFINED:
        lines.append(display(result.value))
    if not lines:
        return (0, "")
    return (0, "\n".join(lines) + "\n")


def run_pipeline(source: str, opts: Options) -> tuple[int, str]:
    """Run the phases up to opts.stop_at. Returns (exit_code, output)."""
    try:
        program = parse(source, source_type=opts.source_type, compact=opts.compact)
    except (ParseError, TokenizeError) as e:
        print("error:" + str(e.line) + ":" + str(e.col) + ": " + e.msg, file=sys.stderr)
        return (1, "")
    if opts.stop_at == "parse":
        if opts.run:
            return _execute(program)
        return (0, emit(program))
    scopes = analyze_scope(program)
    if opts.stop_at == "scope":
        return (0, format_scopes(scopes))
    marks = mark_risks(program, scopes)
    try:
        hoist_closures(program, scopes, marks)
    except HoistError as e:
        print("internal error: " + str(e), file=sys.stderr)
        return (3, "")
    if opts.run:
        return _execute(program)
    return (0, emit(program))


def parse_args(args: list[str]) -> Options:
    """Parse command-line arguments; usage errors exit with status 2."""
    opts = Options()
    i = 0
    while i < len(args):
        arg = args[i]
        if arg == "--help" or arg == "-h":
            print(USAGE, end="")
            sys.exit(0)
        elif arg == "--script":
            opts.source_type = "script"
            i += 1
        elif arg == "--compact":
            opts.compact = True
            i += 1
        elif arg == "--run":
            opts.run = True
            i += 1
        elif arg == "--stop-at":
            if i + 1 >= len(args):
                print("error: --stop-at requires an argument", file=sys.stderr)
                sys.exit(2)
            opts.stop_at = args[i + 1]
            i += 2
        elif arg == "-o" or arg == "--output":
            if i + 1 >= len(args):
                print("error: " + arg + " requires an argument", file=sys.stderr)
                sys.exit(2)
            opts.output_file = args[i + 1]
            i += 2
        elif arg.startswith("-") and arg != "-":
            print("error: unknown flag '" + arg + "'", file=sys.stderr)
            sys.exit(2)
        else:
            if opts.input_file is not None:
                print("error: unexpected argument '" + arg + "'", file=sys.stderr)
                sys.exit(2)
            opts.input_file = None if arg == "-" else arg
            i += 1
    if opts.stop_at not in PHASES:
        print("error: unknown phase '" + opts.stop_at + "'", file=sys.stderr)
        sys.exit(2)
    if opts.run and opts.stop_at == "scope":
        print("error: --run cannot be combined with --stop-at scope", file=sys.stderr)
        sys.exit(2)
    return opts


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    opts = parse_args(sys.argv[1:] if argv is None else argv)
    source, err = read_source(opts.input_file)
    if err != 0:
        return err
    if len(source) == 0:
        print("error: no input provided", file=sys.stderr)
        return 2
    exit_code, output = run_pipeline(source, opts)
    if exit_code != 0:
        return exit_code
    if len(output) > 0:
        return write_output(output, opts.output_file)
    return 0


if __name__ == "__main__":
    sys.exit(main())
