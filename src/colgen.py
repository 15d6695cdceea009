"""colgen entry point: struct schema -> StructArrayConvertible impls."""

from __future__ import annotations

import sys

from .backend.rust import emit_rust
from .generate import generate
from .schema import DEFAULT_SCHEMA, Schema, SchemaError, load_schema
from .serialize import to_json
from .types import UnsupportedType

PHASES: list[str] = [
    "schema",
    "ast",
]

USAGE: str = """\
colgen [OPTIONS] [SCHEMA] [-o OUTPUT]

Generate Rust StructArrayConvertible impls from a JSON struct schema.
Reads the bundled schema when SCHEMA is omitted.

Options:
  --stop-at PHASE     Stop after phase and print it as JSON: schema, ast
  -o, --output FILE   Write output to FILE instead of stdout
  --help              Show this help message
"""


def read_schema(input_file: str | None) -> tuple[Schema | None, int]:
    """Load the schema. Returns (schema, exit_code) where exit_code 0 means OK."""
    path = str(DEFAULT_SCHEMA) if input_file is None else input_file
    try:
        schema = load_schema(path)
    except OSError:
        print("error: cannot open '" + path + "'", file=sys.stderr)
        return (None, 1)
    except UnicodeDecodeError:
        print("error: invalid utf-8 in '" + path + "'", file=sys.stderr)
        return (None, 1)
    except (SchemaError, UnsupportedType) as e:
        print("error: " + str(e), file=sys.stderr)
        return (None, 1)
    return (schema, 0)


def write_output(output: str, output_file: str | None) -> int:
    """Write output to file or stdout. Returns 0 on success, 1 on error."""
    if output_file is not None:
        try:
            with open(output_file, "w", encoding="utf-8") as f:
                f.write(output)
        except OSError:
            print("error: cannot write '" + output_file + "'", file=sys.stderr)
            return 1
        return 0
    sys.stdout.write(output)
    return 0


def run_pipeline(schema: Schema, stop_at: str | None) -> str:
    """Run schema -> AST -> Rust, stopping after stop_at if given."""
    if stop_at == "schema":
        return to_json(schema) + "\n"
    decls = generate(schema)
    if stop_at == "ast":
        return to_json(decls) + "\n"
    return emit_rust(decls)


def parse_args(argv: list[str] | None = None) -> tuple[str | None, str | None, str | None]:
    """Parse command-line arguments. Returns (stop_at, input_file, output_file)."""
    args = argv if argv is not None else sys.argv[1:]
    stop_at: str | None = None
    input_file: str | None = None
    output_file: str | None = None
    i = 0
    while i < len(args):
        arg = args[i]
        if arg == "--help" or arg == "-h":
            print(USAGE, end="")
            sys.exit(0)
        elif arg == "--stop-at":
            if i + 1 >= len(args):
                print("error: --stop-at requires an argument", file=sys.stderr)
                sys.exit(2)
            stop_at = args[i + 1]
            i += 2
        elif arg == "-o" or arg == "--output":
            if i + 1 >= len(args):
                print("error: " + arg + " requires an argument", file=sys.stderr)
                sys.exit(2)
            output_file = args[i + 1]
            i += 2
        elif arg.startswith("-"):
            print("error: unknown flag '" + arg + "'", file=sys.stderr)
            sys.exit(2)
        else:
            if input_file is not None:
                print("error: unexpected argument '" + arg + "'", file=sys.stderr)
                sys.exit(2)
            input_file = arg
            i += 1
    if stop_at is not None and stop_at not in PHASES:
        print("error: unknown phase '" + stop_at + "'", file=sys.stderr)
        sys.exit(2)
    return (stop_at, input_file, output_file)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    stop_at, input_file, output_file = parse_args(argv)
    schema, err = read_schema(input_file)
    if schema is None:
        return err
    return write_output(run_pipeline(schema, stop_at), output_file)


if __name__ == "__main__":
    sys.exit(main())
