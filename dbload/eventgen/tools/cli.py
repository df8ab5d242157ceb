"""
eventgen command line tool.

Commands:
- generate: Compile a schema source into a Python events module
- validate: Report every problem of a schema source
- inspect: Print the compiled IR as JSON
- writer / reader / both: Run the load loops against the database

Usage:
    eventgen generate --schema type_mapping.json --output events.py
    eventgen validate --schema type_mapping.json
    eventgen inspect --schema type_mapping.json
    eventgen writer --events events.py

Every command configures logging from LOG_LEVEL and LOG_FORMAT.

Exit codes:
    0: Success
    1: Invalid schema, configuration or runtime error
    36: The schema source changed while running (regenerate and relaunch)

Invariants:
    - Nothing is written when the schema fails validation
    - inspect output is deterministic (sorted JSON)
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys

from pydantic import ValidationError

from ..codegen.emitter import write_module
from ..config import Settings
from ..errors import SchemaError
from ..main import ExitStatus, RunMode, serve, setup_logging
from ..runtime.contract import load_events_module
from ..schema import collect_errors, compile_source, load_schema_source

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT = "events.py"


class GeneratorCLI:
    """Build-time commands.

    Example:
        >>> cli = GeneratorCLI()
        >>> cli.generate("type_mapping.json", "events.py")
        True
    """

    def generate(self, schema_path: str, output_path: str) -> bool:
        """Compile a schema source and write the events module.

        Returns:
            True if the output file changed

        Raises:
            SchemaError: If the schema is invalid; nothing is written
        """
        compiled = compile_source(schema_path)
        return write_module(compiled, output_path)

    def validate(self, schema_path: str) -> list[str]:
        """List every validation error of a schema source.

        Raises:
            SchemaError: If the source cannot be read or has the wrong shape
        """
        raw = load_schema_source(schema_path)
        return [str(e) for e in collect_errors(raw)]

    def inspect(self, schema_path: str) -> str:
        """Compiled IR of a schema source as sorted JSON."""
        compiled = compile_source(schema_path)
        return json.dumps(compiled.to_dict(), indent=2, sort_keys=True)


def _schema_path(args: argparse.Namespace) -> str:
    path = args.schema or os.environ.get("TYPE_MAPPING_PATH")
    if not path:
        print("No schema source: pass --schema or set TYPE_MAPPING_PATH", file=sys.stderr)
        sys.exit(1)
    return path


def _setup_build_logging() -> None:
    try:
        settings = Settings()
    except ValidationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)
    setup_logging(settings)


def _run(args: argparse.Namespace) -> int:
    try:
        settings = Settings()
    except ValidationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return ExitStatus.ERROR

    setup_logging(settings)

    ref = args.events or settings.events_module
    if not ref:
        print("No events module: pass --events or set EVENTS_MODULE", file=sys.stderr)
        return ExitStatus.ERROR

    try:
        events = load_events_module(ref)
    except (ImportError, ValueError) as e:
        logger.error(f"Can't load events module {ref}: {e}")
        return ExitStatus.ERROR

    return serve(settings, events, RunMode.from_str(args.command))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="eventgen", description="Event schema compiler and load generator")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # generate command
    generate_parser = subparsers.add_parser("generate", help="Generate the events module")
    generate_parser.add_argument("--schema", "-s", help="Schema source (default: $TYPE_MAPPING_PATH)")
    generate_parser.add_argument(
        "--output", "-o", default=DEFAULT_OUTPUT, help=f"Output file (default: {DEFAULT_OUTPUT})"
    )

    # validate command
    validate_parser = subparsers.add_parser("validate", help="Validate a schema source")
    validate_parser.add_argument("--schema", "-s", help="Schema source (default: $TYPE_MAPPING_PATH)")

    # inspect command
    inspect_parser = subparsers.add_parser("inspect", help="Print the compiled schema as JSON")
    inspect_parser.add_argument("--schema", "-s", help="Schema source (default: $TYPE_MAPPING_PATH)")

    # runtime commands
    for mode in RunMode:
        run_parser = subparsers.add_parser(mode.value, help=f"Run the {mode.value} loop(s)")
        run_parser.add_argument("--events", "-e", help="Events module name or file (default: $EVENTS_MODULE)")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for eventgen."""
    args = _build_parser().parse_args(argv)
    cli = GeneratorCLI()

    if args.command in ("generate", "validate", "inspect"):
        _setup_build_logging()

    if args.command == "generate":
        schema = _schema_path(args)
        try:
            changed = cli.generate(schema, args.output)
        except SchemaError as e:
            print(f"can't parse type mappings: {e}", file=sys.stderr)
            sys.exit(1)
        state = "written" if changed else "unchanged"
        print(f"{args.output} {state}", file=sys.stderr)
        sys.exit(0)

    elif args.command == "validate":
        schema = _schema_path(args)
        try:
            errors = cli.validate(schema)
        except SchemaError as e:
            errors = [str(e)]

        if not errors:
            print("Schema is valid")
            sys.exit(0)
        else:
            print(f"Schema validation failed with {len(errors)} error(s):")
            for error in errors:
                print(f"  - {error}")
            sys.exit(1)

    elif args.command == "inspect":
        schema = _schema_path(args)
        try:
            output = cli.inspect(schema)
        except SchemaError as e:
            print(f"can't parse type mappings: {e}", file=sys.stderr)
            sys.exit(1)
        print(output)

    else:
        sys.exit(int(_run(args)))


if __name__ == "__main__":
    main()
