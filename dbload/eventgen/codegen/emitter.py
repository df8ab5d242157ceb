"""
Python code emitter.

Renders a CompiledSchema into a Python module implementing the runtime
contract in runtime/contract.py: one dataclass per event type, the
constructor registry and migrate().

Invariants:
    - Output depends only on the CompiledSchema: no timestamps, no
      environment lookups, entities and fields in IR order
    - store() binds fields in the same order as INSERT_SQL lists them
    - retrieve() decodes row[i] with the width of insertable field i
    - Every string literal is emitted with json.dumps(ensure_ascii=False),
      which yields a valid Python literal for the validated names and any
      source path

How to change safely:
    - Any change to the emitted text changes every generated module; keep
      tests/unit/test_emitter.py in step
    - New runtime helpers belong in dbload.eventgen.runtime, not inline in
      the generated code
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from ..schema.types import CompiledSchema, EntitySpec

logger = logging.getLogger(__name__)

RUNTIME_PACKAGE = "dbload.eventgen.runtime"
ERRORS_MODULE = "dbload.eventgen.errors"

SECTION_RULE = "# " + "=" * 77

INDENT = "    "


def _quote(value: str) -> str:
    # ensure_ascii would split characters outside the BMP into surrogate pairs
    return json.dumps(value, ensure_ascii=False)


def _tuple_literal(items: list[str]) -> str:
    if len(items) == 1:
        return f"({items[0]},)"
    return f"({', '.join(items)})"


def _section(title: str) -> list[str]:
    return ["", "", SECTION_RULE, f"# {title}", SECTION_RULE]


def _emit_header(compiled: CompiledSchema) -> list[str]:
    generators = sorted({f.generator for e in compiled.entities for f in e.fields})
    source = "None" if compiled.source_path is None else _quote(compiled.source_path)

    lines = [
        '"""',
        "Event types generated from a schema source.",
        "",
        "Code generated by eventgen; DO NOT EDIT.",
        "Edit the schema source named by TYPE_MAPPING_SOURCE and run",
        "``eventgen generate`` again instead.",
        '"""',
        "",
        "from __future__ import annotations",
        "",
        "import random",
        "import sqlite3",
        "from dataclasses import dataclass",
        "",
        f"from {ERRORS_MODULE} import RetrievalError, StorageError",
        f"from {RUNTIME_PACKAGE}.codec import coerce_nullable",
        f"from {RUNTIME_PACKAGE}.contract import Event, EventConstructor, bind_positional",
    ]
    if generators:
        lines.append(f"from {RUNTIME_PACKAGE}.generators import {', '.join(generators)}")
    lines.extend(
        [
            f"from {RUNTIME_PACKAGE}.storage import auto_migrate",
            "",
            "# Schema source this module was generated from, watched at runtime",
            f"TYPE_MAPPING_SOURCE = {source}",
            "",
            f"SCHEMA_FINGERPRINT = {_quote(compiled.fingerprint)}",
        ]
    )
    return lines


def _emit_constants(entity: EntitySpec) -> list[str]:
    insertable = entity.insertable_fields
    columns = _tuple_literal([_quote(f.original_name) for f in insertable])
    column_defs = _tuple_literal(
        [f"({_quote(name)}, {_quote(column_type)})" for name, column_type in entity.column_definitions]
    )
    widths = _tuple_literal([str(f.width) for f in insertable])
    return [
        f"{INDENT}TABLE = {_quote(entity.original_name)}",
        f"{INDENT}TIME_COLUMN = {_quote(entity.time_field.original_name)}",
        f"{INDENT}COLUMNS = {columns}",
        f"{INDENT}COLUMN_DEFS = {column_defs}",
        f"{INDENT}WIDTHS = {widths}",
        f"{INDENT}INSERT_SQL = {_quote(entity.insert_sql)}",
        f"{INDENT}SELECT_SQL = {_quote(entity.select_sql)}",
    ]


def _emit_fields(entity: EntitySpec) -> list[str]:
    lines: list[str] = []
    for f in entity.fields:
        lines.append(f"{INDENT}# {f.comment}")
        lines.append(f"{INDENT}{f.name}: {f.scalar_type.info.python_type} = 0")
    return lines


def _emit_new_random(entity: EntitySpec) -> list[str]:
    lines = [
        f"{INDENT}@classmethod",
        f"{INDENT}def new_random(cls, rng: random.Random) -> {entity.class_name}:",
        f'{INDENT * 2}"""Generate a new random {entity.class_name}."""',
        f"{INDENT * 2}return cls(",
    ]
    for f in entity.fields:
        lines.append(f"{INDENT * 3}{f.name}={f.generator}(rng),")
    lines.append(f"{INDENT * 2})")
    return lines


def _emit_store(entity: EntitySpec) -> list[str]:
    args = ", ".join(f"self.{f.name}" for f in entity.insertable_fields)
    return [
        f"{INDENT}async def store(self, conn: sqlite3.Connection) -> None:",
        f'{INDENT * 2}"""Insert this event into the {entity.original_name} table."""',
        f"{INDENT * 2}try:",
        f"{INDENT * 3}conn.execute(",
        f"{INDENT * 4}self.INSERT_SQL,",
        f"{INDENT * 4}bind_positional({args}),",
        f"{INDENT * 3})",
        f"{INDENT * 2}except (sqlite3.Error, OverflowError, TypeError, ValueError) as e:",
        f"{INDENT * 3}raise StorageError(",
        f'{INDENT * 4}f"can\'t store event in {{self.TABLE}}: {{e}}", table=self.TABLE',
        f"{INDENT * 3}) from e",
    ]


def _emit_retrieve(entity: EntitySpec) -> list[str]:
    lines = [
        f"{INDENT}@classmethod",
        f"{INDENT}async def retrieve(",
        f"{INDENT * 2}cls, conn: sqlite3.Connection, start: int, end: int",
        f"{INDENT}) -> list[{entity.class_name}]:",
        f'{INDENT * 2}"""Query {entity.original_name} events with '
        f'{entity.time_field.original_name} between start and end, inclusive."""',
        f"{INDENT * 2}try:",
        f"{INDENT * 3}rows = conn.execute(cls.SELECT_SQL, bind_positional(start, end)).fetchall()",
        f"{INDENT * 3}return [",
        f"{INDENT * 4}cls(",
    ]
    for i, f in enumerate(entity.insertable_fields):
        lines.append(f"{INDENT * 5}{f.name}=coerce_nullable(row[{i}], {f.width}),")
    lines.extend(
        [
            f"{INDENT * 4})",
            f"{INDENT * 4}for row in rows",
            f"{INDENT * 3}]",
            f"{INDENT * 2}except (sqlite3.Error, TypeError, ValueError) as e:",
            f"{INDENT * 3}raise RetrievalError(",
            f'{INDENT * 4}f"can\'t retrieve events from {{cls.TABLE}}: {{e}}",',
            f"{INDENT * 4}table=cls.TABLE,",
            f"{INDENT * 4}start=start,",
            f"{INDENT * 4}end=end,",
            f"{INDENT * 3}) from e",
        ]
    )
    return lines


def emit_entity(entity: EntitySpec) -> list[str]:
    """Render the dataclass of one event type."""
    label = _doc_safe(entity.type_label)
    label = f" ({label})" if label else ""
    lines = [
        "",
        "",
        "@dataclass",
        f"class {entity.class_name}(Event):",
        f'{INDENT}"""Event type {_quote(entity.original_name)}{label}."""',
        "",
    ]
    lines.extend(_emit_constants(entity))
    lines.append("")
    lines.extend(_emit_fields(entity))
    lines.append("")
    lines.extend(_emit_new_random(entity))
    lines.append("")
    lines.extend(_emit_store(entity))
    lines.append("")
    lines.extend(_emit_retrieve(entity))
    return lines


def _doc_safe(text: str) -> str:
    # The type label is free text; keep it on one line and out of the quotes
    return " ".join(text.replace("\\", "/").replace('"', "'").split())


def _emit_registry(compiled: CompiledSchema) -> list[str]:
    lines = _section("Registry")
    lines.append("")
    lines.append("# Event name -> function generating a random instance of that event type")
    if compiled.entities:
        lines.append("RANDOM_GENERATOR_CONSTRUCTORS: dict[str, EventConstructor] = {")
        for entity in compiled.entities:
            lines.append(f"{INDENT}{_quote(entity.original_name)}: {entity.class_name}.new_random,")
        lines.append("}")
        lines.append("")
        lines.append("EVENT_TYPES: tuple[type[Event], ...] = (")
        for entity in compiled.entities:
            lines.append(f"{INDENT}{entity.class_name},")
        lines.append(")")
    else:
        lines.append("RANDOM_GENERATOR_CONSTRUCTORS: dict[str, EventConstructor] = {}")
        lines.append("")
        lines.append("EVENT_TYPES: tuple[type[Event], ...] = ()")
    lines.extend(
        [
            "",
            "",
            "def migrate(conn: sqlite3.Connection) -> list[str]:",
            f'{INDENT}"""Create or update the table of every event type.',
            "",
            f"{INDENT}Safe to call repeatedly: a database that already matches the",
            f"{INDENT}event types is left untouched and an empty list is returned.",
            "",
            f"{INDENT}Raises:",
            f"{INDENT * 2}MigrationError: If a table cannot be created or altered",
            f'{INDENT}"""',
            f"{INDENT}applied: list[str] = []",
            f"{INDENT}for event_type in EVENT_TYPES:",
            f"{INDENT * 2}applied.extend(",
            f"{INDENT * 3}auto_migrate(",
            f"{INDENT * 4}conn, event_type.TABLE, event_type.COLUMN_DEFS, event_type.TIME_COLUMN",
            f"{INDENT * 3})",
            f"{INDENT * 2})",
            f"{INDENT}return applied",
        ]
    )
    return lines


def emit_module(compiled: CompiledSchema) -> str:
    """Render the complete generated module.

    Args:
        compiled: Output of compile_schema()

    Returns:
        Python source text, identical for identical input
    """
    lines = _emit_header(compiled)
    lines.extend(_section("Event Types"))
    for entity in compiled.entities:
        lines.extend(emit_entity(entity))
    lines.extend(_emit_registry(compiled))
    return "\n".join(lines) + "\n"


def write_module(compiled: CompiledSchema, output_path: str | Path) -> bool:
    """Write the generated module if its content changed.

    Args:
        compiled: Output of compile_schema()
        output_path: Destination .py file

    Returns:
        True if the file was written, False if it was already up to date
    """
    code = emit_module(compiled)
    path = Path(output_path)
    if path.exists() and path.read_text(encoding="utf-8") == code:
        logger.info(f"Generated module {path} is up to date")
        return False

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(code, encoding="utf-8")
    logger.info(
        f"Wrote {len(compiled.entities)} event types to {path}",
        extra={"fingerprint": compiled.fingerprint},
    )
    return True
