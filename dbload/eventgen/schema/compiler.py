"""
Entity compiler.

Turns a ValidatedSchema into the EntitySpec IR consumed by code emitters.

Invariants:
    - Output depends only on the validated input: events and fields are
      processed in sorted order, never in mapping iteration order
    - created_at is appended after the declared fields
    - insert_template and projected_columns come from one pass over the
      insertable fields, so placeholder i always names column i

Example:
    >>> raw = parse_schema({"login": {"type": "analytics",
    ...     "type_mapping": {"time": "timestamp", "user_id": "int"}}})
    >>> entity = compile_schema(validate_schema(raw)).entities[0]
    >>> entity.insert_template, entity.projected_columns
    ('$1, $2, $3', 'time, user_id, created_at')
"""

from __future__ import annotations

import logging
from pathlib import Path

from .naming import field_identifier, to_camel
from .source import RawEvent, load_schema_source
from .types import (
    CREATED_AT_FIELD_NAME,
    CREATED_AT_GENERATOR,
    TIME_FIELD_NAME,
    TIME_GENERATOR,
    CompiledSchema,
    EntitySpec,
    FieldSpec,
    ScalarType,
)
from .validator import ValidatedSchema, validate_schema

logger = logging.getLogger(__name__)


def _declared_field(name: str, type_name: str, position: int) -> FieldSpec:
    scalar_type = ScalarType.from_label(type_name)
    is_time = name == TIME_FIELD_NAME
    return FieldSpec(
        name=field_identifier(name),
        original_name=name,
        scalar_type=scalar_type,
        position=position,
        is_time_field=is_time,
        insertable=True,
        generator=TIME_GENERATOR if is_time else scalar_type.info.generator,
        comment=f"generated based on {name} with type {type_name}",
    )


def _created_at_field(position: int) -> FieldSpec:
    return FieldSpec(
        name=CREATED_AT_FIELD_NAME,
        original_name=CREATED_AT_FIELD_NAME,
        scalar_type=ScalarType.TIMESTAMP,
        position=position,
        insertable=True,
        generator=CREATED_AT_GENERATOR,
        comment="added by the generator so all types have created_at",
    )


def build_sql_fragments(fields: list[FieldSpec]) -> tuple[str, str]:
    """Build (insert_template, projected_columns) in one pass.

    Args:
        fields: Ordered fields of an entity

    Returns:
        Tuple of ("$1, $2, ...", "col1, col2, ...")
    """
    placeholders: list[str] = []
    columns: list[str] = []
    for f in fields:
        if not f.insertable:
            continue
        placeholders.append(f"${len(placeholders) + 1}")
        columns.append(f.original_name)
    return ", ".join(placeholders), ", ".join(columns)


def compile_event(event: RawEvent) -> EntitySpec:
    """Compile a single validated event into an EntitySpec."""
    fields = [
        _declared_field(name, event.type_mapping[name], position)
        for position, name in enumerate(sorted(event.type_mapping))
    ]
    fields.append(_created_at_field(len(fields)))

    insert_template, projected_columns = build_sql_fragments(fields)

    return EntitySpec(
        name=to_camel(event.name),
        original_name=event.name,
        fields=tuple(fields),
        insert_template=insert_template,
        projected_columns=projected_columns,
        type_label=event.type_label,
    )


def compile_schema(validated: ValidatedSchema, source_path: str | None = None) -> CompiledSchema:
    """Compile every event of a validated schema.

    Args:
        validated: Output of validate_schema()
        source_path: Path recorded in the generated code (defaults to the
            path the schema was loaded from)

    Returns:
        CompiledSchema with entities sorted by event name
    """
    entities = tuple(compile_event(event) for event in validated.events)
    compiled = CompiledSchema(
        entities=entities,
        source_path=source_path if source_path is not None else validated.path,
    )
    logger.info(
        f"Compiled {len(entities)} event types, fingerprint={compiled.fingerprint}",
        extra={"source": compiled.source_path},
    )
    return compiled


def compile_source(path: str | Path) -> CompiledSchema:
    """Load, validate and compile a schema source file.

    Raises:
        SchemaError: If the source cannot be read, parsed or validated
    """
    raw = load_schema_source(path)
    return compile_schema(validate_schema(raw))
