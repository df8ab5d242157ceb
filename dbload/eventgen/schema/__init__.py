"""
Schema module for eventgen.

This module turns a declarative schema source into the EntitySpec IR:
- Scalar type registry and IR types (ScalarType, FieldSpec, EntitySpec)
- Source parsing (JSON/YAML)
- Validation (unknown types, missing time field, identifiers)
- Compilation (deterministic ordering, SQL fragments)

Invariants:
    - Validation completes before any compilation or emission starts
    - Compiling an unchanged source always yields an identical IR

How to change safely:
    - Add scalar types in types.py only
    - Run the compiler tests after touching ordering or naming rules
"""

from .compiler import build_sql_fragments, compile_event, compile_schema, compile_source
from .naming import field_identifier, is_identifier, to_camel, to_snake
from .source import RawEvent, RawSchema, load_schema_source, parse_schema, source_digest
from .types import (
    CREATED_AT_FIELD_NAME,
    SCALAR_TYPES,
    TIME_FIELD_NAME,
    CompiledSchema,
    EntitySpec,
    FieldSpec,
    ScalarType,
    ScalarTypeInfo,
)
from .validator import ValidatedSchema, collect_errors, validate_schema

__all__ = [
    # Types
    "ScalarType",
    "ScalarTypeInfo",
    "SCALAR_TYPES",
    "FieldSpec",
    "EntitySpec",
    "CompiledSchema",
    "TIME_FIELD_NAME",
    "CREATED_AT_FIELD_NAME",
    # Naming
    "to_camel",
    "to_snake",
    "field_identifier",
    "is_identifier",
    # Source
    "RawEvent",
    "RawSchema",
    "parse_schema",
    "load_schema_source",
    "source_digest",
    # Validation
    "ValidatedSchema",
    "validate_schema",
    "collect_errors",
    # Compilation
    "build_sql_fragments",
    "compile_event",
    "compile_schema",
    "compile_source",
]
