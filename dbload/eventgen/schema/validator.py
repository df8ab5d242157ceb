"""
Schema validation.

Checks a RawSchema against the scalar type registry and the structural rules
every event must follow before anything is compiled or emitted:
- every field type is a registered scalar type
- every event declares a field literally named ``time``
- event and field names are usable as table and column names
- no two names collapse onto the same generated identifier, table or
  column (SQLite names ignore case)

Invariants:
    - Validation is pure: no I/O, no mutation of the input
    - Events and fields are visited in sorted order so the first error
      reported for a given source is always the same
    - A single failing event fails the whole schema

How to change safely:
    - New rules must produce a SchemaError subclass, never a bare exception
    - Keep collect_errors and validate_schema in sync (the latter raises the
      first item of the former)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..errors import (
    DuplicateNameError,
    InvalidIdentifierError,
    MissingTimeFieldError,
    SchemaError,
    UnknownTypeError,
)
from .naming import field_identifier, is_identifier, to_camel
from .source import RawEvent, RawSchema
from .types import CREATED_AT_FIELD_NAME, TIME_FIELD_NAME, ScalarType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidatedSchema:
    """A RawSchema that passed validation.

    Only validate_schema() should construct this.
    """

    raw: RawSchema

    @property
    def events(self) -> list[RawEvent]:
        return sorted(self.raw.events, key=lambda e: e.name)

    @property
    def path(self) -> str | None:
        return self.raw.path


def _event_errors(event: RawEvent) -> list[SchemaError]:
    """Validate a single event."""
    errors: list[SchemaError] = []

    if not is_identifier(event.name):
        errors.append(InvalidIdentifierError(event.name))

    seen: dict[str, str] = {}
    columns: dict[str, str] = {CREATED_AT_FIELD_NAME: CREATED_AT_FIELD_NAME}
    for name in sorted(event.type_mapping):
        type_name = event.type_mapping[name]

        if not is_identifier(name):
            errors.append(InvalidIdentifierError(event.name, name))
            continue

        if not ScalarType.is_registered(type_name):
            errors.append(UnknownTypeError(event.name, name, str(type_name)))

        if name == CREATED_AT_FIELD_NAME:
            errors.append(
                DuplicateNameError(
                    event.name, f"'{CREATED_AT_FIELD_NAME}' is added by the compiler", name
                )
            )
            continue

        ident = field_identifier(name)
        if ident in seen or ident == CREATED_AT_FIELD_NAME:
            other = seen.get(ident, CREATED_AT_FIELD_NAME)
            errors.append(
                DuplicateNameError(event.name, f"collides with '{other}' as '{ident}'", name)
            )
            continue
        seen[ident] = name

        # SQLite column names ignore case
        column = name.casefold()
        if column in columns:
            errors.append(
                DuplicateNameError(
                    event.name, f"collides with '{columns[column]}' as column '{column}'", name
                )
            )
        else:
            columns[column] = name

    if TIME_FIELD_NAME not in event.type_mapping:
        errors.append(MissingTimeFieldError(event.name))

    return errors


def collect_errors(raw: RawSchema) -> list[SchemaError]:
    """Return every validation error of the schema.

    Args:
        raw: Parsed schema source

    Returns:
        List of SchemaError, empty if the schema is valid
    """
    errors: list[SchemaError] = []
    entity_names: dict[str, str] = {}
    tables: dict[str, str] = {}

    for event in sorted(raw.events, key=lambda e: e.name):
        errors.extend(_event_errors(event))

        canonical = to_camel(event.name)
        # SQLite table names ignore case
        table = event.name.casefold()
        if canonical in entity_names:
            errors.append(
                DuplicateNameError(
                    event.name, f"collides with '{entity_names[canonical]}' as '{canonical}'"
                )
            )
        elif table in tables:
            errors.append(
                DuplicateNameError(
                    event.name, f"collides with '{tables[table]}' as table '{table}'"
                )
            )
        entity_names.setdefault(canonical, event.name)
        tables.setdefault(table, event.name)

    return errors


def validate_schema(raw: RawSchema) -> ValidatedSchema:
    """Validate a schema, raising on the first error.

    Args:
        raw: Parsed schema source

    Returns:
        ValidatedSchema ready for compilation

    Raises:
        SchemaError: The first error found (UnknownTypeError,
            MissingTimeFieldError, ...)
    """
    errors = collect_errors(raw)
    if errors:
        logger.debug(f"Schema validation failed with {len(errors)} error(s)")
        raise errors[0]
    return ValidatedSchema(raw=raw)
