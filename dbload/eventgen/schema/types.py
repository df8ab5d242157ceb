"""
Core type definitions for the eventgen schema compiler.

This module defines the intermediate representation shared by the compiler
and every code emitter:
- ScalarType: The fixed registry of supported field types
- FieldSpec: A single column of an event table
- EntitySpec: One event type with its derived SQL fragments
- CompiledSchema: The ordered set of entities compiled from one source

Invariants:
    - Exactly one FieldSpec per EntitySpec is the time field
    - The implicit created_at field is always last and TIMESTAMP-typed
    - insert_template and projected_columns are index-aligned with the
      insertable fields
    - Entities are ordered by their original (declared) name

How to change safely:
    - Add new scalar types by extending ScalarType and SCALAR_TYPES together
    - Never change the generator or width of an existing scalar type, the
      stored rows depend on them
    - Keep the IR free of backend syntax; emitters derive their own

Example:
    >>> from dbload.eventgen.schema.types import ScalarType
    >>> ScalarType.from_label("int").info.width
    32
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..errors import MissingTimeFieldError

TIME_FIELD_NAME = "time"
CREATED_AT_FIELD_NAME = "created_at"

TIME_GENERATOR = "random_time_value"
CREATED_AT_GENERATOR = "now_millis"

# Attribute names taken by the generated Event base class
RESERVED_NAMES = frozenset(
    {
        "store",
        "retrieve",
        "table_name",
        "new_random",
        "to_dict",
        "values",
    }
)


class ScalarType(Enum):
    """Supported field types in the schema.

    Values are the labels used in the schema source.
    """

    INTEGER = "int"
    TIMESTAMP = "timestamp"
    BIGINT = "bigint"

    @classmethod
    def from_label(cls, value: str) -> ScalarType:
        """Convert a schema label to a ScalarType.

        Args:
            value: Type label from the schema source

        Returns:
            Corresponding ScalarType

        Raises:
            ValueError: If the label is not registered
        """
        for kind in cls:
            if kind.value == value:
                return kind
        valid = [k.value for k in cls]
        raise ValueError(f"Invalid scalar type '{value}'. Valid types: {valid}")

    @classmethod
    def is_registered(cls, value: Any) -> bool:
        """Whether value is a registered type label."""
        return any(kind.value == value for kind in cls)

    @property
    def info(self) -> ScalarTypeInfo:
        """Storage details for this type."""
        return SCALAR_TYPES[self]

    @property
    def zero_value(self) -> int:
        """Value used when the stored column is NULL."""
        return 0


@dataclass(frozen=True)
class ScalarTypeInfo:
    """Storage representation of a scalar type.

    Attributes:
        width: Signed integer width in bits
        python_type: Annotation used for the record attribute
        optional_type: Annotation of the nullable counterpart read from storage
        column_type: SQL column type used by the migration
        generator: Name of the synthetic-value generator
    """

    width: int
    python_type: str
    optional_type: str
    column_type: str
    generator: str


SCALAR_TYPES: dict[ScalarType, ScalarTypeInfo] = {
    ScalarType.INTEGER: ScalarTypeInfo(
        width=32,
        python_type="int",
        optional_type="int | None",
        column_type="INTEGER",
        generator="random_int_value",
    ),
    ScalarType.TIMESTAMP: ScalarTypeInfo(
        width=64,
        python_type="int",
        optional_type="int | None",
        column_type="BIGINT",
        generator="random_int64_value",
    ),
    ScalarType.BIGINT: ScalarTypeInfo(
        width=64,
        python_type="int",
        optional_type="int | None",
        column_type="BIGINT",
        generator="random_int64_value",
    ),
}


@dataclass(frozen=True)
class FieldSpec:
    """Definition of a single field (column) of an event.

    Attributes:
        name: Canonical identifier, used as the record attribute
        original_name: Name declared in the schema, used as the column name
        scalar_type: The data type of the field
        position: Index of the field in the entity (0-based)
        is_time_field: Whether range queries filter on this field
        insertable: Whether the field is written by store()
        generator: Name of the synthetic-value generator
        comment: Human-readable note carried into generated code
    """

    name: str
    original_name: str
    scalar_type: ScalarType
    position: int
    is_time_field: bool = False
    insertable: bool = True
    generator: str = ""
    comment: str = ""

    def __post_init__(self) -> None:
        """Validate field definition."""
        if not self.name:
            raise ValueError("Field name cannot be empty")
        if self.position < 0:
            raise ValueError(f"position must be >= 0, got {self.position}")

    @property
    def width(self) -> int:
        return self.scalar_type.info.width

    @property
    def column_type(self) -> str:
        return self.scalar_type.info.column_type

    @property
    def optional_type(self) -> str:
        return self.scalar_type.info.optional_type

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation for serialization."""
        result: dict[str, Any] = {
            "name": self.name,
            "original_name": self.original_name,
            "type": self.scalar_type.value,
            "position": self.position,
            "generator": self.generator,
        }
        if self.is_time_field:
            result["time_field"] = True
        if not self.insertable:
            result["insertable"] = False
        return result


@dataclass(frozen=True)
class EntitySpec:
    """Definition of one event type and its SQL fragments.

    Attributes:
        name: Canonical CamelCase identifier
        original_name: Event name declared in the schema, used as table name
        fields: Ordered fields, always ending with created_at
        insert_template: Positional placeholders ("$1, $2, ...")
        projected_columns: Column list ("time, user_id, ...")
        type_label: Informational type label from the schema

    Invariants:
        - Exactly one field has is_time_field=True
        - The last field is created_at with type TIMESTAMP
        - Placeholder i and column i refer to insertable field i

    Example:
        >>> login.insert_sql
        'INSERT INTO login (time, user_id, created_at) VALUES ($1, $2, $3)'
    """

    name: str
    original_name: str
    fields: tuple[FieldSpec, ...]
    insert_template: str
    projected_columns: str
    type_label: str = ""

    def __post_init__(self) -> None:
        """Validate entity definition."""
        time_fields = [f for f in self.fields if f.is_time_field]
        if not time_fields:
            raise MissingTimeFieldError(self.original_name)
        if len(time_fields) > 1:
            raise ValueError(f"Entity '{self.original_name}' has more than one time field")

        last = self.fields[-1]
        if last.original_name != CREATED_AT_FIELD_NAME or last.scalar_type != ScalarType.TIMESTAMP:
            raise ValueError(f"Entity '{self.original_name}' must end with a timestamp created_at")

        placeholders = self.insert_template.split(", ")
        columns = self.projected_columns.split(", ")
        insertable = self.insertable_fields
        if not (len(placeholders) == len(columns) == len(insertable)):
            raise ValueError(
                f"Entity '{self.original_name}': {len(placeholders)} placeholders, "
                f"{len(columns)} columns, {len(insertable)} insertable fields"
            )
        for i, (column, f) in enumerate(zip(columns, insertable), start=1):
            if column != f.original_name or placeholders[i - 1] != f"${i}":
                raise ValueError(
                    f"Entity '{self.original_name}': position {i} is not aligned"
                )

    @property
    def class_name(self) -> str:
        return f"{self.name}Event"

    @property
    def time_field(self) -> FieldSpec:
        return next(f for f in self.fields if f.is_time_field)

    @property
    def insertable_fields(self) -> list[FieldSpec]:
        return [f for f in self.fields if f.insertable]

    @property
    def column_definitions(self) -> list[tuple[str, str]]:
        """(column, column type) pairs in field order."""
        return [(f.original_name, f.column_type) for f in self.fields]

    @property
    def insert_sql(self) -> str:
        return (
            f"INSERT INTO {self.original_name} ({self.projected_columns}) "
            f"VALUES ({self.insert_template})"
        )

    @property
    def select_sql(self) -> str:
        return (
            f"SELECT {self.projected_columns} FROM {self.original_name} "
            f"WHERE {self.time_field.original_name} BETWEEN $1 AND $2"
        )

    def get_field(self, name: str) -> FieldSpec | None:
        """Get a field by canonical or original name."""
        for f in self.fields:
            if name in (f.name, f.original_name):
                return f
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "name": self.name,
            "original_name": self.original_name,
            "type": self.type_label,
            "fields": [f.to_dict() for f in self.fields],
            "insert_template": self.insert_template,
            "projected_columns": self.projected_columns,
        }


@dataclass(frozen=True)
class CompiledSchema:
    """All entities compiled from one schema source.

    Attributes:
        entities: Entities sorted by original name
        source_path: Resolved path of the schema source, if compiled from a file
    """

    entities: tuple[EntitySpec, ...]
    source_path: str | None = None

    def __post_init__(self) -> None:
        names = [e.original_name for e in self.entities]
        if names != sorted(names):
            raise ValueError("Entities must be sorted by original name")

    @property
    def fingerprint(self) -> str:
        """SHA-256 fingerprint of the canonical entity representation."""
        canonical = json.dumps(
            [e.to_dict() for e in self.entities],
            sort_keys=True,
            separators=(",", ":"),
        )
        return f"sha256:{hashlib.sha256(canonical.encode('utf-8')).hexdigest()}"

    def get_entity(self, name: str) -> EntitySpec | None:
        """Get an entity by canonical or original name."""
        for e in self.entities:
            if name in (e.name, e.original_name):
                return e
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source_path,
            "fingerprint": self.fingerprint,
            "entities": [e.to_dict() for e in self.entities],
        }
