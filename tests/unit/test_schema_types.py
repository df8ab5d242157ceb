"""
Unit tests for the schema IR.

Tests cover:
- Scalar type registry
- FieldSpec / EntitySpec invariants
- SQL fragments
- CompiledSchema ordering and fingerprint
"""

import pytest

from dbload.eventgen.errors import MissingTimeFieldError
from dbload.eventgen.schema.types import (
    CREATED_AT_FIELD_NAME,
    SCALAR_TYPES,
    CompiledSchema,
    EntitySpec,
    FieldSpec,
    ScalarType,
)


def make_field(name, scalar_type=ScalarType.INTEGER, position=0, is_time=False):
    return FieldSpec(
        name=name,
        original_name=name,
        scalar_type=scalar_type,
        position=position,
        is_time_field=is_time,
        generator=scalar_type.info.generator,
    )


def make_entity(name="login", fields=None, insert_template=None, projected_columns=None):
    if fields is None:
        fields = (
            make_field("time", ScalarType.TIMESTAMP, 0, is_time=True),
            make_field("user_id", ScalarType.INTEGER, 1),
            make_field(CREATED_AT_FIELD_NAME, ScalarType.TIMESTAMP, 2),
        )
    n = len(fields)
    return EntitySpec(
        name=name.title().replace("_", ""),
        original_name=name,
        fields=fields,
        insert_template=insert_template or ", ".join(f"${i}" for i in range(1, n + 1)),
        projected_columns=projected_columns or ", ".join(f.original_name for f in fields),
    )


class TestScalarType:
    """Tests for the scalar type registry."""

    def test_from_label(self):
        """Labels resolve to their scalar type."""
        assert ScalarType.from_label("int") == ScalarType.INTEGER
        assert ScalarType.from_label("timestamp") == ScalarType.TIMESTAMP
        assert ScalarType.from_label("bigint") == ScalarType.BIGINT

    def test_from_label_unknown(self):
        """Unknown labels raise ValueError."""
        with pytest.raises(ValueError, match="Invalid scalar type"):
            ScalarType.from_label("float")

    def test_is_registered(self):
        """is_registered accepts only registered labels."""
        assert ScalarType.is_registered("int")
        assert not ScalarType.is_registered("string")
        assert not ScalarType.is_registered(None)

    def test_widths(self):
        """int is 32 bits, timestamp and bigint 64 bits."""
        assert ScalarType.INTEGER.info.width == 32
        assert ScalarType.TIMESTAMP.info.width == 64
        assert ScalarType.BIGINT.info.width == 64

    def test_generators(self):
        """Each type has its fixed generator."""
        assert ScalarType.INTEGER.info.generator == "random_int_value"
        assert ScalarType.TIMESTAMP.info.generator == "random_int64_value"
        assert ScalarType.BIGINT.info.generator == "random_int64_value"

    def test_registry_complete(self):
        """Every scalar type has storage details and a zero value of 0."""
        assert set(SCALAR_TYPES) == set(ScalarType)
        for kind in ScalarType:
            assert kind.zero_value == 0


class TestFieldSpec:
    """Tests for FieldSpec."""

    def test_empty_name_rejected(self):
        """A field needs a name."""
        with pytest.raises(ValueError):
            make_field("")

    def test_negative_position_rejected(self):
        """Positions are 0-based."""
        with pytest.raises(ValueError):
            make_field("a", position=-1)

    def test_derived_properties(self):
        """width and column_type come from the scalar type."""
        f = make_field("user_id", ScalarType.INTEGER)
        assert f.width == 32
        assert f.column_type == "INTEGER"

    def test_to_dict_marks_time_field(self):
        """Only the time field carries the time_field flag."""
        assert make_field("time", ScalarType.TIMESTAMP, is_time=True).to_dict()["time_field"] is True
        assert "time_field" not in make_field("user_id").to_dict()


class TestEntitySpec:
    """Tests for EntitySpec invariants and SQL."""

    def test_valid_entity(self):
        """A well formed entity exposes its time field and class name."""
        entity = make_entity()
        assert entity.time_field.name == "time"
        assert entity.class_name == "LoginEvent"
        assert [f.name for f in entity.insertable_fields] == ["time", "user_id", "created_at"]

    def test_missing_time_field(self):
        """An entity without time field cannot be built."""
        fields = (
            make_field("user_id", ScalarType.INTEGER, 0),
            make_field(CREATED_AT_FIELD_NAME, ScalarType.TIMESTAMP, 1),
        )
        with pytest.raises(MissingTimeFieldError):
            make_entity(fields=fields)

    def test_two_time_fields(self):
        """Exactly one field is the time field."""
        fields = (
            make_field("time", ScalarType.TIMESTAMP, 0, is_time=True),
            make_field("other", ScalarType.TIMESTAMP, 1, is_time=True),
            make_field(CREATED_AT_FIELD_NAME, ScalarType.TIMESTAMP, 2),
        )
        with pytest.raises(ValueError, match="more than one time field"):
            make_entity(fields=fields)

    def test_created_at_must_be_last(self):
        """created_at is always the last field."""
        fields = (
            make_field(CREATED_AT_FIELD_NAME, ScalarType.TIMESTAMP, 0),
            make_field("time", ScalarType.TIMESTAMP, 1, is_time=True),
        )
        with pytest.raises(ValueError, match="created_at"):
            make_entity(fields=fields)

    def test_created_at_must_be_timestamp(self):
        """created_at is TIMESTAMP-typed."""
        fields = (
            make_field("time", ScalarType.TIMESTAMP, 0, is_time=True),
            make_field(CREATED_AT_FIELD_NAME, ScalarType.INTEGER, 1),
        )
        with pytest.raises(ValueError, match="created_at"):
            make_entity(fields=fields)

    def test_misaligned_placeholders(self):
        """Placeholder count must match the insertable fields."""
        with pytest.raises(ValueError):
            make_entity(insert_template="$1, $2")

    def test_misaligned_columns(self):
        """Column i must name insertable field i."""
        with pytest.raises(ValueError, match="not aligned"):
            make_entity(projected_columns="user_id, time, created_at")

    def test_insert_sql(self):
        """INSERT statement lists columns and placeholders in field order."""
        assert make_entity().insert_sql == (
            "INSERT INTO login (time, user_id, created_at) VALUES ($1, $2, $3)"
        )

    def test_select_sql(self):
        """SELECT filters on the time field with an inclusive range."""
        assert make_entity().select_sql == (
            "SELECT time, user_id, created_at FROM login WHERE time BETWEEN $1 AND $2"
        )

    def test_get_field(self):
        """Fields are found by canonical or original name."""
        entity = make_entity()
        assert entity.get_field("user_id").scalar_type == ScalarType.INTEGER
        assert entity.get_field("missing") is None


class TestCompiledSchema:
    """Tests for CompiledSchema."""

    def test_entities_must_be_sorted(self):
        """Entities are ordered by original name."""
        with pytest.raises(ValueError, match="sorted"):
            CompiledSchema(entities=(make_entity("purchase"), make_entity("login")))

    def test_fingerprint_format(self):
        """Fingerprint is sha256 prefixed."""
        compiled = CompiledSchema(entities=(make_entity(),))
        assert compiled.fingerprint.startswith("sha256:")
        assert len(compiled.fingerprint) == len("sha256:") + 64

    def test_fingerprint_stable(self):
        """Equal entities give equal fingerprints, different ones differ."""
        a = CompiledSchema(entities=(make_entity(),))
        b = CompiledSchema(entities=(make_entity(),))
        c = CompiledSchema(entities=(make_entity("logout"),))
        assert a.fingerprint == b.fingerprint
        assert a.fingerprint != c.fingerprint

    def test_fingerprint_ignores_source_path(self):
        """Moving the source file does not change the fingerprint."""
        a = CompiledSchema(entities=(make_entity(),), source_path="/a/schema.json")
        b = CompiledSchema(entities=(make_entity(),), source_path="/b/schema.json")
        assert a.fingerprint == b.fingerprint

    def test_get_entity(self):
        """Entities are found by canonical or original name."""
        compiled = CompiledSchema(entities=(make_entity(),))
        assert compiled.get_entity("login") is compiled.get_entity("Login")
        assert compiled.get_entity("nope") is None
