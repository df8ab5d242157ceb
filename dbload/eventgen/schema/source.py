"""
Schema source parsing.

The schema source is a keyed mapping, one entry per event:

    login:
      type: analytics
      type_mapping:
        time: timestamp
        user_id: int

JSON and YAML files are both accepted. The source is owned by whoever edits
it; this module only reads it.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from ..errors import MalformedSchemaError, SchemaSourceError

YAML_SUFFIXES = {".yaml", ".yml"}


@dataclass(frozen=True)
class RawEvent:
    """One event entry exactly as declared in the source."""

    name: str
    type_label: str
    type_mapping: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RawSchema:
    """Parsed but unvalidated schema source."""

    events: tuple[RawEvent, ...] = ()
    path: str | None = None

    def event_names(self) -> list[str]:
        return sorted(e.name for e in self.events)


def source_digest(data: bytes) -> str:
    """SHA-256 hex digest of the raw source bytes."""
    return hashlib.sha256(data).hexdigest()


def parse_event(name: Any, data: Any) -> RawEvent:
    """Parse one event entry from dict."""
    if not isinstance(name, str):
        raise MalformedSchemaError(f"event name must be a string, got {name!r}")
    if not isinstance(data, dict):
        raise MalformedSchemaError(
            f"event '{name}' must be a mapping with 'type' and 'type_mapping'", event=name
        )
    mapping = data.get("type_mapping", {})
    if mapping is None:
        mapping = {}
    if not isinstance(mapping, dict):
        raise MalformedSchemaError(f"event '{name}': 'type_mapping' must be a mapping", event=name)
    label = data.get("type", "")
    return RawEvent(
        name=name,
        type_label="" if label is None else str(label),
        type_mapping={str(k): v for k, v in mapping.items()},
    )


def parse_schema(data: Any, path: str | None = None) -> RawSchema:
    """Parse a complete schema source from its decoded form.

    Args:
        data: Decoded JSON/YAML document
        path: Where the document came from

    Returns:
        RawSchema with one RawEvent per entry

    Raises:
        MalformedSchemaError: If the document does not have the expected shape
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise MalformedSchemaError("schema source must be a mapping of event name to definition")
    events = tuple(parse_event(name, entry) for name, entry in data.items())
    return RawSchema(events=events, path=path)


def decode_source(content: bytes, suffix: str = ".json") -> Any:
    """Decode source bytes as YAML or JSON depending on the file suffix."""
    text = content.decode("utf-8")
    if suffix.lower() in YAML_SUFFIXES:
        return yaml.safe_load(text)
    return json.loads(text)


def load_schema_source(path: str | Path) -> RawSchema:
    """Read and parse a schema source file.

    Args:
        path: Path to a .json, .yaml or .yml file

    Returns:
        RawSchema whose path is the resolved absolute path

    Raises:
        SchemaSourceError: If the file cannot be read or decoded
        MalformedSchemaError: If the content has the wrong shape
    """
    source = Path(path).resolve()
    try:
        content = source.read_bytes()
    except OSError as e:
        raise SchemaSourceError(f"can't read schema source {source}: {e}", path=str(source)) from e

    try:
        data = decode_source(content, source.suffix)
    except (ValueError, yaml.YAMLError) as e:
        raise SchemaSourceError(f"can't parse schema source {source}: {e}", path=str(source)) from e

    return parse_schema(data, path=str(source))
