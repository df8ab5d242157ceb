"""
Runtime contract of generated event modules.

A generated module defines one dataclass per event type, all subclasses of
Event, plus module level registries. This module holds the pieces they
share and the loader used by the runtime to import them.

Generated module attributes:
    TYPE_MAPPING_SOURCE: Path of the schema source the module was built from
    SCHEMA_FINGERPRINT: Fingerprint of the compiled schema
    RANDOM_GENERATOR_CONSTRUCTORS: event name -> Event.new_random
    EVENT_TYPES: Generated Event subclasses
    migrate(conn): Idempotent table migration

Invariants:
    - store() binds values positionally: $i is the i-th insertable field
    - retrieve() decodes column i of each row with the width of field i
"""

from __future__ import annotations

import dataclasses
import importlib
import importlib.util
import logging
import random
import sqlite3
import sys
from collections.abc import Callable
from pathlib import Path
from types import ModuleType
from typing import Any, ClassVar

logger = logging.getLogger(__name__)

REQUIRED_ATTRIBUTES = (
    "TYPE_MAPPING_SOURCE",
    "SCHEMA_FINGERPRINT",
    "RANDOM_GENERATOR_CONSTRUCTORS",
    "EVENT_TYPES",
    "migrate",
)


def bind_positional(*values: Any) -> dict[str, Any]:
    """Bind values to the $1..$n placeholders of a statement.

    sqlite3 looks named parameters up without their leading marker, so
    $1 is bound from key "1".
    """
    return {str(i): value for i, value in enumerate(values, start=1)}


class Event:
    """Base class of every generated event dataclass."""

    TABLE: ClassVar[str] = ""
    TIME_COLUMN: ClassVar[str] = "time"
    COLUMNS: ClassVar[tuple[str, ...]] = ()
    COLUMN_DEFS: ClassVar[tuple[tuple[str, str], ...]] = ()
    WIDTHS: ClassVar[tuple[int, ...]] = ()
    INSERT_SQL: ClassVar[str] = ""
    SELECT_SQL: ClassVar[str] = ""

    @classmethod
    def table_name(cls) -> str:
        """Table the event type is stored in."""
        return cls.TABLE

    def values(self) -> tuple[int, ...]:
        """Attribute values in column order."""
        return tuple(getattr(self, f.name) for f in dataclasses.fields(self))

    def to_dict(self) -> dict[str, int]:
        """Column name -> value."""
        return dict(zip(self.COLUMNS, self.values()))

    @classmethod
    def new_random(cls, rng: random.Random) -> Event:
        raise NotImplementedError

    async def store(self, conn: sqlite3.Connection) -> None:
        raise NotImplementedError

    @classmethod
    async def retrieve(cls, conn: sqlite3.Connection, start: int, end: int) -> list[Any]:
        raise NotImplementedError


EventConstructor = Callable[[random.Random], Event]


def _import_path(path: Path) -> ModuleType:
    name = f"eventgen_generated_{path.stem}"
    spec = importlib.util.spec_from_file_location(name, path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot import events module from {path}")
    module = importlib.util.module_from_spec(spec)
    # dataclasses resolves string annotations through sys.modules
    sys.modules[name] = module
    try:
        spec.loader.exec_module(module)
    except BaseException:
        sys.modules.pop(name, None)
        raise
    return module


def load_events_module(ref: str | Path) -> ModuleType:
    """Import a generated events module.

    Args:
        ref: Dotted module name or path to a .py file

    Returns:
        The imported module

    Raises:
        ImportError: If the module cannot be imported
        ValueError: If the module does not expose the generated contract
    """
    ref_str = str(ref)
    if isinstance(ref, Path) or ref_str.endswith(".py") or "/" in ref_str:
        module = _import_path(Path(ref_str).resolve())
    else:
        module = importlib.import_module(ref_str)

    missing = [attr for attr in REQUIRED_ATTRIBUTES if not hasattr(module, attr)]
    if missing:
        raise ValueError(f"Module {ref_str} is not a generated events module (missing {missing})")
    if not module.RANDOM_GENERATOR_CONSTRUCTORS:
        raise ValueError(f"Module {ref_str} defines no event types")

    logger.info(
        f"Loaded events module with {len(module.EVENT_TYPES)} event types",
        extra={"module": module.__name__, "fingerprint": module.SCHEMA_FINGERPRINT},
    )
    return module
