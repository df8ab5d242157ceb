"""
Error types for eventgen.

This module defines every exception raised by the compiler and the runtime:
- EventGenError: Base exception
- SchemaError (and subclasses): Invalid schema source, fatal at build time
- ConnectionError: Database unreachable after all retry attempts
- MigrationError: Generated migration failed at startup
- StorageError / RetrievalError: Runtime insert/query failures
- MonitorReadError: Schema source could not be read while watching it

Invariants:
    - All errors inherit from EventGenError
    - Errors include context for debugging in ``details``
    - SchemaError is raised before any code is emitted
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class EventGenError(Exception):
    """Base exception for all eventgen errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "EVENTGEN_ERROR"
        self.details = details or {}


class SchemaError(EventGenError):
    """The schema source cannot be compiled.

    Raised when:
    - A field references an unknown scalar type
    - An event has no ``time`` field
    - Names are not usable as identifiers or collide
    - The source file is unreadable or malformed
    """

    def __init__(
        self,
        message: str,
        code: str = "SCHEMA_ERROR",
        event: Optional[str] = None,
        field_name: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code=code,
            details={"event": event, "field": field_name},
        )
        self.event = event
        self.field_name = field_name


class UnknownTypeError(SchemaError):
    """A field uses a scalar type name that is not registered."""

    def __init__(self, event: str, field_name: str, type_name: str) -> None:
        super().__init__(
            f"error validating {event}.{field_name}: unknown type '{type_name}'",
            code="UNKNOWN_TYPE",
            event=event,
            field_name=field_name,
        )
        self.type_name = type_name


class MissingTimeFieldError(SchemaError):
    """An event does not declare the ``time`` field."""

    def __init__(self, event: str) -> None:
        super().__init__(
            f"error validating {event}: no time field",
            code="MISSING_TIME_FIELD",
            event=event,
        )


class InvalidIdentifierError(SchemaError):
    """An event or field name cannot be used as a table or column name."""

    def __init__(self, event: str, field_name: Optional[str] = None) -> None:
        name = field_name if field_name is not None else event
        where = f"{event}.{field_name}" if field_name is not None else event
        super().__init__(
            f"error validating {where}: '{name}' is not a valid identifier",
            code="INVALID_IDENTIFIER",
            event=event,
            field_name=field_name,
        )


class DuplicateNameError(SchemaError):
    """Two names map to the same canonical identifier, or a name is reserved."""

    def __init__(self, event: str, reason: str, field_name: Optional[str] = None) -> None:
        where = f"{event}.{field_name}" if field_name else event
        super().__init__(
            f"error validating {where}: {reason}",
            code="DUPLICATE_NAME",
            event=event,
            field_name=field_name,
        )


class MalformedSchemaError(SchemaError):
    """The schema source does not have the expected shape."""

    def __init__(self, message: str, event: Optional[str] = None) -> None:
        super().__init__(message, code="MALFORMED_SCHEMA", event=event)


class SchemaSourceError(SchemaError):
    """The schema source file cannot be read or decoded."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message, code="SCHEMA_SOURCE_ERROR")
        self.details["path"] = path
        self.path = path


class ConnectionError(EventGenError):
    """Failed to connect to the database.

    Raised after every retry attempt has failed.
    """

    def __init__(
        self,
        message: str,
        address: Optional[str] = None,
        attempts: int = 0,
    ) -> None:
        super().__init__(
            message,
            code="CONNECTION_ERROR",
            details={"address": address, "attempts": attempts},
        )
        self.address = address
        self.attempts = attempts


class MigrationError(EventGenError):
    """The generated migration could not be applied."""

    def __init__(self, message: str, table: Optional[str] = None) -> None:
        super().__init__(message, code="MIGRATION_ERROR", details={"table": table})
        self.table = table


class StorageError(EventGenError):
    """Inserting an event failed."""

    def __init__(self, message: str, table: Optional[str] = None) -> None:
        super().__init__(message, code="STORAGE_ERROR", details={"table": table})
        self.table = table


class RetrievalError(EventGenError):
    """Querying events failed."""

    def __init__(
        self,
        message: str,
        table: Optional[str] = None,
        start: Optional[int] = None,
        end: Optional[int] = None,
    ) -> None:
        super().__init__(
            message,
            code="RETRIEVAL_ERROR",
            details={"table": table, "start": start, "end": end},
        )
        self.table = table


class MonitorReadError(EventGenError):
    """The watched schema source could not be read.

    Non-fatal: the monitor keeps polling.
    """

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message, code="MONITOR_READ_ERROR", details={"path": path})
        self.path = path
