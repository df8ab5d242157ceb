"""
Configuration for eventgen.

All settings come from environment variables (no prefix), read once at
startup. Durations accept Go-style strings such as ``5s``, ``200ms``,
``1m30s`` or a plain number of seconds.

Environment variables:
    DB_PATH: SQLite database file (default: eventgen.db)
    DB_RETRY_COUNT: Connection attempts before giving up (default: 5)
    DB_BUSY_TIMEOUT_MS: SQLite lock wait (default: 5000)
    RANDOM_SEED: Seed of the writer/reader random source (default: 0)
    WRITE_INTERVAL: Time between stores (default: 5s)
    READ_INTERVAL: Time between queries (default: 5s)
    CHECK_INTERVAL: Time between schema source polls (default: 10s)
    STATS_INTERVAL: Time between stats reports (default: 10s)
    TYPE_MAPPING_PATH: Schema source used by ``eventgen generate``
    EVENTS_MODULE: Generated module used by ``eventgen writer/reader``
    LOG_LEVEL: Logging level (default: INFO)
    LOG_FORMAT: Log format - json or text (default: json)

Invariants:
    - Invalid values fail validation before any component starts
    - Every interval is strictly positive
"""

from __future__ import annotations

import logging
import re
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(value: Any) -> float:
    """Parse a duration into seconds.

    Example:
        >>> parse_duration("1m30s")
        90.0
        >>> parse_duration("250ms")
        0.25
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if not isinstance(value, str):
        raise ValueError(f"invalid duration {value!r}")

    text = value.strip()
    try:
        return float(text)
    except ValueError:
        pass

    total = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos == 0 or pos != len(text):
        raise ValueError(f"invalid duration {value!r}")
    return total


class Settings(BaseSettings):
    """eventgen configuration."""

    # Database
    db_path: str = Field(default="eventgen.db")
    db_retry_count: int = Field(default=5, ge=1)
    db_busy_timeout_ms: int = Field(default=5000, ge=0)

    # Loops
    random_seed: int = Field(default=0)
    write_interval: float = Field(default=5.0, description="Seconds between stores")
    read_interval: float = Field(default=5.0, description="Seconds between queries")
    check_interval: float = Field(default=10.0, description="Seconds between schema polls")
    stats_interval: float = Field(default=10.0, description="Seconds between stats reports")

    # Generated code
    type_mapping_path: str | None = Field(default=None)
    events_module: str | None = Field(default=None)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: Literal["json", "text"] = Field(default="json")

    model_config = {"env_prefix": "", "case_sensitive": False}

    @field_validator(
        "write_interval", "read_interval", "check_interval", "stats_interval", mode="before"
    )
    @classmethod
    def _parse_interval(cls, value: Any) -> float:
        seconds = parse_duration(value)
        if seconds <= 0:
            raise ValueError(f"interval must be positive, got {value!r}")
        return seconds

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level {value!r}")
        return level

    def log_config(self) -> None:
        """Log the effective configuration."""
        logger.info(
            "eventgen configuration",
            extra={
                "db_path": self.db_path,
                "db_retry_count": self.db_retry_count,
                "random_seed": self.random_seed,
                "write_interval": self.write_interval,
                "read_interval": self.read_interval,
                "check_interval": self.check_interval,
                "stats_interval": self.stats_interval,
                "events_module": self.events_module,
            },
        )
