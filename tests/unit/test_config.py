"""Unit tests for configuration."""

import pytest
from pydantic import ValidationError

from dbload.eventgen.config import Settings, parse_duration

ENV_VARS = (
    "DB_PATH",
    "DB_RETRY_COUNT",
    "RANDOM_SEED",
    "WRITE_INTERVAL",
    "READ_INTERVAL",
    "CHECK_INTERVAL",
    "STATS_INTERVAL",
    "LOG_LEVEL",
    "LOG_FORMAT",
    "EVENTS_MODULE",
)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove eventgen variables from the environment."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestParseDuration:
    """Tests for parse_duration."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("5s", 5.0),
            ("200ms", 0.2),
            ("1m30s", 90.0),
            ("1h", 3600.0),
            ("1.5s", 1.5),
            ("2", 2.0),
            (3, 3.0),
            (0.5, 0.5),
        ],
    )
    def test_valid(self, value, expected):
        """Go-style strings and plain numbers are seconds."""
        assert parse_duration(value) == pytest.approx(expected)

    @pytest.mark.parametrize("value", ["", "5x", "s", "5 s", "1m 30s", None])
    def test_invalid(self, value):
        """Anything else is rejected."""
        with pytest.raises(ValueError):
            parse_duration(value)


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self, clean_env):
        """Defaults match the documented values."""
        settings = Settings()
        assert settings.db_path == "eventgen.db"
        assert settings.db_retry_count == 5
        assert settings.random_seed == 0
        assert settings.write_interval == 5.0
        assert settings.read_interval == 5.0
        assert settings.check_interval == 10.0
        assert settings.stats_interval == 10.0
        assert settings.log_format == "json"

    def test_from_env(self, clean_env):
        """Values are read from the environment."""
        clean_env.setenv("DB_PATH", "/data/load.db")
        clean_env.setenv("DB_RETRY_COUNT", "3")
        clean_env.setenv("RANDOM_SEED", "99")
        clean_env.setenv("WRITE_INTERVAL", "250ms")
        clean_env.setenv("CHECK_INTERVAL", "1m")
        clean_env.setenv("LOG_LEVEL", "debug")
        settings = Settings()
        assert settings.db_path == "/data/load.db"
        assert settings.db_retry_count == 3
        assert settings.random_seed == 99
        assert settings.write_interval == pytest.approx(0.25)
        assert settings.check_interval == 60.0
        assert settings.log_level == "DEBUG"

    def test_invalid_duration(self, clean_env):
        """A malformed interval fails validation."""
        clean_env.setenv("READ_INTERVAL", "soon")
        with pytest.raises(ValidationError):
            Settings()

    def test_zero_interval(self, clean_env):
        """Intervals must be positive."""
        clean_env.setenv("WRITE_INTERVAL", "0s")
        with pytest.raises(ValidationError):
            Settings()

    def test_retry_count_positive(self, clean_env):
        """At least one connection attempt."""
        clean_env.setenv("DB_RETRY_COUNT", "0")
        with pytest.raises(ValidationError):
            Settings()

    def test_invalid_log_format(self, clean_env):
        """Only json and text formats exist."""
        clean_env.setenv("LOG_FORMAT", "xml")
        with pytest.raises(ValidationError):
            Settings()

    def test_invalid_log_level(self, clean_env):
        """Unknown log levels are rejected."""
        clean_env.setenv("LOG_LEVEL", "chatty")
        with pytest.raises(ValidationError):
            Settings()

    def test_init_overrides(self, clean_env):
        """Keyword arguments take precedence and go through validation."""
        settings = Settings(write_interval="2s", db_path="x.db")
        assert settings.write_interval == 2.0
        assert settings.db_path == "x.db"
