"""
Shared fixtures for eventgen tests.

Generated modules are written into a temporary directory and imported from
there, the same way the runtime loads them.
"""

import copy
import json
import tempfile
from pathlib import Path

import pytest

from dbload.eventgen.codegen import write_module
from dbload.eventgen.runtime.contract import load_events_module
from dbload.eventgen.runtime.storage import open_connection
from dbload.eventgen.schema import compile_source

LOGIN_SCHEMA = {
    "login": {
        "type": "analytics",
        "type_mapping": {"time": "timestamp", "user_id": "int"},
    },
}

MULTI_SCHEMA = {
    "purchase": {
        "type": "billing",
        "type_mapping": {"time": "timestamp", "user_id": "int", "amount_cents": "bigint"},
    },
    "login": {
        "type": "analytics",
        "type_mapping": {"user_id": "int", "time": "timestamp"},
    },
    "page_view": {
        "type": "analytics",
        "type_mapping": {"time": "timestamp", "page_id": "int", "duration_ms": "bigint"},
    },
}


@pytest.fixture
def tmp_dir():
    """Create temporary working directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def write_schema(tmp_dir):
    """Write a schema source as JSON and return its path."""

    def _write(data, name="type_mapping.json"):
        path = tmp_dir / name
        path.write_text(json.dumps(data, indent=2))
        return path

    return _write


@pytest.fixture
def generate_events(tmp_dir, write_schema):
    """Compile a schema, write the events module and import it."""

    def _generate(data=None, module_name="events"):
        schema = write_schema(LOGIN_SCHEMA if data is None else data)
        output = tmp_dir / f"{module_name}.py"
        write_module(compile_source(schema), output)
        return load_events_module(output)

    return _generate


@pytest.fixture
def conn(tmp_dir):
    """Open a database connection in the temporary directory."""
    connection = open_connection(tmp_dir / "events.db")
    yield connection
    connection.close()


@pytest.fixture
def login_schema():
    """Single event schema."""
    return copy.deepcopy(LOGIN_SCHEMA)


@pytest.fixture
def multi_schema():
    """Three event schema, declared out of order."""
    return copy.deepcopy(MULTI_SCHEMA)
