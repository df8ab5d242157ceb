"""
Runtime support for generated event modules.

Generated code imports from here:
- contract: Event base class, positional binding, module loader
- codec: Null-safe decoding of stored values
- generators: Synthetic value generators
- storage: Connection with retry, idempotent table migration

The service side lives here too:
- monitor: Schema source change detection
- loops: Periodic random writer and reader
"""

from .codec import coerce_nullable, decode_row, narrow
from .contract import Event, EventConstructor, bind_positional, load_events_module
from .generators import (
    GENERATORS,
    get_generator,
    now_millis,
    random_int64_value,
    random_int_value,
    random_time_value,
)
from .loops import LoopStats, RandomReader, RandomWriter
from .monitor import MonitorState, SchemaChangeMonitor
from .storage import auto_migrate, connect_with_retry, open_connection

__all__ = [
    "Event",
    "EventConstructor",
    "bind_positional",
    "load_events_module",
    "coerce_nullable",
    "decode_row",
    "narrow",
    "GENERATORS",
    "get_generator",
    "now_millis",
    "random_int_value",
    "random_int64_value",
    "random_time_value",
    "auto_migrate",
    "connect_with_retry",
    "open_connection",
    "SchemaChangeMonitor",
    "MonitorState",
    "RandomWriter",
    "RandomReader",
    "LoopStats",
]
