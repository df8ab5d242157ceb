"""
eventgen - schema-driven event types and database load generator.

eventgen compiles a declarative schema of flat, time-stamped event types
into a Python module of typed records with insert/range-query statements,
random constructors and an idempotent migration. The runtime drives that
module with a periodic writer or reader and restarts when the schema source
changes.

Packages:
    schema: Source parsing, validation and compilation to the IR
    codegen: Python module emitter
    runtime: Support code imported by generated modules, loops and monitor
"""

from ._version import __version__

__all__ = ["__version__"]
