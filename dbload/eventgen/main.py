"""
eventgen runtime entry point.

Runs the generated event module against the database:
- Connect (with retry) and migrate once
- Writer and/or reader loop
- Schema change monitor

Usage:
    eventgen writer --events events.py
    eventgen reader --events myproject.events

Configuration is entirely via environment variables.
See config.py for all available settings.

Invariants:
    - Nothing runs before the migration succeeded
    - The first of shutdown signal, schema change or operation error ends
      the run; every task is cancelled with that reason before the
      connection is closed
    - A schema change exits with ExitStatus.SCHEMA_CHANGED so the process
      manager regenerates and relaunches

How to change safely:
    - Keep the exit codes stable, deployment scripts match on 36
    - Test shutdown ordering in tests/integration/test_supervisor.py
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sqlite3
from enum import Enum, IntEnum
from types import ModuleType

import json_log_formatter

from .config import Settings
from .runtime.loops import RandomLoop, RandomReader, RandomWriter
from .runtime.monitor import SchemaChangeMonitor
from .runtime.storage import connect_with_retry

logger = logging.getLogger(__name__)


class ExitStatus(IntEnum):
    OK = 0
    ERROR = 1
    SCHEMA_CHANGED = 36


class RunMode(Enum):
    WRITER = "writer"
    READER = "reader"
    BOTH = "both"

    @classmethod
    def from_str(cls, value: str) -> RunMode:
        for mode in cls:
            if mode.value == value.lower():
                return mode
        raise ValueError(f"Invalid run mode '{value}'. Valid modes: {[m.value for m in cls]}")


def setup_logging(settings: Settings) -> None:
    """Configure logging based on configuration.

    Args:
        settings: eventgen settings
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]


class Supervisor:
    """Owns the connection and the tasks of one eventgen run.

    Attributes:
        settings: eventgen settings
        events: Generated events module
        mode: Which loops to run
        errors: Operation errors reported by the loops (fatal)
        monitor_errors: Schema source read errors (logged only)
        changes: Schema change notifications

    Example:
        >>> supervisor = Supervisor(settings, events, RunMode.WRITER)
        >>> status = await supervisor.run()
    """

    def __init__(self, settings: Settings, events: ModuleType, mode: RunMode) -> None:
        self.settings = settings
        self.events = events
        self.mode = mode
        self.conn: sqlite3.Connection | None = None
        self.loops: list[RandomLoop] = []
        self.monitor: SchemaChangeMonitor | None = None

        self.errors: asyncio.Queue = asyncio.Queue()
        self.monitor_errors: asyncio.Queue = asyncio.Queue()
        self.changes: asyncio.Queue = asyncio.Queue()

        self._shutdown_event = asyncio.Event()
        self._tasks: list[asyncio.Task] = []

    def request_shutdown(self) -> None:
        """Request graceful shutdown."""
        self._shutdown_event.set()

    def _build_loops(self, conn: sqlite3.Connection) -> list[tuple[RandomLoop, float]]:
        constructors = self.events.RANDOM_GENERATOR_CONSTRUCTORS
        seed = self.settings.random_seed
        stats = self.settings.stats_interval
        loops: list[tuple[RandomLoop, float]] = []
        if self.mode in (RunMode.WRITER, RunMode.BOTH):
            writer = RandomWriter(conn, constructors, seed=seed, stats_interval=stats)
            loops.append((writer, self.settings.write_interval))
        if self.mode in (RunMode.READER, RunMode.BOTH):
            # A distinct seed keeps the reader sequence independent of the writer
            reader_seed = seed + 1 if self.mode == RunMode.BOTH else seed
            reader = RandomReader(conn, constructors, seed=reader_seed, stats_interval=stats)
            loops.append((reader, self.settings.read_interval))
        return loops

    async def _drain_monitor_errors(self) -> None:
        while True:
            error = await self.monitor_errors.get()
            logger.warning(f"Schema monitor: {error}", extra={"path": error.path})

    def _start(self, conn: sqlite3.Connection) -> None:
        source = self.events.TYPE_MAPPING_SOURCE
        if source is None:
            raise ValueError("Events module does not record its schema source")

        for loop, interval in self._build_loops(conn):
            self.loops.append(loop)
            self._tasks.append(
                asyncio.create_task(loop.run(interval, self.errors), name=f"eventgen-{loop.kind}")
            )

        self.monitor = SchemaChangeMonitor(source)
        self._tasks.append(
            asyncio.create_task(
                self.monitor.watch(
                    self.settings.check_interval, self.monitor_errors, self.changes
                ),
                name="eventgen-monitor",
            )
        )
        self._tasks.append(
            asyncio.create_task(self._drain_monitor_errors(), name="eventgen-monitor-errors")
        )

    async def _wait_first(self) -> tuple[ExitStatus, str]:
        shutdown = asyncio.create_task(self._shutdown_event.wait())
        change = asyncio.create_task(self.changes.get())
        error = asyncio.create_task(self.errors.get())
        waiters = {shutdown, change, error}

        try:
            done, _ = await asyncio.wait(
                waiters | set(self._tasks), return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for waiter in waiters:
                waiter.cancel()

        if shutdown in done:
            return ExitStatus.OK, "shutdown requested"
        if change in done:
            logger.warning(f"Schema source {change.result()} changed, exiting for relaunch")
            return ExitStatus.SCHEMA_CHANGED, "schema source changed"
        if error in done:
            exc = error.result()
            logger.error(f"Operation failed: {exc}", exc_info=exc)
            return ExitStatus.ERROR, "operation failed"

        # A task ended on its own, which only happens on an unexpected error
        for task in done:
            exc = task.exception()
            logger.error(f"Task {task.get_name()} stopped unexpectedly: {exc}", exc_info=exc)
        return ExitStatus.ERROR, "task stopped unexpectedly"

    async def run(self) -> ExitStatus:
        """Run until shutdown, schema change or error.

        Returns:
            ExitStatus of the run

        Raises:
            ConnectionError: If the database stays unreachable
            MigrationError: If the tables cannot be migrated
        """
        logger.info(f"Starting eventgen {self.mode.value}")
        self.settings.log_config()

        self.conn = await connect_with_retry(
            self.settings.db_path,
            max_attempts=self.settings.db_retry_count,
            busy_timeout_ms=self.settings.db_busy_timeout_ms,
        )
        reason = "startup failed"
        try:
            applied = self.events.migrate(self.conn)
            logger.info(f"Migration complete, {len(applied)} change(s) applied")

            self._start(self.conn)
            status, reason = await self._wait_first()
            return status
        finally:
            await self.stop(reason)

    async def stop(self, reason: str = "stopping") -> None:
        """Cancel every task and close the connection."""
        for task in self._tasks:
            task.cancel(reason)
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

        if self.conn is not None:
            self.conn.close()
            self.conn = None
        logger.info(f"eventgen stopped: {reason}")


def serve(settings: Settings, events: ModuleType, mode: RunMode) -> ExitStatus:
    """Run a Supervisor on a fresh event loop with signal handlers installed.

    Returns:
        ExitStatus of the run, ExitStatus.ERROR if startup failed
    """
    supervisor_box: list[Supervisor] = []

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def handle_signal(sig: int) -> None:
        logger.info(f"Received signal {sig}, initiating shutdown")
        for supervisor in supervisor_box:
            supervisor.request_shutdown()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle_signal, sig)

    async def _run() -> ExitStatus:
        supervisor = Supervisor(settings, events, mode)
        supervisor_box.append(supervisor)
        return await supervisor.run()

    try:
        return loop.run_until_complete(_run())
    except Exception as e:
        logger.error(f"eventgen failed: {e}", exc_info=True)
        return ExitStatus.ERROR
    finally:
        loop.close()
