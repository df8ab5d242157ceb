"""
Periodic writer and reader loops.

A loop wakes on its operation timer, performs exactly one store() or
retrieve() with a randomly chosen event type, and goes back to sleep. A
second timer logs and resets the counters.

Invariants:
    - Each loop owns its random.Random; it is never shared with another task
    - Event names are sorted before a uniform choice, so a seed always picks
      the same sequence of event types
    - An operation that has started always completes before cancellation is
      observed (store/retrieve never suspend)
    - Operation errors are reported on the error queue and the loop keeps
      its cadence; the owner decides whether they are fatal
"""

from __future__ import annotations

import asyncio
import logging
import random
import sqlite3
from collections.abc import Mapping
from dataclasses import dataclass

from ..errors import RetrievalError, StorageError
from .contract import Event, EventConstructor
from .generators import random_time_value

logger = logging.getLogger(__name__)

STATS_INTERVAL = 10.0

# Seconds subtracted from the start of every random query window
QUERY_WINDOW_PAD = 120


@dataclass
class LoopStats:
    """Counters since the last report."""

    operations: int = 0
    rows: int = 0

    def reset(self) -> LoopStats:
        """Return a snapshot of the counters and zero them."""
        snapshot = LoopStats(self.operations, self.rows)
        self.operations = 0
        self.rows = 0
        return snapshot


class RandomLoop:
    """Common timer and selection logic of the writer and reader."""

    kind = "loop"

    def __init__(
        self,
        conn: sqlite3.Connection,
        constructors: Mapping[str, EventConstructor],
        seed: int = 0,
        stats_interval: float = STATS_INTERVAL,
    ) -> None:
        if not constructors:
            raise ValueError("No event types to choose from")
        self.conn = conn
        self.rng = random.Random(seed)
        self.event_names = sorted(constructors)
        self.stats = LoopStats()
        self.stats_interval = stats_interval
        self._constructors = dict(constructors)

    def choose_event_type(self) -> str:
        return self.event_names[self.rng.randrange(len(self.event_names))]

    def new_random_event(self) -> Event:
        """Build a random instance of a randomly chosen event type."""
        return self._constructors[self.choose_event_type()](self.rng)

    async def tick(self) -> None:
        raise NotImplementedError

    def report(self) -> LoopStats:
        raise NotImplementedError

    async def run(self, interval: float, errors: asyncio.Queue) -> None:
        """Run until cancelled.

        Args:
            interval: Seconds between operations
            errors: Receives StorageError / RetrievalError instances
        """
        loop = asyncio.get_running_loop()
        next_op = loop.time() + interval
        next_report = loop.time() + self.stats_interval
        logger.info(f"Starting {self.kind} loop, one operation every {interval}s")

        try:
            while True:
                await asyncio.sleep(max(0.0, min(next_op, next_report) - loop.time()))
                now = loop.time()

                if now >= next_op:
                    try:
                        await self.tick()
                    except (StorageError, RetrievalError) as e:
                        errors.put_nowait(e)
                    # Missed ticks are dropped, not replayed
                    next_op += interval
                    if next_op <= now:
                        next_op = now + interval

                if now >= next_report:
                    self.report()
                    next_report += self.stats_interval
                    if next_report <= now:
                        next_report = now + self.stats_interval
        except asyncio.CancelledError as e:
            reason = e.args[0] if e.args else "cancelled"
            logger.info(f"{self.kind.capitalize()} loop stopped: {reason}")
            raise


class RandomWriter(RandomLoop):
    """Stores one random event per tick."""

    kind = "writer"

    async def tick(self) -> None:
        event = self.new_random_event()
        await event.store(self.conn)
        self.stats.operations += 1
        self.stats.rows += 1

    def report(self) -> LoopStats:
        snapshot = self.stats.reset()
        logger.info(
            f"wrote {snapshot.rows} events since last report",
            extra={"operations": snapshot.operations, "rows": snapshot.rows},
        )
        return snapshot


class RandomReader(RandomLoop):
    """Runs one random time-range query per tick."""

    kind = "reader"

    def random_query(self) -> tuple[Event, int, int]:
        """Pick an event type and a query window.

        The window spans two random time values, with its start moved back
        by QUERY_WINDOW_PAD seconds.
        """
        event = self.new_random_event()
        a = random_time_value(self.rng)
        b = random_time_value(self.rng)
        start, end = min(a, b), max(a, b)
        return event, start - QUERY_WINDOW_PAD, end

    async def tick(self) -> None:
        event, start, end = self.random_query()
        found = await type(event).retrieve(self.conn, start, end)
        self.stats.operations += 1
        self.stats.rows += len(found)

    def report(self) -> LoopStats:
        snapshot = self.stats.reset()
        logger.info(
            f"ran {snapshot.operations} queries since last report, "
            f"read {snapshot.rows} events",
            extra={"operations": snapshot.operations, "rows": snapshot.rows},
        )
        return snapshot
