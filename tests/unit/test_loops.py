"""
Unit tests for the writer and reader loops.

Tests cover:
- Seeded, sorted event type selection
- Writer and reader ticks
- Error reporting and stats
- Cancellation
"""

import asyncio
import random
from dataclasses import dataclass

import pytest

from dbload.eventgen.errors import RetrievalError, StorageError
from dbload.eventgen.runtime.contract import Event
from dbload.eventgen.runtime.loops import (
    QUERY_WINDOW_PAD,
    LoopStats,
    RandomReader,
    RandomWriter,
)


@dataclass
class FakeEvent(Event):
    """In-memory event type recording calls."""

    TABLE = "fake"

    time: int = 0

    stored = []
    queries = []
    fail = False

    @classmethod
    def new_random(cls, rng):
        return cls(time=rng.randrange(100))

    async def store(self, conn):
        if type(self).fail:
            raise StorageError("insert failed", table=self.TABLE)
        type(self).stored.append(self)

    @classmethod
    async def retrieve(cls, conn, start, end):
        if cls.fail:
            raise RetrievalError("query failed", table=cls.TABLE, start=start, end=end)
        cls.queries.append((start, end))
        return [cls(time=start), cls(time=end)]


@pytest.fixture
def fake_event():
    """Fresh FakeEvent state for each test."""
    FakeEvent.stored = []
    FakeEvent.queries = []
    FakeEvent.fail = False
    return FakeEvent


class TestLoopStats:
    """Tests for LoopStats."""

    def test_reset(self):
        """reset returns the counters and zeroes them."""
        stats = LoopStats(operations=3, rows=7)
        snapshot = stats.reset()
        assert (snapshot.operations, snapshot.rows) == (3, 7)
        assert (stats.operations, stats.rows) == (0, 0)


class TestSelection:
    """Tests for event type selection."""

    def test_requires_event_types(self):
        """A loop needs at least one event type."""
        with pytest.raises(ValueError):
            RandomWriter(None, {})

    def test_names_sorted(self, fake_event):
        """Names are sorted before selection."""
        loop = RandomWriter(None, {"b": fake_event.new_random, "a": fake_event.new_random})
        assert loop.event_names == ["a", "b"]

    def test_seed_replays_selection(self, fake_event):
        """The same seed picks the same sequence regardless of mapping order."""
        constructors = {name: fake_event.new_random for name in ("login", "logout", "purchase")}
        reordered = dict(reversed(list(constructors.items())))
        a = RandomWriter(None, constructors, seed=42)
        b = RandomWriter(None, reordered, seed=42)
        assert [a.choose_event_type() for _ in range(20)] == [b.choose_event_type() for _ in range(20)]

    def test_own_random_source(self, fake_event):
        """Each loop owns its random.Random."""
        a = RandomWriter(None, {"e": fake_event.new_random}, seed=1)
        b = RandomReader(None, {"e": fake_event.new_random}, seed=1)
        assert isinstance(a.rng, random.Random)
        assert a.rng is not b.rng


class TestWriter:
    """Tests for RandomWriter."""

    @pytest.mark.asyncio
    async def test_tick_stores_one_event(self, fake_event):
        """One tick stores one event."""
        writer = RandomWriter(None, {"fake": fake_event.new_random})
        await writer.tick()
        assert len(fake_event.stored) == 1
        assert (writer.stats.operations, writer.stats.rows) == (1, 1)

    def test_report_resets(self, fake_event):
        """Reporting logs and resets the counters."""
        writer = RandomWriter(None, {"fake": fake_event.new_random})
        writer.stats.operations = writer.stats.rows = 4
        assert writer.report().rows == 4
        assert writer.stats.rows == 0

    @pytest.mark.asyncio
    async def test_run_stores_until_cancelled(self, fake_event):
        """run() keeps storing at its interval until cancelled."""
        writer = RandomWriter(None, {"fake": fake_event.new_random}, stats_interval=0.02)
        errors: asyncio.Queue = asyncio.Queue()
        task = asyncio.create_task(writer.run(0.01, errors))
        await asyncio.sleep(0.1)
        task.cancel("test done")
        with pytest.raises(asyncio.CancelledError):
            await task
        assert len(fake_event.stored) >= 2
        assert errors.empty()

    @pytest.mark.asyncio
    async def test_errors_reported_and_loop_continues(self, fake_event):
        """Store failures go to the error queue without stopping the loop."""
        fake_event.fail = True
        writer = RandomWriter(None, {"fake": fake_event.new_random})
        errors: asyncio.Queue = asyncio.Queue()
        task = asyncio.create_task(writer.run(0.01, errors))
        try:
            first = await asyncio.wait_for(errors.get(), timeout=2)
            second = await asyncio.wait_for(errors.get(), timeout=2)
            assert isinstance(first, StorageError)
            assert isinstance(second, StorageError)
            assert not task.done()
        finally:
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task


class TestReader:
    """Tests for RandomReader."""

    def test_query_window(self, fake_event):
        """The window is ordered and its start moved back by the pad."""
        reader = RandomReader(None, {"fake": fake_event.new_random}, seed=3)
        for _ in range(50):
            _, start, end = reader.random_query()
            assert start + QUERY_WINDOW_PAD <= end
            assert end - start <= QUERY_WINDOW_PAD + 120

    @pytest.mark.asyncio
    async def test_tick_counts_rows(self, fake_event):
        """One tick runs one query and counts the rows read."""
        reader = RandomReader(None, {"fake": fake_event.new_random})
        await reader.tick()
        assert len(fake_event.queries) == 1
        assert (reader.stats.operations, reader.stats.rows) == (1, 2)

    @pytest.mark.asyncio
    async def test_errors_reported(self, fake_event):
        """Query failures go to the error queue."""
        fake_event.fail = True
        reader = RandomReader(None, {"fake": fake_event.new_random})
        errors: asyncio.Queue = asyncio.Queue()
        task = asyncio.create_task(reader.run(0.01, errors))
        try:
            error = await asyncio.wait_for(errors.get(), timeout=2)
            assert isinstance(error, RetrievalError)
        finally:
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
