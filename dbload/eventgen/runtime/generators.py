"""
Synthetic value generators.

Each generator takes the random.Random owned by the calling loop, so two
loops never draw from the same sequence and a fixed seed always replays the
same values (time based generators excepted).
"""

from __future__ import annotations

import random
import time
from collections.abc import Callable

INT_VALUE_BOUND = 1_000_000
INT64_VALUE_BOUND = 10**16

# Half width of the window around now used for time fields, in seconds
TIME_JITTER = 60


def random_int_value(rng: random.Random) -> int:
    """0 <= v < 1 000 000."""
    return rng.randrange(INT_VALUE_BOUND)


def random_int64_value(rng: random.Random) -> int:
    """0 <= v < 10^16."""
    return rng.randrange(INT64_VALUE_BOUND)


def random_time_value(rng: random.Random) -> int:
    """Unix seconds within TIME_JITTER seconds of now."""
    return int(time.time()) + rng.randrange(2 * TIME_JITTER) - TIME_JITTER


def now_millis(rng: random.Random | None = None) -> int:
    """Current wall clock in Unix milliseconds. rng is accepted but unused."""
    return time.time_ns() // 1_000_000


GENERATORS: dict[str, Callable[[random.Random], int]] = {
    "random_int_value": random_int_value,
    "random_int64_value": random_int64_value,
    "random_time_value": random_time_value,
    "now_millis": now_millis,
}


def get_generator(name: str) -> Callable[[random.Random], int]:
    """Look up a generator by the name recorded in a FieldSpec."""
    try:
        return GENERATORS[name]
    except KeyError:
        raise ValueError(f"Unknown generator '{name}'. Valid: {sorted(GENERATORS)}") from None
