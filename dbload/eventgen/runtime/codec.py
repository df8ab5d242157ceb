"""
Null-safe decoding of stored column values.

Every column read back by a generated retrieve() goes through
coerce_nullable(), including created_at. A NULL becomes the scalar zero
value and any other value is wrapped to the declared signed width.

Example:
    >>> coerce_nullable(None, 32)
    0
    >>> coerce_nullable(2**31, 32)
    -2147483648
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any


def narrow(value: int, width: int) -> int:
    """Wrap value to a signed two's complement integer of width bits."""
    if width <= 0:
        raise ValueError(f"width must be > 0, got {width}")
    value &= (1 << width) - 1
    if value >= 1 << (width - 1):
        value -= 1 << width
    return value


def coerce_nullable(value: Any, width: int) -> int:
    """Decode one nullable column value.

    Args:
        value: Value returned by the driver, possibly None
        width: Signed width of the declared scalar type

    Returns:
        0 for None, otherwise int(value) wrapped to width bits

    Raises:
        TypeError, ValueError: If the value is not an integer-like value
    """
    if value is None:
        return 0
    return narrow(int(value), width)


def decode_row(row: Sequence[Any], widths: Sequence[int]) -> list[int]:
    """Decode a result row positionally, column i with widths[i]."""
    if len(row) != len(widths):
        raise ValueError(f"row has {len(row)} columns, expected {len(widths)}")
    return [coerce_nullable(value, width) for value, width in zip(row, widths)]
