from __future__ import annotations

from collections.abc import Iterator, Sequence
from typing import TypeVar

T = TypeVar("T")


def partition(items: Sequence[T], chunk_size: int) -> Iterator[list[T]]:
    """Yield consecutive chunks of at most *chunk_size* items, in order."""
    if chunk_size < 1:
        raise ValueError("chunk_size must be at least 1")
    for start in range(0, len(items), chunk_size):
        yield list(items[start : start + chunk_size])
