"""
Dense ranking helpers shared by the board service and the client core.

A group of ranked items (tasks of one status, or all projects) always carries
positions 0..n-1. Ties during re-ranking resolve by incoming order, never by
timestamp, so the same input always produces the same ranking.
"""
from __future__ import annotations

from typing import Callable, Iterable, List, Sequence, TypeVar

T = TypeVar("T")


def ranked(items: Iterable[T], position: Callable[[T], int] = lambda item: item.position) -> List[T]:
    """Order by position; `sorted` is stable so equal positions keep incoming order."""
    return sorted(items, key=position)


def array_move(seq: Sequence[T], old_index: int, new_index: int) -> List[T]:
    items = list(seq)
    item = items.pop(old_index)
    items.insert(new_index, item)
    return items


def insert_at(seq: Sequence[T], item: T, index: int) -> List[T]:
    items = list(seq)
    index = max(0, min(index, len(items)))
    items.insert(index, item)
    return items


def densify(ordered: Sequence[T], with_position: Callable[[T, int], T]) -> List[T]:
    """Assign positions 0..n-1 following `ordered`."""
    return [with_position(item, i) for i, item in enumerate(ordered)]


def is_dense(positions: Iterable[int]) -> bool:
    values = sorted(positions)
    return values == list(range(len(values)))
