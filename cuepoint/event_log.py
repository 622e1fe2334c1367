"""
Bounded, newest-first, append-only history.

Used for failover events, schedule updates and emergency content. Once the
limit is reached the oldest entry is evicted.
"""

from collections import deque
from typing import Callable, Generic, Iterator, Optional, TypeVar

T = TypeVar("T")

DEFAULT_HISTORY_LIMIT = 100


class EventLog(Generic[T]):
    """Append-only log capped at ``limit`` entries."""

    def __init__(self, limit: int = DEFAULT_HISTORY_LIMIT):
        if limit <= 0:
            raise ValueError("limit must be positive")
        self._limit = limit
        self._entries: deque[T] = deque(maxlen=limit)

    @property
    def limit(self) -> int:
        return self._limit

    def append(self, entry: T) -> Optional[T]:
        """
        Add an entry as the newest one.

        Returns:
            The evicted entry, if the log was full.
        """
        evicted = None
        if len(self._entries) == self._limit:
            evicted = self._entries[-1]
        self._entries.appendleft(entry)
        return evicted

    def recent(self, limit: Optional[int] = None) -> list[T]:
        """Newest-first list of at most ``limit`` entries."""
        entries = list(self._entries)
        if limit is None:
            return entries
        return entries[:max(limit, 0)]

    def filter(self, predicate: Callable[[T], bool], limit: Optional[int] = None) -> list[T]:
        matches = [entry for entry in self._entries if predicate(entry)]
        if limit is None:
            return matches
        return matches[:max(limit, 0)]

    def remove_where(self, predicate: Callable[[T], bool]) -> int:
        """Drop every entry matching ``predicate``; returns how many were dropped."""
        kept = [entry for entry in self._entries if not predicate(entry)]
        removed = len(self._entries) - len(kept)
        self._entries = deque(kept, maxlen=self._limit)
        return removed

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._entries))
