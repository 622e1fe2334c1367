"""SCTE-35 splice event id allocation."""

from typing import Iterable

DEFAULT_MARKER_ID_START = 10001

# splice_event_id is a 32-bit field
MAX_MARKER_ID = 0xFFFFFFFF


class MarkerIdAllocator:
    """
    Process-wide, monotonically increasing splice event ids.

    Ids are kept in memory only and restart from ``start`` with the process.
    """

    def __init__(self, start: int = DEFAULT_MARKER_ID_START):
        if not 0 < start <= MAX_MARKER_ID:
            raise ValueError(f"marker id start out of range: {start}")
        self._next = start

    @property
    def next_id(self) -> int:
        return self._next

    def allocate(self) -> int:
        if self._next > MAX_MARKER_ID:
            raise OverflowError("SCTE-35 marker ids exhausted")
        marker_id = self._next
        self._next += 1
        return marker_id

    def reserve(self, marker_ids: Iterable[int]) -> None:
        """Make sure explicitly configured ids are never handed out again."""
        for marker_id in marker_ids:
            if marker_id >= self._next:
                self._next = marker_id + 1
