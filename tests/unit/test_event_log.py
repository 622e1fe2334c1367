"""
Unit tests for the bounded event log.
"""

import pytest

from cuepoint.event_log import DEFAULT_HISTORY_LIMIT, EventLog


@pytest.mark.unit
class TestEventLog:
    """Tests for EventLog."""

    def test_newest_first(self):
        log = EventLog(limit=5)
        for i in range(3):
            log.append(i)

        assert log.recent() == [2, 1, 0]
        assert list(log) == [2, 1, 0]

    def test_evicts_oldest_at_limit(self):
        """Appending to a full log evicts and returns the oldest entry."""
        log = EventLog(limit=3)
        for i in range(3):
            assert log.append(i) is None

        evicted = log.append(3)

        assert evicted == 0
        assert len(log) == 3
        assert log.recent() == [3, 2, 1]

    def test_default_limit(self):
        log = EventLog()
        for i in range(DEFAULT_HISTORY_LIMIT + 25):
            log.append(i)

        assert len(log) == DEFAULT_HISTORY_LIMIT
        assert log.recent(1) == [DEFAULT_HISTORY_LIMIT + 24]

    def test_recent_limit(self):
        log = EventLog(limit=10)
        for i in range(6):
            log.append(i)

        assert log.recent(2) == [5, 4]
        assert log.recent(0) == []

    def test_filter(self):
        log = EventLog(limit=10)
        for i in range(10):
            log.append(i)

        assert log.filter(lambda n: n % 2 == 0) == [8, 6, 4, 2, 0]
        assert log.filter(lambda n: n % 2 == 0, limit=2) == [8, 6]

    def test_remove_where(self):
        log = EventLog(limit=10)
        for i in range(5):
            log.append(i)

        removed = log.remove_where(lambda n: n < 2)

        assert removed == 2
        assert log.recent() == [4, 3, 2]
        # Capacity is unchanged after removal
        for i in range(20):
            log.append(i)
        assert len(log) == 10

    def test_clear(self):
        log = EventLog(limit=3)
        log.append("a")
        log.clear()

        assert len(log) == 0

    def test_invalid_limit(self):
        with pytest.raises(ValueError):
            EventLog(limit=0)
