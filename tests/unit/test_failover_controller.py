"""
Unit tests for the failover controller.
"""

import asyncio
from datetime import datetime, timezone

import pytest

from cuepoint.event_log import EventLog
from cuepoint.failover.controller import FailoverController
from cuepoint.failover.models import FailoverEventKind

from tests.fixtures import FailoverRuleFactory, StreamSourceFactory

CHECKED_AT = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _healthy(registry, *source_ids):
    for source_id in source_ids:
        registry.record_probe_success(source_id, CHECKED_AT, None)


@pytest.fixture
def rule(registry, controller):
    for source_id in ("live", "backup1", "backup2"):
        registry.add_source(StreamSourceFactory.create(id=source_id))
    rule = FailoverRuleFactory.create(
        "live", ["backup1", "backup2"], id="main", channel_id="channel1"
    )
    registry.add_rule(rule)
    controller.seed_active_source("channel1", "live")
    return rule


@pytest.mark.unit
class TestFallbackSelection:
    """Tests for choosing a fallback."""

    def test_first_healthy_in_order(self, registry, controller, rule):
        _healthy(registry, "backup1", "backup2")

        assert controller.find_fallback(rule).id == "backup1"

    def test_skips_unhealthy(self, registry, controller, rule):
        registry.record_probe_failure("backup1", CHECKED_AT, None, 1)
        _healthy(registry, "backup2")

        assert controller.find_fallback(rule).id == "backup2"

    def test_unknown_health_is_not_eligible(self, registry, controller, rule):
        assert controller.find_fallback(rule) is None


@pytest.mark.unit
class TestSwitchToFallback:
    """Tests for switching a channel to its fallback."""

    @pytest.mark.asyncio
    async def test_switch(self, registry, controller, media_control, rule):
        _healthy(registry, "backup1")

        assert await controller.switch_to_fallback(rule) is True

        assert media_control.redirects == [("channel1", "backup1")]
        assert controller.get_active_source("channel1") == "backup1"
        event = controller.get_events()[0]
        assert event.kind == FailoverEventKind.SWITCHED_TO_FALLBACK
        assert event.from_source == "live"
        assert event.to_source == "backup1"
        assert event.reason == "Primary source failed"
        assert controller.get_stats()["switches"] == 1

    @pytest.mark.asyncio
    async def test_switch_delay_waits_on_clock(
        self, registry, media_control, fake_clock, rule
    ):
        controller = FailoverController(registry, media_control, clock=fake_clock)
        delayed = rule.model_copy(update={"switch_delay": 2.0})
        _healthy(registry, "backup1")
        before = fake_clock.now()

        await controller.switch_to_fallback(delayed)

        assert (fake_clock.now() - before).total_seconds() == 2.0

    @pytest.mark.asyncio
    async def test_no_healthy_fallback(self, controller, media_control, rule):
        """Without a healthy fallback the channel stays put and the attempt is logged."""
        assert await controller.switch_to_fallback(rule) is False

        assert media_control.redirects == []
        assert controller.get_active_source("channel1") == "live"
        event = controller.get_events()[0]
        assert event.kind == FailoverEventKind.SWITCH_FAILED
        assert event.to_source is None
        assert event.reason == "No healthy fallback source available"
        assert controller.get_stats()["failed_switches"] == 1

    @pytest.mark.asyncio
    async def test_already_on_fallback(self, registry, controller, media_control, rule):
        _healthy(registry, "backup1")
        await controller.switch_to_fallback(rule)

        assert await controller.switch_to_fallback(rule) is False
        assert media_control.redirects == [("channel1", "backup1")]
        assert len(controller.get_events()) == 1

    @pytest.mark.asyncio
    async def test_redirect_failure_keeps_state(
        self, registry, controller, media_control, rule
    ):
        _healthy(registry, "backup1")
        media_control.redirect_error = "encoder offline"

        assert await controller.switch_to_fallback(rule) is False

        assert controller.get_active_source("channel1") == "live"
        event = controller.get_events()[0]
        assert event.kind == FailoverEventKind.SWITCH_FAILED
        assert event.to_source == "backup1"
        assert event.reason == "Primary source failed: encoder offline"

    @pytest.mark.asyncio
    async def test_redirect_timeout(self, registry, media_control, fake_clock, rule):
        controller = FailoverController(
            registry, media_control, clock=fake_clock, redirect_timeout=0.05
        )
        controller.seed_active_source("channel1", "live")
        _healthy(registry, "backup1")
        media_control.delay = 1.0

        assert await asyncio.wait_for(controller.switch_to_fallback(rule), 2.0) is False

        assert controller.get_active_source("channel1") == "live"
        assert "timed out" in controller.get_events()[0].reason


@pytest.mark.unit
class TestSwitchToSource:
    """Tests for direct switches."""

    @pytest.mark.asyncio
    async def test_recovery_is_counted(self, controller, rule):
        await controller.switch_to_source(
            "channel1", "live", "Auto-recovery to primary",
            kind=FailoverEventKind.RECOVERED_TO_PRIMARY,
        )

        assert controller.get_stats() == {
            "switches": 0,
            "recoveries": 1,
            "failed_switches": 0,
        }
        assert controller.get_events()[0].kind == FailoverEventKind.RECOVERED_TO_PRIMARY

    @pytest.mark.asyncio
    async def test_unknown_source(self, controller, media_control, rule):
        assert await controller.switch_to_source("channel1", "ghost", "manual") is False

        assert media_control.redirects == []
        assert controller.get_events()[0].reason == "manual: Unknown source: ghost"

    def test_seed_does_not_override(self, controller):
        controller.seed_active_source("channel9", "a")
        controller.seed_active_source("channel9", "b")

        assert controller.get_active_sources() == {"channel9": "a"}


@pytest.mark.unit
class TestEventHistory:
    """Tests for the failover event log."""

    def test_history_is_bounded(self, registry, media_control, fake_clock):
        controller = FailoverController(
            registry, media_control, event_log=EventLog(5), clock=fake_clock
        )
        for i in range(8):
            controller.record_event(
                FailoverEventKind.PROBE_FAILED, "channel1", "live", "live", f"failure {i}"
            )

        events = controller.get_events(limit=50)
        assert len(events) == 5
        assert events[0].reason == "failure 7"
        assert events[-1].reason == "failure 3"

    def test_event_serialization(self, controller, fake_clock):
        event = controller.record_event(
            FailoverEventKind.PROBE_RECOVERED, "channel1", "live", "live", "Stream health recovered"
        )

        data = event.to_dict()
        assert data["kind"] == "probe_recovered"
        assert data["timestamp"] == fake_clock.now().isoformat()
        assert data["duration"] is None
