"""
Failover controller.

Selects a healthy fallback by priority, redirects the channel through the
media control interface and records every attempt as a failover event.
Switches are best-effort: a failed redirect leaves state unchanged and the
next health-check tick is the retry path.
"""

import logging
import uuid
from typing import Optional

from cuepoint.errors import SwitchFailure
from cuepoint.event_log import EventLog
from cuepoint.failover.models import (
    FailoverEvent,
    FailoverEventKind,
    FailoverRule,
    HealthStatus,
    StreamSource,
)
from cuepoint.failover.registry import StreamRegistry
from cuepoint.interfaces import MediaControl, call_with_timeout
from cuepoint.utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


class FailoverController:
    """Issues channel switches and tracks the active source of each channel."""

    def __init__(
        self,
        registry: StreamRegistry,
        media_control: MediaControl,
        event_log: Optional[EventLog[FailoverEvent]] = None,
        clock: Optional[Clock] = None,
        redirect_timeout: float = 10.0,
    ):
        self._registry = registry
        self._media_control = media_control
        if event_log is None:
            event_log = EventLog()
        self._events: EventLog[FailoverEvent] = event_log
        self._clock = clock or SystemClock()
        self._redirect_timeout = redirect_timeout
        self._active_sources: dict[str, str] = {}

        self._stats = {
            "switches": 0,
            "recoveries": 0,
            "failed_switches": 0,
        }

    @property
    def events(self) -> EventLog[FailoverEvent]:
        return self._events

    def seed_active_source(self, channel_id: str, source_id: str) -> None:
        """Assume a channel starts on ``source_id`` unless a switch already happened."""
        self._active_sources.setdefault(channel_id, source_id)

    def get_active_source(self, channel_id: str) -> Optional[str]:
        return self._active_sources.get(channel_id)

    def get_active_sources(self) -> dict[str, str]:
        return dict(self._active_sources)

    def find_fallback(self, rule: FailoverRule) -> Optional[StreamSource]:
        """First fallback, in configured priority order, that is healthy."""
        for fallback_id in rule.fallback_sources:
            if self._registry.health_of(fallback_id) == HealthStatus.HEALTHY:
                return self._registry.get_source(fallback_id)
        return None

    async def switch_to_fallback(self, rule: FailoverRule) -> bool:
        """
        Move a rule's channel to its best healthy fallback.

        Returns:
            True if a redirect was issued and succeeded.
        """
        current = self._active_sources.get(rule.channel_id, rule.primary_source)
        fallback = self.find_fallback(rule)

        if fallback is None:
            logger.error(f"No available fallback sources for channel {rule.channel_id}")
            self._stats["failed_switches"] += 1
            self.record_event(
                FailoverEventKind.SWITCH_FAILED,
                rule.channel_id,
                from_source=current,
                to_source=None,
                reason="No healthy fallback source available",
            )
            return False

        if current == fallback.id:
            logger.debug(f"Channel {rule.channel_id} already on fallback {fallback.id}")
            return False

        if rule.switch_delay > 0:
            await self._clock.sleep(rule.switch_delay)

        return await self.switch_to_source(
            rule.channel_id,
            fallback.id,
            "Primary source failed",
            kind=FailoverEventKind.SWITCHED_TO_FALLBACK,
        )

    async def switch_to_source(
        self,
        channel_id: str,
        source_id: str,
        reason: str,
        kind: FailoverEventKind = FailoverEventKind.SWITCHED_TO_FALLBACK,
    ) -> bool:
        """
        Redirect ``channel_id`` to ``source_id``.

        Never raises; failures are recorded as ``switch_failed`` events.
        """
        from_source = self._active_sources.get(channel_id)
        started = self._clock.monotonic()
        logger.info(f"Switching channel {channel_id} to source {source_id}: {reason}")

        try:
            await self._redirect(channel_id, source_id)
        except SwitchFailure as e:
            self._stats["failed_switches"] += 1
            logger.error(f"Failed to switch channel {channel_id} to source {source_id}: {e.message}")
            self.record_event(
                FailoverEventKind.SWITCH_FAILED,
                channel_id,
                from_source=from_source,
                to_source=source_id,
                reason=f"{reason}: {e.message}",
                duration=(self._clock.monotonic() - started) * 1000,
            )
            return False

        self._active_sources[channel_id] = source_id
        if kind == FailoverEventKind.RECOVERED_TO_PRIMARY:
            self._stats["recoveries"] += 1
        else:
            self._stats["switches"] += 1

        self.record_event(
            kind,
            channel_id,
            from_source=from_source,
            to_source=source_id,
            reason=reason,
            duration=(self._clock.monotonic() - started) * 1000,
        )
        logger.info(f"Successfully switched channel {channel_id} to source {source_id}")
        return True

    def record_event(
        self,
        kind: FailoverEventKind,
        channel_id: str,
        from_source: Optional[str],
        to_source: Optional[str],
        reason: str,
        duration: Optional[float] = None,
    ) -> FailoverEvent:
        event = FailoverEvent(
            id=str(uuid.uuid4()),
            channel_id=channel_id,
            timestamp=self._clock.now(),
            kind=kind,
            from_source=from_source,
            to_source=to_source,
            reason=reason,
            duration=duration,
        )
        self._events.append(event)
        logger.debug(f"Failover event: {kind.value} for channel {channel_id}")
        return event

    def get_events(self, limit: int = 50) -> list[FailoverEvent]:
        return self._events.recent(limit)

    def get_stats(self) -> dict[str, int]:
        return dict(self._stats)

    async def _redirect(self, channel_id: str, source_id: str) -> None:
        if not self._registry.has_source(source_id):
            raise SwitchFailure(f"Unknown source: {source_id}", channel_id)

        result = await call_with_timeout(
            lambda: self._media_control.redirect_channel(channel_id, source_id),
            self._redirect_timeout,
            f"redirect {channel_id} -> {source_id}",
        )
        if not result.ok:
            raise SwitchFailure(result.error or "redirect failed", channel_id)
