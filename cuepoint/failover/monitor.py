"""
Health monitor.

Runs one ticker per enabled failover rule. Every tick probes the rule's
primary source, updates its health state and asks the failover controller
to switch when the consecutive-failure threshold is reached, or to recover
back to the primary once it is healthy again.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Optional

from cuepoint.errors import describe_error
from cuepoint.failover.controller import FailoverController
from cuepoint.failover.models import (
    FailoverEventKind,
    FailoverRule,
    HealthStatus,
    StreamSource,
)
from cuepoint.failover.probes import ProbeRegistry
from cuepoint.failover.registry import StreamRegistry
from cuepoint.tasks.ticker import Ticker
from cuepoint.utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


class HealthMonitor:
    """
    Probes primary sources and drives failover.

    Usage:
        monitor = HealthMonitor(registry, controller)
        monitor.add_source(live)
        monitor.add_source(backup)
        monitor.add_rule(rule)
        await monitor.start_monitoring()
    """

    def __init__(
        self,
        registry: StreamRegistry,
        controller: FailoverController,
        probes: Optional[ProbeRegistry] = None,
        clock: Optional[Clock] = None,
        probe_timeout: float = 5.0,
    ):
        self._registry = registry
        self._controller = controller
        self._probes = probes or ProbeRegistry.default()
        self._clock = clock or SystemClock()
        self._probe_timeout = probe_timeout
        self._tickers: dict[str, Ticker] = {}
        self._monitoring = False

    @property
    def is_monitoring(self) -> bool:
        return self._monitoring

    # Sources

    def add_source(self, source: StreamSource) -> None:
        self._registry.add_source(source)
        for rule in self._registry.rules_for_primary(source.id):
            self._sync_ticker(rule)

    def remove_source(self, source_id: str) -> bool:
        """Remove a source and stop every ticker probing it."""
        removed = self._registry.remove_source(source_id)
        for rule in self._registry.rules_for_primary(source_id):
            self._stop_ticker(rule.id)
        return removed is not None

    # Rules

    def add_rule(self, rule: FailoverRule) -> None:
        self._registry.add_rule(rule)
        self._controller.seed_active_source(rule.channel_id, rule.primary_source)
        self._sync_ticker(rule)

    def update_rule(self, rule_id: str, updates: dict[str, Any]) -> Optional[FailoverRule]:
        """
        Apply a partial update; the rule's ticker is restarted with the new
        settings, or stopped if the rule got disabled.
        """
        updated = self._registry.update_rule(rule_id, updates)
        if updated is None:
            return None
        self._stop_ticker(rule_id)
        self._controller.seed_active_source(updated.channel_id, updated.primary_source)
        self._sync_ticker(updated)
        return updated

    def remove_rule(self, rule_id: str) -> bool:
        self._stop_ticker(rule_id)
        return self._registry.remove_rule(rule_id) is not None

    # Lifecycle

    async def start_monitoring(self) -> None:
        if self._monitoring:
            logger.info("Failover monitoring is already running")
            return

        self._monitoring = True
        logger.info("Starting failover monitoring...")
        for rule in self._registry.get_rules():
            self._sync_ticker(rule)

    async def stop_monitoring(self) -> None:
        self._monitoring = False
        tickers = list(self._tickers.values())
        self._tickers.clear()
        for ticker in tickers:
            ticker.stop()
        await asyncio.gather(*(t.aclose() for t in tickers), return_exceptions=True)
        logger.info("Stopped failover monitoring")

    # Probing

    async def check_rule(self, rule_id: str) -> Optional[bool]:
        """
        Run one health check for a rule.

        Returns:
            The probe outcome, or None when the rule or its primary is missing.
        """
        rule = self._registry.get_rule(rule_id)
        if rule is None:
            logger.warning(f"Failover rule not found: {rule_id}")
            return None

        source = self._registry.get_source(rule.primary_source)
        if source is None:
            logger.warning(f"Primary source not found: {rule.primary_source}")
            return None

        healthy, error, response_time, checked_at = await self._timed_probe(source)

        if healthy:
            await self._on_probe_success(rule, checked_at, response_time)
        else:
            await self._on_probe_failure(rule, checked_at, response_time, error)
        return healthy

    async def check_source(self, source_id: str, max_errors: int = 1) -> Optional[bool]:
        """
        Probe any registered source, typically a fallback, and record its health.

        Rules only probe their primary, so fallbacks are healthy either by
        declaration at registration or through this check.

        Returns:
            The probe outcome, or None when the source is missing.
        """
        source = self._registry.get_source(source_id)
        if source is None:
            logger.warning(f"Stream source not found: {source_id}")
            return None

        healthy, error, response_time, checked_at = await self._timed_probe(source)

        if healthy:
            self._registry.record_probe_success(source_id, checked_at, response_time)
        else:
            count = self._registry.record_probe_failure(
                source_id, checked_at, response_time, max_errors
            )
            logger.warning(f"Health check failed for {source_id} ({count}/{max_errors}): {error}")
        return healthy

    async def _timed_probe(
        self, source: StreamSource
    ) -> tuple[bool, Optional[str], float, datetime]:
        started = self._clock.monotonic()
        healthy, error = await self._probe(source)
        response_time = (self._clock.monotonic() - started) * 1000
        return healthy, error, response_time, self._clock.now()

    async def _probe(self, source: StreamSource) -> tuple[bool, Optional[str]]:
        try:
            healthy = await asyncio.wait_for(
                self._probes.probe(source), timeout=self._probe_timeout
            )
        except asyncio.TimeoutError:
            return False, f"Probe timed out after {self._probe_timeout}s"
        except Exception as e:
            logger.debug(f"Health check failed for {source.id}: {describe_error(e)}")
            return False, describe_error(e)

        if healthy:
            return True, None
        return False, "Probe reported source unhealthy"

    async def _on_probe_success(
        self, rule: FailoverRule, checked_at: datetime, response_time: float
    ) -> None:
        previous = self._registry.record_probe_success(
            rule.primary_source, checked_at, response_time
        )
        if previous == HealthStatus.UNHEALTHY:
            logger.info(
                f"Primary source {rule.primary_source} recovered on channel {rule.channel_id}"
            )
            self._controller.record_event(
                FailoverEventKind.PROBE_RECOVERED,
                rule.channel_id,
                from_source=rule.primary_source,
                to_source=rule.primary_source,
                reason="Stream health recovered",
            )

        # Retried on every healthy tick until the redirect succeeds
        active = self._controller.get_active_source(rule.channel_id)
        if rule.auto_recovery and active != rule.primary_source:
            await self._controller.switch_to_source(
                rule.channel_id,
                rule.primary_source,
                "Auto-recovery to primary",
                kind=FailoverEventKind.RECOVERED_TO_PRIMARY,
            )

    async def _on_probe_failure(
        self,
        rule: FailoverRule,
        checked_at: datetime,
        response_time: float,
        error: Optional[str],
    ) -> None:
        count = self._registry.record_probe_failure(
            rule.primary_source, checked_at, response_time, rule.max_errors
        )
        if count is None:
            return

        reason = f"Health check failed ({count}/{rule.max_errors})"
        if error:
            reason = f"{reason}: {error}"
        logger.warning(f"{rule.primary_source} on channel {rule.channel_id}: {reason}")

        self._controller.record_event(
            FailoverEventKind.PROBE_FAILED,
            rule.channel_id,
            from_source=rule.primary_source,
            to_source=rule.primary_source,
            reason=reason,
        )

        if count >= rule.max_errors:
            await self._controller.switch_to_fallback(rule)

    # Tickers

    def _sync_ticker(self, rule: FailoverRule) -> None:
        """Make the rule's ticker state match the rule and monitoring state."""
        should_run = (
            self._monitoring
            and rule.enabled
            and self._registry.has_source(rule.primary_source)
        )
        if not should_run:
            self._stop_ticker(rule.id)
            return
        if rule.id in self._tickers:
            return

        rule_id = rule.id
        ticker = Ticker(
            name=f"health:{rule_id}",
            func=lambda: self.check_rule(rule_id),
            interval_seconds=rule.health_check_interval,
            clock=self._clock,
        )
        self._tickers[rule_id] = ticker
        ticker.start()

    def _stop_ticker(self, rule_id: str) -> None:
        ticker = self._tickers.pop(rule_id, None)
        if ticker is not None:
            ticker.stop()

    # Status

    def get_sources(self) -> list[StreamSource]:
        return self._registry.get_sources()

    def get_rules(self) -> list[FailoverRule]:
        return self._registry.get_rules()

    def get_status(self) -> dict[str, Any]:
        counts = self._registry.counts()
        return {
            "is_monitoring": self._monitoring,
            "active_rules": counts["active_rules"],
            "total_rules": counts["total_rules"],
            "total_sources": counts["total_sources"],
            "healthy_sources": counts["healthy_sources"],
            "unhealthy_sources": counts["unhealthy_sources"],
            "running_checks": sorted(self._tickers),
        }
