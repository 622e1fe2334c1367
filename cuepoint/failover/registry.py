"""
Stream registry: in-memory catalog of stream sources and failover rules.

Readers always receive copies. Source health fields are written only through
``record_probe_success`` / ``record_probe_failure``, which the health monitor
is the sole caller of.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from cuepoint.failover.models import FailoverRule, HealthStatus, StreamSource

logger = logging.getLogger(__name__)


class StreamRegistry:
    """Sources and rules keyed by id."""

    def __init__(self):
        self._sources: dict[str, StreamSource] = {}
        self._rules: dict[str, FailoverRule] = {}

    # Sources

    def add_source(self, source: StreamSource) -> None:
        if source.id in self._sources:
            logger.info(f"Replacing stream source: {source.id}")
        self._sources[source.id] = source.model_copy(deep=True)
        logger.info(f"Added stream source: {source.name} ({source.type.value})")

    def remove_source(self, source_id: str) -> Optional[StreamSource]:
        source = self._sources.pop(source_id, None)
        if source:
            logger.info(f"Removed stream source: {source_id}")
        return source

    def has_source(self, source_id: str) -> bool:
        return source_id in self._sources

    def get_source(self, source_id: str) -> Optional[StreamSource]:
        source = self._sources.get(source_id)
        return source.model_copy(deep=True) if source else None

    def get_sources(self) -> list[StreamSource]:
        return [s.model_copy(deep=True) for s in self._sources.values()]

    def health_of(self, source_id: str) -> HealthStatus:
        source = self._sources.get(source_id)
        return source.health_status if source else HealthStatus.UNKNOWN

    # Rules

    def add_rule(self, rule: FailoverRule) -> None:
        self._rules[rule.id] = rule.model_copy(deep=True)
        logger.info(f"Added failover rule: {rule.name}")

    def update_rule(self, rule_id: str, updates: dict[str, Any]) -> Optional[FailoverRule]:
        """
        Merge ``updates`` into a rule and re-validate it.

        Returns:
            The updated rule, or None if no such rule exists.
        """
        rule = self._rules.get(rule_id)
        if rule is None:
            logger.warning(f"Failover rule not found: {rule_id}")
            return None

        data = rule.model_dump()
        data.update(updates)
        data["id"] = rule_id
        updated = FailoverRule.model_validate(data)
        self._rules[rule_id] = updated
        logger.info(f"Updated failover rule: {updated.name}")
        return updated.model_copy(deep=True)

    def remove_rule(self, rule_id: str) -> Optional[FailoverRule]:
        rule = self._rules.pop(rule_id, None)
        if rule:
            logger.info(f"Removed failover rule: {rule.name}")
        return rule

    def get_rule(self, rule_id: str) -> Optional[FailoverRule]:
        rule = self._rules.get(rule_id)
        return rule.model_copy(deep=True) if rule else None

    def get_rules(self) -> list[FailoverRule]:
        return [r.model_copy(deep=True) for r in self._rules.values()]

    def rules_for_primary(self, source_id: str) -> list[FailoverRule]:
        return [
            r.model_copy(deep=True)
            for r in self._rules.values()
            if r.primary_source == source_id
        ]

    # Health state

    def record_probe_success(
        self,
        source_id: str,
        checked_at: datetime,
        response_time: Optional[float],
    ) -> Optional[HealthStatus]:
        """
        Mark a source healthy and reset its consecutive error count.

        Returns:
            The status the source had before this probe.
        """
        source = self._sources.get(source_id)
        if source is None:
            return None
        previous = source.health_status
        source.health_status = HealthStatus.HEALTHY
        source.error_count = 0
        source.last_checked = checked_at
        source.response_time = response_time
        return previous

    def record_probe_failure(
        self,
        source_id: str,
        checked_at: datetime,
        response_time: Optional[float],
        max_errors: int,
    ) -> Optional[int]:
        """
        Count a failed probe; the source turns unhealthy once the count
        reaches ``max_errors``.

        Returns:
            The new consecutive error count.
        """
        source = self._sources.get(source_id)
        if source is None:
            return None
        source.error_count += 1
        source.last_checked = checked_at
        source.response_time = response_time
        if source.error_count >= max_errors:
            source.health_status = HealthStatus.UNHEALTHY
        return source.error_count

    def counts(self) -> dict[str, int]:
        return {
            "total_sources": len(self._sources),
            "healthy_sources": sum(
                1 for s in self._sources.values() if s.health_status == HealthStatus.HEALTHY
            ),
            "unhealthy_sources": sum(
                1 for s in self._sources.values() if s.health_status == HealthStatus.UNHEALTHY
            ),
            "total_rules": len(self._rules),
            "active_rules": sum(1 for r in self._rules.values() if r.enabled),
        }
