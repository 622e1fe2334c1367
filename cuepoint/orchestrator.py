"""
Orchestrator: wires the failover, SCTE-35 and update-queue components with
their collaborators, owns their lifecycle and exposes the read-only status
surface polled by the dashboard.
"""

import logging
from typing import Any, Optional

from cuepoint.config import CuepointConfig, get_config, load_config
from cuepoint.event_log import EventLog
from cuepoint.failover.controller import FailoverController
from cuepoint.failover.models import FailoverEvent, FailoverRule, StreamSource
from cuepoint.failover.monitor import HealthMonitor
from cuepoint.failover.probes import ProbeRegistry
from cuepoint.failover.registry import StreamRegistry
from cuepoint.interfaces import InMemoryScheduleStore, MediaControl, ScheduleStore
from cuepoint.scte35.markers import MarkerIdAllocator
from cuepoint.scte35.models import ProgramConfig, ScheduledEvent
from cuepoint.scte35.scheduler import EventScheduler
from cuepoint.updates.models import ScheduleUpdate
from cuepoint.updates.processor import UpdateQueueProcessor
from cuepoint.utils.clock import Clock, SystemClock
from cuepoint.utils.logging_setup import setup_logging_from_config

logger = logging.getLogger(__name__)


class Orchestrator:
    """
    The orchestration core as one object.

    Usage:
        orchestrator = Orchestrator(media_control, config=config)
        async with orchestrator:
            orchestrator.scheduler.schedule_program_events("morning_show", start)
            ...
    """

    def __init__(
        self,
        media_control: MediaControl,
        store: Optional[ScheduleStore] = None,
        config: Optional[CuepointConfig] = None,
        clock: Optional[Clock] = None,
        probes: Optional[ProbeRegistry] = None,
    ):
        self.config = config or CuepointConfig()
        self.clock = clock or SystemClock()
        self.media_control = media_control
        self.store = store or InMemoryScheduleStore()
        timeouts = self.config.timeouts

        self.registry = StreamRegistry()
        self.failover_events: EventLog[FailoverEvent] = EventLog(
            self.config.failover.event_history_limit
        )
        self.controller = FailoverController(
            self.registry,
            media_control,
            event_log=self.failover_events,
            clock=self.clock,
            redirect_timeout=timeouts.redirect,
        )
        self.monitor = HealthMonitor(
            self.registry,
            self.controller,
            probes=probes,
            clock=self.clock,
            probe_timeout=timeouts.probe,
        )
        self.scheduler = EventScheduler(
            media_control,
            clock=self.clock,
            markers=MarkerIdAllocator(self.config.scte35.marker_id_start),
            tick_interval=self.config.scte35.tick_interval,
            inject_timeout=timeouts.inject,
        )
        self.updates = UpdateQueueProcessor(
            self.store,
            media_control,
            self.scheduler,
            clock=self.clock,
            tick_interval=self.config.updates.tick_interval,
            history_limit=self.config.updates.history_limit,
            emergency_queue_limit=self.config.updates.emergency_queue_limit,
            store_timeout=timeouts.store,
            reload_timeout=timeouts.reload,
        )

        self._running = False
        self._seed_from_config()

    def _seed_from_config(self) -> None:
        for source in self.config.failover.sources:
            self.monitor.add_source(source)
        for rule in self.config.failover.rules:
            self.monitor.add_rule(rule)
        for program in self.config.scte35.programs:
            self.scheduler.register_program_config(program)

        if self.config.failover.sources or self.config.scte35.programs:
            logger.info(
                f"Loaded {len(self.config.failover.sources)} sources, "
                f"{len(self.config.failover.rules)} failover rules, "
                f"{len(self.config.scte35.programs)} SCTE-35 programs from config"
            )

    # Lifecycle

    async def start(self) -> None:
        if self._running:
            return
        self._running = True

        await self.scheduler.start()
        await self.updates.start()
        if self.config.failover.auto_start:
            await self.monitor.start_monitoring()
        logger.info("Orchestrator started")

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False

        await self.monitor.stop_monitoring()
        await self.updates.stop()
        await self.scheduler.stop()
        logger.info("Orchestrator stopped")

    async def __aenter__(self) -> "Orchestrator":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    # Status surface

    def get_sources(self) -> list[StreamSource]:
        return self.monitor.get_sources()

    def get_rules(self) -> list[FailoverRule]:
        return self.monitor.get_rules()

    def get_failover_events(self, limit: int = 50) -> list[FailoverEvent]:
        return self.controller.get_events(limit)

    def get_monitoring_status(self) -> dict[str, Any]:
        return self.monitor.get_status()

    def get_all_scheduled_events(self) -> list[ScheduledEvent]:
        return self.scheduler.get_all_scheduled_events()

    def get_program_config(self, program_id: str) -> Optional[ProgramConfig]:
        return self.scheduler.get_program_config(program_id)

    def get_updates(self, limit: int = 50) -> list[ScheduleUpdate]:
        return self.updates.get_updates(limit)

    def get_status(self) -> dict[str, Any]:
        return {
            "running": self._running,
            "failover": {
                **self.monitor.get_status(),
                "active_sources": self.controller.get_active_sources(),
                "stats": self.controller.get_stats(),
                "events_logged": len(self.failover_events),
            },
            "scte35": self.scheduler.get_status(),
            "updates": self.updates.get_status(),
        }


def create_orchestrator(
    media_control: MediaControl,
    store: Optional[ScheduleStore] = None,
    config_path: Optional[str] = None,
    configure_logging: bool = True,
) -> Orchestrator:
    """
    Build an orchestrator from the configuration file.

    Args:
        media_control: Media server control interface
        store: Schedule store (defaults to an in-memory store)
        config_path: Explicit config file (defaults to config.yaml lookup)
        configure_logging: Apply the ``logging`` config section
    """
    config = load_config(config_path) if config_path else get_config()
    if configure_logging:
        setup_logging_from_config(config.logging)
    return Orchestrator(media_control, store=store, config=config)
