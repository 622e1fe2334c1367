"""
SCTE-35 event scheduler.

Turns program configs into time-stamped splice events when a program is
scheduled, and fires due events through the media control interface on a
single-flight tick. Emergency events jump the execution queue.
"""

import itertools
import logging
import uuid
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Optional, Union

from cuepoint.errors import SchedulingFailure
from cuepoint.interfaces import MediaControl, call_with_timeout
from cuepoint.scte35.markers import MarkerIdAllocator
from cuepoint.scte35.models import (
    EMERGENCY_KINDS,
    EventKind,
    EventStatus,
    ProgramConfig,
    ScheduledEvent,
)
from cuepoint.tasks.ticker import Ticker
from cuepoint.utils.clock import Clock, SystemClock, ensure_utc

logger = logging.getLogger(__name__)

EMERGENCY_PROGRAM_ID = "emergency"


class EventScheduler:
    """
    Schedules and executes SCTE-35 events.

    Features:
    - Offset arithmetic from program configs (pre-roll, ad breaks, post-roll)
    - Process-wide marker id allocation
    - Ordered execution, emergency events first
    - Terminal status tracking (executed / failed / cancelled)
    """

    def __init__(
        self,
        media_control: MediaControl,
        clock: Optional[Clock] = None,
        markers: Optional[MarkerIdAllocator] = None,
        tick_interval: float = 1.0,
        inject_timeout: float = 5.0,
    ):
        self._media_control = media_control
        self._clock = clock or SystemClock()
        self._markers = markers or MarkerIdAllocator()
        self._inject_timeout = inject_timeout

        self._configs: dict[str, ProgramConfig] = {}
        self._events: dict[str, ScheduledEvent] = {}
        self._in_flight: set[str] = set()
        self._sequence = itertools.count()

        self._ticker = Ticker(
            name="scte35-events",
            func=self.process_due_events,
            interval_seconds=tick_interval,
            clock=self._clock,
        )

    # Lifecycle

    async def start(self) -> None:
        self._ticker.start()
        logger.info("SCTE-35 schedule event processor started")

    async def stop(self) -> None:
        await self._ticker.aclose()
        logger.info("SCTE-35 schedule event processor stopped")

    @property
    def is_running(self) -> bool:
        return self._ticker.is_running

    # Program configs

    def register_program_config(self, config: ProgramConfig) -> ProgramConfig:
        """Store a program config, allocating marker ids for its ad breaks."""
        config = config.model_copy(deep=True)
        self._markers.reserve(b.marker_id for b in config.ad_breaks if b.marker_id is not None)
        for ad_break in config.ad_breaks:
            if ad_break.marker_id is None:
                ad_break.marker_id = self._markers.allocate()

        self._configs[config.program_id] = config
        logger.info(f"Registered SCTE-35 configuration for program: {config.program_id}")
        return config.model_copy(deep=True)

    def update_program_config(self, program_id: str, patch: dict[str, Any]) -> bool:
        """
        Merge ``patch`` into an existing program config.

        Already scheduled events keep their timestamps; the new settings apply
        the next time the program is scheduled.
        """
        existing = self._configs.get(program_id)
        if existing is None:
            logger.warning(f"Program configuration not found: {program_id}")
            return False

        data = existing.model_dump()
        data.update(patch)
        data["program_id"] = program_id
        self.register_program_config(ProgramConfig.model_validate(data))
        logger.info(f"Updated SCTE-35 configuration for program: {program_id}")
        return True

    def get_program_config(self, program_id: str) -> Optional[ProgramConfig]:
        config = self._configs.get(program_id)
        return config.model_copy(deep=True) if config else None

    def get_all_program_configs(self) -> list[ProgramConfig]:
        return [c.model_copy(deep=True) for c in self._configs.values()]

    # Scheduling

    def schedule_program_events(
        self,
        program_id: str,
        start_time: datetime,
        end_time: Optional[datetime] = None,
    ) -> list[str]:
        """
        Create the events of one airing of a program.

        Args:
            program_id: Configured program
            start_time: When the program starts
            end_time: When it ends (defaults to start + configured duration)

        Returns:
            Ids of the created events, in creation order.
        """
        config = self._configs.get(program_id)
        if config is None or not config.enable_scte35:
            logger.info(f"SCTE-35 not enabled for program: {program_id}")
            return []

        start = ensure_utc(start_time)
        end = ensure_utc(end_time) if end_time is not None else start + config.duration
        created: list[ScheduledEvent] = []

        if config.pre_roll_enabled:
            created.append(self._new_event(
                config,
                EventKind.PRE_ROLL,
                marker_id=self._markers.allocate(),
                scheduled_time=start - config.default_pre_roll,
                duration=config.default_pre_roll,
                prefix=f"preroll_{program_id}",
            ))

        for ad_break in config.ad_breaks:
            duration = config.break_duration(ad_break)
            pre_roll = config.break_pre_roll(ad_break)
            cue_out_time = start + ad_break.offset - pre_roll
            metadata: dict[str, Any] = {"ad_break_id": ad_break.id}
            if ad_break.metadata:
                metadata.update(ad_break.metadata.model_dump(exclude_none=True))

            created.append(self._new_event(
                config,
                EventKind.CUE_OUT,
                marker_id=ad_break.marker_id,
                scheduled_time=cue_out_time,
                duration=duration,
                pre_roll=pre_roll,
                metadata=metadata,
                prefix=f"cueout_{ad_break.id}",
            ))
            created.append(self._new_event(
                config,
                EventKind.CUE_IN,
                marker_id=ad_break.marker_id,
                scheduled_time=cue_out_time + pre_roll + duration,
                metadata=dict(metadata),
                prefix=f"cuein_{ad_break.id}",
            ))

        if config.post_roll_enabled:
            created.append(self._new_event(
                config,
                EventKind.POST_ROLL,
                marker_id=self._markers.allocate(),
                scheduled_time=end,
                prefix=f"postroll_{program_id}",
            ))

        for event in created:
            self._events[event.id] = event

        logger.info(f"Scheduled {len(created)} SCTE-35 events for program: {program_id}")
        return [event.id for event in created]

    def cancel_program_events(self, program_id: str) -> int:
        """Cancel the still-scheduled events of a program; returns how many."""
        cancelled = 0
        for event in self._events.values():
            if event.program_id != program_id:
                continue
            if self._transition(event, EventStatus.CANCELLED):
                cancelled += 1

        logger.info(f"Cancelled {cancelled} SCTE-35 events for program: {program_id}")
        return cancelled

    def add_emergency_event(
        self,
        channel_id: str,
        kind: Union[EventKind, str],
        duration: Optional[Union[timedelta, float]] = None,
    ) -> str:
        """
        Queue a splice signal for immediate execution, ahead of everything
        else that is due.
        """
        kind = EventKind(kind)
        if kind not in EMERGENCY_KINDS:
            raise ValueError(f"Emergency events must be cue_out or cue_in, got {kind.value}")
        if duration is not None and not isinstance(duration, timedelta):
            duration = timedelta(seconds=duration)

        event = ScheduledEvent(
            id=f"emergency_{uuid.uuid4().hex}",
            channel_id=channel_id,
            program_id=EMERGENCY_PROGRAM_ID,
            kind=kind,
            marker_id=self._markers.allocate(),
            scheduled_time=self._clock.now(),
            sequence=next(self._sequence),
            duration=duration,
            emergency=True,
        )
        self._events[event.id] = event
        logger.warning(f"Added emergency SCTE-35 event: {event.id} ({kind.value}) on channel {channel_id}")

        self._ticker.trigger()
        return event.id

    # Execution

    async def process_due_events(self) -> int:
        """
        Execute every scheduled event that is due.

        Returns:
            Number of events attempted.
        """
        now = self._clock.now()
        due = sorted(
            (
                e for e in self._events.values()
                if e.status == EventStatus.SCHEDULED
                and e.scheduled_time <= now
                and e.id not in self._in_flight
            ),
            key=ScheduledEvent.execution_key,
        )

        attempted = 0
        for event in due:
            if event.status != EventStatus.SCHEDULED:
                continue
            await self._execute(event)
            attempted += 1
        return attempted

    async def _execute(self, event: ScheduledEvent) -> None:
        logger.info(f"Executing SCTE-35 event: {event.kind.value} for channel {event.channel_id}")
        self._in_flight.add(event.id)
        try:
            await self._inject(event)
        except SchedulingFailure as e:
            self._transition(event, EventStatus.FAILED, error=e.message)
            logger.error(f"Failed to execute SCTE-35 event: {event.id}: {e.message}")
        else:
            self._transition(event, EventStatus.EXECUTED)
            logger.info(f"SCTE-35 event executed successfully: {event.id}")
        finally:
            self._in_flight.discard(event.id)

    async def _inject(self, event: ScheduledEvent) -> None:
        duration = event.duration.total_seconds() if event.duration is not None else None
        result = await call_with_timeout(
            lambda: self._media_control.inject_marker(
                event.channel_id, event.kind.value, event.marker_id, duration
            ),
            self._inject_timeout,
            f"inject {event.kind.value} #{event.marker_id} on {event.channel_id}",
        )
        if not result.ok:
            raise SchedulingFailure(result.error or "marker injection failed", event.channel_id)

    def _transition(
        self,
        event: ScheduledEvent,
        status: EventStatus,
        error: Optional[str] = None,
    ) -> bool:
        """Move an event out of SCHEDULED; terminal events are left alone."""
        if event.status != EventStatus.SCHEDULED:
            return False
        if status == EventStatus.CANCELLED and event.id in self._in_flight:
            return False

        event.status = status
        if status == EventStatus.EXECUTED:
            event.executed_at = self._clock.now()
        elif status == EventStatus.FAILED:
            event.error = error
        return True

    def _new_event(
        self,
        config: ProgramConfig,
        kind: EventKind,
        marker_id: int,
        scheduled_time: datetime,
        prefix: str,
        duration: Optional[timedelta] = None,
        pre_roll: Optional[timedelta] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> ScheduledEvent:
        return ScheduledEvent(
            id=f"{prefix}_{uuid.uuid4().hex}",
            channel_id=config.channel_id,
            program_id=config.program_id,
            kind=kind,
            marker_id=marker_id,
            scheduled_time=scheduled_time,
            sequence=next(self._sequence),
            duration=duration,
            pre_roll=pre_roll,
            metadata=metadata or {},
        )

    # Queries

    def get_event(self, event_id: str) -> Optional[ScheduledEvent]:
        event = self._events.get(event_id)
        return _snapshot(event) if event else None

    def get_program_events(self, program_id: str) -> list[ScheduledEvent]:
        return [_snapshot(e) for e in self._events.values() if e.program_id == program_id]

    def get_all_scheduled_events(self) -> list[ScheduledEvent]:
        return [_snapshot(e) for e in self._events.values()]

    def clear_executed_events(self) -> int:
        executed = [eid for eid, e in self._events.items() if e.status == EventStatus.EXECUTED]
        for event_id in executed:
            del self._events[event_id]
        logger.info(f"Cleared {len(executed)} executed SCTE-35 events")
        return len(executed)

    def get_status(self) -> dict[str, Any]:
        events = list(self._events.values())
        upcoming = [e.scheduled_time for e in events if e.status == EventStatus.SCHEDULED]
        return {
            "is_running": self._ticker.is_running,
            "is_processing": self._ticker.is_processing,
            "total_events": len(events),
            "scheduled_events": sum(1 for e in events if e.status == EventStatus.SCHEDULED),
            "executed_events": sum(1 for e in events if e.status == EventStatus.EXECUTED),
            "cancelled_events": sum(1 for e in events if e.status == EventStatus.CANCELLED),
            "failed_events": sum(1 for e in events if e.status == EventStatus.FAILED),
            "configured_programs": len(self._configs),
            "next_event_time": min(upcoming).isoformat() if upcoming else None,
            "next_marker_id": self._markers.next_id,
        }


def _snapshot(event: ScheduledEvent) -> ScheduledEvent:
    return replace(event, metadata=dict(event.metadata))
