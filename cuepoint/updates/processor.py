"""
Schedule update queue processor.

Mutations are queued with a validated payload and applied asynchronously:
insert/modify/delete go to the schedule store followed by a reload on the
media server, emergency content goes to the SCTE-35 scheduler's immediate
path. Each update moves pending -> processing -> completed|failed exactly
once.
"""

import logging
import uuid
from collections import deque
from datetime import timedelta
from typing import Any, Optional, Protocol, Union

from cuepoint.errors import UpdateFailure, describe_error
from cuepoint.event_log import DEFAULT_HISTORY_LIMIT, EventLog
from cuepoint.interfaces import MediaControl, ScheduleStore, call_with_timeout
from cuepoint.tasks.ticker import Ticker
from cuepoint.updates.models import (
    EmergencyContent,
    ScheduleUpdate,
    UpdateKind,
    UpdateStatus,
    parse_payload,
)
from cuepoint.utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


class EmergencyRouter(Protocol):
    """Where emergency content is sent for immediate signalling."""

    def add_emergency_event(
        self,
        channel_id: str,
        kind: str,
        duration: Optional[Union[timedelta, float]] = None,
    ) -> str:
        ...


class UpdateQueueProcessor:
    """
    Asynchronous schedule mutation queue.

    Features:
    - Tagged-union payloads validated when queued
    - FIFO, single-flight processing
    - Terminal status tracking with bounded history
    - Emergency content routed to the SCTE-35 scheduler
    """

    def __init__(
        self,
        store: ScheduleStore,
        media_control: MediaControl,
        emergency_router: EmergencyRouter,
        clock: Optional[Clock] = None,
        tick_interval: float = 1.0,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        emergency_queue_limit: int = DEFAULT_HISTORY_LIMIT,
        store_timeout: float = 10.0,
        reload_timeout: float = 10.0,
    ):
        self._store = store
        self._media_control = media_control
        self._emergency_router = emergency_router
        self._clock = clock or SystemClock()
        self._store_timeout = store_timeout
        self._reload_timeout = reload_timeout

        # Work queue is kept apart from the history so eviction never drops work
        self._pending: deque[ScheduleUpdate] = deque()
        self._history: EventLog[ScheduleUpdate] = EventLog(history_limit)
        self._emergency_queue: EventLog[EmergencyContent] = EventLog(emergency_queue_limit)

        self._stats = {
            "updates_queued": 0,
            "updates_completed": 0,
            "updates_failed": 0,
        }

        self._ticker = Ticker(
            name="schedule-updates",
            func=self.process_updates,
            interval_seconds=tick_interval,
            clock=self._clock,
        )

    # Lifecycle

    async def start(self) -> None:
        self._ticker.start()
        logger.info("Schedule update processor started")

    async def stop(self) -> None:
        await self._ticker.aclose()
        logger.info("Schedule update processor stopped")

    @property
    def is_running(self) -> bool:
        return self._ticker.is_running

    # Queueing

    def queue_update(
        self,
        channel_id: str,
        kind: Union[UpdateKind, str],
        payload: Any,
    ) -> str:
        """
        Queue a schedule mutation.

        Raises:
            ValueError: unknown kind
            pydantic.ValidationError: payload does not match the kind
        """
        kind = UpdateKind(kind)
        update = ScheduleUpdate(
            id=f"update_{uuid.uuid4().hex}",
            channel_id=channel_id,
            kind=kind,
            timestamp=self._clock.now(),
            payload=parse_payload(kind, payload),
        )

        self._pending.append(update)
        self._history.append(update)
        self._stats["updates_queued"] += 1
        logger.info(f"Queued schedule update: {update.id} ({kind.value}) for channel {channel_id}")

        if kind == UpdateKind.EMERGENCY:
            self._ticker.trigger()
        return update.id

    def insert_program(
        self,
        channel_id: str,
        program_data: dict[str, Any],
        reason: str = "",
        position: Optional[int] = None,
    ) -> str:
        return self.queue_update(channel_id, UpdateKind.INSERT, {
            "program_data": program_data,
            "position": position,
            "reason": reason,
        })

    def modify_program(
        self, channel_id: str, program_id: str, new_data: dict[str, Any], reason: str = ""
    ) -> str:
        return self.queue_update(channel_id, UpdateKind.MODIFY, {
            "program_id": program_id,
            "new_data": new_data,
            "reason": reason,
        })

    def delete_program(self, channel_id: str, program_id: str, reason: str = "") -> str:
        return self.queue_update(channel_id, UpdateKind.DELETE, {
            "program_id": program_id,
            "reason": reason,
        })

    def insert_emergency_content(
        self, channel_id: str, content: Union[EmergencyContent, dict[str, Any]]
    ) -> str:
        return self.queue_update(channel_id, UpdateKind.EMERGENCY, content)

    # Processing

    async def process_updates(self) -> int:
        """
        Process every pending update, oldest first.

        Returns:
            Number of updates that reached a terminal status.
        """
        processed = 0
        while self._pending:
            update = self._pending.popleft()
            if update.is_terminal:
                continue
            await self._process(update)
            processed += 1
        return processed

    async def _process(self, update: ScheduleUpdate) -> None:
        update.status = UpdateStatus.PROCESSING
        update.started_at = self._clock.now()
        logger.info(f"Processing schedule update: {update.kind.value} for channel {update.channel_id}")

        try:
            if update.kind == UpdateKind.EMERGENCY:
                await self._handle_emergency(update)
            else:
                await self._apply_mutation(update)
        except Exception as e:
            update.status = UpdateStatus.FAILED
            update.error = e.message if isinstance(e, UpdateFailure) else describe_error(e)
            self._stats["updates_failed"] += 1
            logger.error(f"Schedule update failed: {update.id}: {update.error}")
        else:
            update.status = UpdateStatus.COMPLETED
            self._stats["updates_completed"] += 1
            logger.info(f"Schedule update completed: {update.id}")
        finally:
            update.completed_at = self._clock.now()

    async def _apply_mutation(self, update: ScheduleUpdate) -> None:
        channel_id = update.channel_id
        payload = update.payload.model_dump(exclude={"kind"})

        result = await call_with_timeout(
            lambda: self._store.apply_mutation(channel_id, update.kind.value, payload),
            self._store_timeout,
            f"apply {update.kind.value} on {channel_id}",
        )
        if not result.ok:
            raise UpdateFailure(f"Mutation failed: {result.error}", channel_id)

        result = await call_with_timeout(
            lambda: self._store.persist(channel_id),
            self._store_timeout,
            f"persist schedule of {channel_id}",
        )
        if not result.ok:
            raise UpdateFailure(f"Persist failed: {result.error}", channel_id)

        result = await call_with_timeout(
            lambda: self._media_control.reload_schedule(channel_id),
            self._reload_timeout,
            f"reload schedule of {channel_id}",
        )
        if not result.ok:
            raise UpdateFailure(f"Reload failed: {result.error}", channel_id)

    async def _handle_emergency(self, update: ScheduleUpdate) -> None:
        content: EmergencyContent = update.payload
        if content.start_time is None:
            content = content.model_copy(update={"start_time": self._clock.now()})

        logger.warning(f"Inserting emergency content: {content.title} for channel {update.channel_id}")
        try:
            event_id = self._emergency_router.add_emergency_event(
                update.channel_id, "cue_out", content.duration
            )
        except Exception as e:
            raise UpdateFailure(
                f"Emergency routing failed: {describe_error(e)}", update.channel_id
            ) from e

        self._emergency_queue.append(content)
        logger.info(f"Emergency content routed as SCTE-35 event {event_id}: {content.title}")

    # Queries

    def get_update(self, update_id: str) -> Optional[ScheduleUpdate]:
        for update in list(self._history) + list(self._pending):
            if update.id == update_id:
                return _snapshot(update)
        return None

    def get_updates(self, limit: int = 50) -> list[ScheduleUpdate]:
        return [_snapshot(u) for u in self._history.recent(limit)]

    def get_channel_updates(self, channel_id: str, limit: int = 20) -> list[ScheduleUpdate]:
        return [
            _snapshot(u)
            for u in self._history.filter(lambda u: u.channel_id == channel_id, limit)
        ]

    def get_emergency_queue(self) -> list[EmergencyContent]:
        return [c.model_copy(deep=True) for c in self._emergency_queue.recent()]

    def clear_completed(self) -> int:
        removed = self._history.remove_where(lambda u: u.status == UpdateStatus.COMPLETED)
        logger.info(f"Cleared {removed} completed schedule updates")
        return removed

    def clear_emergency_queue(self) -> None:
        self._emergency_queue.clear()
        logger.info("Cleared emergency content queue")

    def get_status(self) -> dict[str, Any]:
        updates = self._history.recent()
        return {
            "is_running": self._ticker.is_running,
            "is_processing": self._ticker.is_processing,
            "queue_depth": len(self._pending),
            "total_updates": len(updates),
            "pending_updates": sum(1 for u in updates if u.status == UpdateStatus.PENDING),
            "processing_updates": sum(1 for u in updates if u.status == UpdateStatus.PROCESSING),
            "completed_updates": sum(1 for u in updates if u.status == UpdateStatus.COMPLETED),
            "failed_updates": sum(1 for u in updates if u.status == UpdateStatus.FAILED),
            "emergency_queue_size": len(self._emergency_queue),
            "stats": dict(self._stats),
        }


def _snapshot(update: ScheduleUpdate) -> ScheduleUpdate:
    return ScheduleUpdate(
        id=update.id,
        channel_id=update.channel_id,
        kind=update.kind,
        timestamp=update.timestamp,
        payload=update.payload.model_copy(deep=True),
        status=update.status,
        error=update.error,
        started_at=update.started_at,
        completed_at=update.completed_at,
    )
