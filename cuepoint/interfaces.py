"""
Contracts of the external collaborators the core calls out to.

The Media Control Interface talks to the media server (redirects, marker
injection, schedule reloads). The Schedule Store persists channel schedules.
Both are injected; every call goes through ``call_with_timeout`` so that a
slow collaborator can never stall a tick.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Protocol, runtime_checkable

from cuepoint.errors import describe_error

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ControlResult:
    """Outcome of a bounded external call."""

    ok: bool
    error: Optional[str] = None
    data: Any = None

    @classmethod
    def success(cls, data: Any = None) -> "ControlResult":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, error: str) -> "ControlResult":
        return cls(ok=False, error=error)


@runtime_checkable
class MediaControl(Protocol):
    """Control calls against the media server."""

    async def redirect_channel(self, channel_id: str, source_id: str) -> ControlResult:
        ...

    async def inject_marker(
        self,
        channel_id: str,
        kind: str,
        marker_id: int,
        duration: Optional[float],
    ) -> ControlResult:
        ...

    async def reload_schedule(self, channel_id: str) -> ControlResult:
        ...


@runtime_checkable
class ScheduleStore(Protocol):
    """Opaque persistence for channel schedules."""

    async def read_schedule(self, channel_id: str) -> list[dict[str, Any]]:
        ...

    async def apply_mutation(
        self, channel_id: str, kind: str, payload: dict[str, Any]
    ) -> ControlResult:
        ...

    async def persist(self, channel_id: str) -> ControlResult:
        ...


async def call_with_timeout(
    operation: Callable[[], Awaitable[Any]],
    timeout: float,
    operation_name: str = "operation",
) -> ControlResult:
    """
    Run an external call bounded by ``timeout`` seconds.

    Timeouts and exceptions become a failed ``ControlResult``; a plain return
    value that is not a ``ControlResult`` counts as success.
    """
    try:
        result = await asyncio.wait_for(operation(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"{operation_name} timed out after {timeout}s")
        return ControlResult.failure(f"{operation_name} timed out after {timeout}s")
    except Exception as e:
        logger.warning(f"{operation_name} raised: {describe_error(e)}")
        return ControlResult.failure(describe_error(e))

    if isinstance(result, ControlResult):
        return result
    return ControlResult.success(result)


class InMemoryScheduleStore:
    """
    Schedule Store keeping channel schedules in memory.

    Each channel schedule is an ordered list of program dicts identified by
    ``program_id``.
    """

    def __init__(self, schedules: Optional[dict[str, list[dict[str, Any]]]] = None):
        self._schedules: dict[str, list[dict[str, Any]]] = {
            channel_id: [dict(item) for item in items]
            for channel_id, items in (schedules or {}).items()
        }
        self._versions: dict[str, int] = {}
        self._lock = asyncio.Lock()

    async def read_schedule(self, channel_id: str) -> list[dict[str, Any]]:
        async with self._lock:
            return [dict(item) for item in self._schedules.get(channel_id, [])]

    async def apply_mutation(
        self, channel_id: str, kind: str, payload: dict[str, Any]
    ) -> ControlResult:
        async with self._lock:
            schedule = self._schedules.setdefault(channel_id, [])

            if kind == "insert":
                program = dict(payload.get("program_data") or {})
                position = payload.get("position")
                if position is None:
                    schedule.append(program)
                else:
                    schedule.insert(position, program)
                return ControlResult.success(program)

            program_id = payload.get("program_id")
            index = self._find(schedule, program_id)
            if index is None:
                return ControlResult.failure(
                    f"Program {program_id} not found on channel {channel_id}"
                )

            if kind == "modify":
                schedule[index].update(payload.get("new_data") or {})
                return ControlResult.success(dict(schedule[index]))
            if kind == "delete":
                removed = schedule.pop(index)
                return ControlResult.success(removed)

        return ControlResult.failure(f"Unsupported mutation: {kind}")

    async def persist(self, channel_id: str) -> ControlResult:
        async with self._lock:
            self._versions[channel_id] = self._versions.get(channel_id, 0) + 1
            return ControlResult.success(self._versions[channel_id])

    def version(self, channel_id: str) -> int:
        return self._versions.get(channel_id, 0)

    @staticmethod
    def _find(schedule: list[dict[str, Any]], program_id: Any) -> Optional[int]:
        for index, item in enumerate(schedule):
            if item.get("program_id") == program_id:
                return index
        return None
