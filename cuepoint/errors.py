"""
Failure taxonomy for the orchestration core.

Failures are raised inside a component, caught at the loop boundary and
converted into status/error fields on the affected record. None of them
escape a tick.
"""

import asyncio
from enum import Enum


class ErrorKind(str, Enum):
    """Classification of orchestration failures."""

    PROBE_FAILURE = "probe_failure"  # Transient, retried by the next monitor tick
    SWITCH_FAILURE = "switch_failure"  # No healthy fallback or redirect failed
    SCHEDULING_FAILURE = "scheduling_failure"  # Marker injection failed
    UPDATE_FAILURE = "update_failure"  # Mutation or reload failed


class CuepointError(Exception):
    """Base class for orchestration failures."""

    kind: ErrorKind

    def __init__(self, message: str, channel_id: str | None = None):
        super().__init__(message)
        self.message = message
        self.channel_id = channel_id

    def to_dict(self) -> dict[str, str | None]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "channel_id": self.channel_id,
        }


class ProbeFailure(CuepointError):
    kind = ErrorKind.PROBE_FAILURE


class SwitchFailure(CuepointError):
    kind = ErrorKind.SWITCH_FAILURE


class SchedulingFailure(CuepointError):
    kind = ErrorKind.SCHEDULING_FAILURE


class UpdateFailure(CuepointError):
    kind = ErrorKind.UPDATE_FAILURE


def describe_error(error: BaseException) -> str:
    """
    Human-readable message for an exception.

    ``asyncio.TimeoutError`` and several socket errors stringify to an empty
    string, which would leave an empty ``error`` field on a failed record.
    """
    if isinstance(error, asyncio.TimeoutError):
        return "Timed out"
    message = str(error)
    if not message:
        return type(error).__name__
    return message
