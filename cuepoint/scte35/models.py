"""
SCTE-35 scheduling data model.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class EventKind(str, Enum):
    """Splice signal carried by a scheduled event."""
    CUE_OUT = "cue_out"
    CUE_IN = "cue_in"
    PRE_ROLL = "pre_roll"
    POST_ROLL = "post_roll"


EMERGENCY_KINDS = (EventKind.CUE_OUT, EventKind.CUE_IN)


class EventStatus(str, Enum):
    """Lifecycle of a scheduled event. Everything but SCHEDULED is terminal."""
    SCHEDULED = "scheduled"
    EXECUTED = "executed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class AdMetadata(BaseModel):
    """Who the avail was sold to."""
    advertiser: Optional[str] = None
    product: Optional[str] = None
    campaign: Optional[str] = None


class AdBreakSchedule(BaseModel):
    """
    One avail inside a program.

    ``offset`` is relative to the program start. ``duration`` and
    ``pre_roll`` fall back to the program defaults, and ``marker_id`` is
    allocated when the program config is registered.
    """

    id: str
    name: str = ""
    offset: timedelta
    duration: Optional[timedelta] = None
    pre_roll: Optional[timedelta] = None
    marker_id: Optional[int] = None
    metadata: Optional[AdMetadata] = None

    @field_validator("offset", "pre_roll")
    @classmethod
    def _non_negative(cls, value: Optional[timedelta]) -> Optional[timedelta]:
        if value is not None and value < timedelta(0):
            raise ValueError("must not be negative")
        return value

    @field_validator("duration")
    @classmethod
    def _positive_duration(cls, value: Optional[timedelta]) -> Optional[timedelta]:
        if value is not None and value <= timedelta(0):
            raise ValueError("duration must be positive")
        return value


class ProgramConfig(BaseModel):
    """SCTE-35 settings of a program."""

    program_id: str
    channel_id: str
    enable_scte35: bool = True
    ad_breaks: list[AdBreakSchedule] = Field(default_factory=list)
    pre_roll_enabled: bool = False
    post_roll_enabled: bool = False
    default_ad_duration: timedelta = timedelta(minutes=3)
    default_pre_roll: timedelta = timedelta(seconds=5)
    duration: timedelta = timedelta(hours=2)

    @field_validator("default_ad_duration", "duration")
    @classmethod
    def _positive(cls, value: timedelta) -> timedelta:
        if value <= timedelta(0):
            raise ValueError("must be positive")
        return value

    @field_validator("default_pre_roll")
    @classmethod
    def _non_negative(cls, value: timedelta) -> timedelta:
        if value < timedelta(0):
            raise ValueError("must not be negative")
        return value

    def break_duration(self, ad_break: AdBreakSchedule) -> timedelta:
        return ad_break.duration if ad_break.duration is not None else self.default_ad_duration

    def break_pre_roll(self, ad_break: AdBreakSchedule) -> timedelta:
        return ad_break.pre_roll if ad_break.pre_roll is not None else self.default_pre_roll


@dataclass
class ScheduledEvent:
    """
    A splice signal due at ``scheduled_time``.

    ``scheduled_time`` is fixed at creation. Status is written only by the
    event scheduler, and only away from SCHEDULED.
    """

    id: str
    channel_id: str
    program_id: str
    kind: EventKind
    marker_id: int
    scheduled_time: datetime
    sequence: int
    duration: Optional[timedelta] = None
    pre_roll: Optional[timedelta] = None
    emergency: bool = False
    status: EventStatus = EventStatus.SCHEDULED
    executed_at: Optional[datetime] = None
    error: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.status != EventStatus.SCHEDULED

    def execution_key(self) -> tuple[int, datetime, int]:
        """Sort key of the execution queue: emergencies first, then by time."""
        return (0 if self.emergency else 1, self.scheduled_time, self.sequence)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "channel_id": self.channel_id,
            "program_id": self.program_id,
            "kind": self.kind.value,
            "marker_id": self.marker_id,
            "scheduled_time": self.scheduled_time.isoformat(),
            "duration": self.duration.total_seconds() if self.duration is not None else None,
            "pre_roll": self.pre_roll.total_seconds() if self.pre_roll is not None else None,
            "emergency": self.emergency,
            "status": self.status.value,
            "executed_at": self.executed_at.isoformat() if self.executed_at else None,
            "error": self.error,
            "metadata": dict(self.metadata),
        }
