"""
SCTE-35 ad-insertion scheduling.

Components:
- EventScheduler: computes and fires splice events for scheduled programs
- MarkerIdAllocator: process-wide splice event ids
"""

from cuepoint.scte35.markers import MarkerIdAllocator
from cuepoint.scte35.models import (
    AdBreakSchedule,
    AdMetadata,
    EventKind,
    EventStatus,
    ProgramConfig,
    ScheduledEvent,
)
from cuepoint.scte35.scheduler import EventScheduler

__all__ = [
    "MarkerIdAllocator",
    "AdBreakSchedule",
    "AdMetadata",
    "EventKind",
    "EventStatus",
    "ProgramConfig",
    "ScheduledEvent",
    "EventScheduler",
]
