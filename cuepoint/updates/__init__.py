"""
Asynchronous schedule update queue.
"""

from cuepoint.updates.models import (
    DeletePayload,
    EmergencyContent,
    EmergencyContentType,
    InsertPayload,
    ModifyPayload,
    ScheduleUpdate,
    UpdateKind,
    UpdateStatus,
    parse_payload,
)
from cuepoint.updates.processor import UpdateQueueProcessor

__all__ = [
    "DeletePayload",
    "EmergencyContent",
    "EmergencyContentType",
    "InsertPayload",
    "ModifyPayload",
    "ScheduleUpdate",
    "UpdateKind",
    "UpdateStatus",
    "parse_payload",
    "UpdateQueueProcessor",
]
