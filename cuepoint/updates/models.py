"""
Schedule update data model.

Update payloads are a tagged union on ``kind``; a payload is validated when
the update is queued, so a malformed mutation never reaches the store.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter


class UpdateKind(str, Enum):
    INSERT = "insert"
    MODIFY = "modify"
    DELETE = "delete"
    EMERGENCY = "emergency"


class UpdateStatus(str, Enum):
    """pending -> processing -> completed | failed"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = (UpdateStatus.COMPLETED, UpdateStatus.FAILED)


class EmergencyContentType(str, Enum):
    BREAKING_NEWS = "breaking_news"
    EMERGENCY_ANNOUNCEMENT = "emergency_announcement"
    COMMERCIAL = "commercial"
    WEATHER_ALERT = "weather_alert"


class InsertPayload(BaseModel):
    kind: Literal["insert"] = "insert"
    program_data: dict[str, Any]
    position: Optional[int] = None
    reason: str = ""


class ModifyPayload(BaseModel):
    kind: Literal["modify"] = "modify"
    program_id: str
    new_data: dict[str, Any]
    reason: str = ""


class DeletePayload(BaseModel):
    kind: Literal["delete"] = "delete"
    program_id: str
    reason: str = ""


class EmergencyContent(BaseModel):
    """Content that pre-empts the schedule."""
    kind: Literal["emergency"] = "emergency"
    type: EmergencyContentType = EmergencyContentType.EMERGENCY_ANNOUNCEMENT
    title: str = "Emergency Broadcast"
    content: str = ""
    duration: timedelta = timedelta(minutes=5)
    priority: int = 0  # 0 is highest
    start_time: Optional[datetime] = None
    content_url: Optional[str] = None
    stream_url: Optional[str] = None


UpdatePayload = Annotated[
    Union[InsertPayload, ModifyPayload, DeletePayload, EmergencyContent],
    Field(discriminator="kind"),
]

_payload_adapter: TypeAdapter[UpdatePayload] = TypeAdapter(UpdatePayload)


def parse_payload(kind: Union[UpdateKind, str], payload: Any) -> UpdatePayload:
    """
    Validate a raw payload against the model for ``kind``.

    Raises:
        ValueError: unknown kind
        pydantic.ValidationError: payload does not match the kind
    """
    kind = UpdateKind(kind)
    if isinstance(payload, BaseModel):
        payload = payload.model_dump()
    data = dict(payload or {})
    data["kind"] = kind.value
    return _payload_adapter.validate_python(data)


@dataclass
class ScheduleUpdate:
    """
    A queued schedule mutation. Status is written by the update processor
    only, and each update reaches exactly one terminal status.
    """

    id: str
    channel_id: str
    kind: UpdateKind
    timestamp: datetime
    payload: UpdatePayload
    status: UpdateStatus = UpdateStatus.PENDING
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "channel_id": self.channel_id,
            "kind": self.kind.value,
            "timestamp": self.timestamp.isoformat(),
            "payload": self.payload.model_dump(mode="json"),
            "status": self.status.value,
            "error": self.error,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
