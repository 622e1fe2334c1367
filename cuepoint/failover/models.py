"""
Failover data model: stream sources, failover rules and failover events.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class SourceType(str, Enum):
    """Transport of a stream source."""
    RTMP = "rtmp"
    HLS = "hls"
    SRT = "srt"
    FILE = "file"


class HealthStatus(str, Enum):
    """Last known health of a source."""
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


class FailoverEventKind(str, Enum):
    """What a failover event records."""
    SWITCHED_TO_FALLBACK = "switched_to_fallback"
    RECOVERED_TO_PRIMARY = "recovered_to_primary"
    PROBE_FAILED = "probe_failed"
    PROBE_RECOVERED = "probe_recovered"
    SWITCH_FAILED = "switch_failed"


class StreamSource(BaseModel):
    """A live or fallback source a channel can be redirected to."""

    id: str
    name: str = ""
    type: SourceType
    url: str
    priority: int = 1

    # Health state, written by the health monitor only
    health_status: HealthStatus = HealthStatus.UNKNOWN
    error_count: int = 0
    last_checked: Optional[datetime] = None
    response_time: Optional[float] = None  # milliseconds

    @model_validator(mode="after")
    def _default_name(self) -> "StreamSource":
        if not self.name:
            self.name = self.id
        return self

    @property
    def is_healthy(self) -> bool:
        return self.health_status == HealthStatus.HEALTHY


class FailoverRule(BaseModel):
    """Which source a channel runs on and where to go when it fails."""

    id: str
    name: str = ""
    channel_id: str
    primary_source: str
    fallback_sources: list[str] = Field(default_factory=list)
    health_check_interval: float = 5.0  # seconds
    max_errors: int = 3
    switch_delay: float = 2.0  # seconds
    auto_recovery: bool = True
    enabled: bool = True

    @field_validator("health_check_interval")
    @classmethod
    def _positive_interval(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("health_check_interval must be positive")
        return value

    @field_validator("max_errors")
    @classmethod
    def _positive_threshold(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_errors must be at least 1")
        return value

    @field_validator("switch_delay")
    @classmethod
    def _non_negative_delay(cls, value: float) -> float:
        if value < 0:
            raise ValueError("switch_delay cannot be negative")
        return value

    @model_validator(mode="after")
    def _check_sources(self) -> "FailoverRule":
        if self.primary_source in self.fallback_sources:
            raise ValueError("primary source cannot also be a fallback")
        if not self.name:
            self.name = self.id
        return self


@dataclass(frozen=True)
class FailoverEvent:
    """An entry of the failover event log. Never mutated once created."""

    id: str
    channel_id: str
    timestamp: datetime
    kind: FailoverEventKind
    from_source: Optional[str]
    to_source: Optional[str]
    reason: str
    duration: Optional[float] = None  # milliseconds

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value
        data["timestamp"] = self.timestamp.isoformat()
        return data
