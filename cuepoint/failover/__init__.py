"""
Source health monitoring and failover.

Components:
- StreamRegistry: catalog of sources and rules
- ProbeRegistry: protocol-specific health probes
- HealthMonitor: per-rule probe loops
- FailoverController: fallback selection and channel switching
"""

from cuepoint.failover.controller import FailoverController
from cuepoint.failover.models import (
    FailoverEvent,
    FailoverEventKind,
    FailoverRule,
    HealthStatus,
    SourceType,
    StreamSource,
)
from cuepoint.failover.monitor import HealthMonitor
from cuepoint.failover.probes import (
    FileProbe,
    HLSProbe,
    ProbeRegistry,
    RTMPProbe,
    SRTProbe,
)
from cuepoint.failover.registry import StreamRegistry

__all__ = [
    "FailoverController",
    "FailoverEvent",
    "FailoverEventKind",
    "FailoverRule",
    "HealthStatus",
    "SourceType",
    "StreamSource",
    "HealthMonitor",
    "FileProbe",
    "HLSProbe",
    "ProbeRegistry",
    "RTMPProbe",
    "SRTProbe",
    "StreamRegistry",
]
