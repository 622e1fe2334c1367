"""
cuepoint - live channel orchestration core

In-process orchestration for a live broadcast media server:
- Source health monitoring with priority-based failover and auto-recovery
- Time-precise SCTE-35 ad-insertion scheduling (cue-out/cue-in, pre/post-roll)
- Asynchronous schedule update queue with terminal-state tracking
"""

__version__ = "1.0.0"
__license__ = "MIT"

from cuepoint.config import get_config, load_config
from cuepoint.orchestrator import Orchestrator, create_orchestrator

__all__ = [
    "__version__",
    "get_config",
    "load_config",
    "Orchestrator",
    "create_orchestrator",
]
