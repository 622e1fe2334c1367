"""
cuepoint Test Configuration

Shared fixtures and configuration for all tests.
"""

import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator

import pytest

from cuepoint.event_log import EventLog
from cuepoint.failover.controller import FailoverController
from cuepoint.failover.models import SourceType
from cuepoint.failover.monitor import HealthMonitor
from cuepoint.failover.probes import ProbeRegistry
from cuepoint.failover.registry import StreamRegistry
from cuepoint.interfaces import InMemoryScheduleStore
from cuepoint.scte35.scheduler import EventScheduler
from cuepoint.updates.processor import UpdateQueueProcessor
from cuepoint.utils.clock import FakeClock

from tests.fixtures import FakeMediaControl, ScriptedProbe


# ============ Clock Fixtures ============


@pytest.fixture
def fake_clock() -> FakeClock:
    """A manually driven clock starting at 2024-01-01 00:00 UTC."""
    return FakeClock(datetime(2024, 1, 1, tzinfo=timezone.utc))


# ============ Collaborator Fixtures ============


@pytest.fixture
def media_control() -> FakeMediaControl:
    """Media control interface recording every call."""
    return FakeMediaControl()


@pytest.fixture
def store() -> InMemoryScheduleStore:
    """In-memory schedule store with one program on channel1."""
    return InMemoryScheduleStore({
        "channel1": [{"program_id": "news", "title": "Evening News"}],
    })


@pytest.fixture
def scripted_probe() -> ScriptedProbe:
    """Probe whose outcomes are scripted per source id (healthy by default)."""
    return ScriptedProbe()


@pytest.fixture
def probes(scripted_probe: ScriptedProbe) -> ProbeRegistry:
    """Probe registry routing every source type to the scripted probe."""
    return ProbeRegistry({source_type: scripted_probe for source_type in SourceType})


# ============ Component Fixtures ============


@pytest.fixture
def registry() -> StreamRegistry:
    return StreamRegistry()


@pytest.fixture
def controller(registry, media_control, fake_clock) -> FailoverController:
    return FailoverController(
        registry, media_control, event_log=EventLog(), clock=fake_clock
    )


@pytest.fixture
def monitor(registry, controller, probes, fake_clock) -> HealthMonitor:
    return HealthMonitor(
        registry, controller, probes=probes, clock=fake_clock, probe_timeout=0.5
    )


@pytest.fixture
def scheduler(media_control, fake_clock) -> EventScheduler:
    return EventScheduler(media_control, clock=fake_clock, inject_timeout=0.5)


@pytest.fixture
def processor(store, media_control, scheduler, fake_clock) -> UpdateQueueProcessor:
    return UpdateQueueProcessor(
        store,
        media_control,
        scheduler,
        clock=fake_clock,
        store_timeout=0.5,
        reload_timeout=0.5,
    )


# ============ Temporary File Fixtures ============


@pytest.fixture(scope="function")
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(scope="function")
def temp_config_file(temp_dir: Path) -> Path:
    """Create a temporary config file."""
    config_file = temp_dir / "config.yaml"
    config_content = """
logging:
  level: "DEBUG"

timeouts:
  probe: 2.5
  redirect: 4

failover:
  auto_start: false
  sources:
    - id: live
      type: rtmp
      url: rtmp://ingest.local/live/main
    - id: backup
      type: file
      url: /var/media/slate.mp4
      health_status: healthy
  rules:
    - id: main
      channel_id: channel1
      primary_source: live
      fallback_sources: [backup]
      max_errors: 2

scte35:
  marker_id_start: 500
  programs:
    - program_id: morning_show
      channel_id: channel1
      ad_breaks:
        - id: first
          offset: PT30M
"""
    config_file.write_text(config_content)
    return config_file


# ============ Environment Fixtures ============


@pytest.fixture(autouse=True)
def clean_environment() -> Generator[None, None, None]:
    """Ensure clean environment for each test."""
    original_env = os.environ.copy()

    for key in list(os.environ.keys()):
        if key.startswith("CUEPOINT_"):
            del os.environ[key]

    yield

    os.environ.clear()
    os.environ.update(original_env)


# ============ Pytest Configuration ============


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow running tests")
    config.addinivalue_line("markers", "network: Tests requiring network access")
