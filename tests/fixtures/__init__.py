"""
Test Fixtures

Shared test data factories and fake collaborators.
"""

from .factories import (
    FailoverRuleFactory,
    ProgramConfigFactory,
    StreamSourceFactory,
)
from .fakes import FakeMediaControl, ScriptedProbe, wait_until

__all__ = [
    "FailoverRuleFactory",
    "ProgramConfigFactory",
    "StreamSourceFactory",
    "FakeMediaControl",
    "ScriptedProbe",
    "wait_until",
]
