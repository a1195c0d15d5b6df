import os
import sys
from pathlib import Path

import pytest

# Ensure repo root on sys.path for imports from anywhere in tests tree.
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Never reach a real model from the test suite.
os.environ.setdefault("DEEPSEEK_OFFLINE", "1")

from assistant.session import InMemorySessionStore  # noqa: E402


class Clock:
    """Manually advanced clock for session timing tests."""

    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def store(clock):
    return InMemorySessionStore(max_history_length=8, inactivity_timeout=60, clock=clock)
