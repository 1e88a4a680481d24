"""
Pytest configuration and shared fixtures for queuebot tests.
"""

import sys
from pathlib import Path

import pytest

# Add the project root to the path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from tests.fakes import FakeChannel, FakePlatform, FakeUser  # noqa: E402


@pytest.fixture
def platform():
    return FakePlatform()


@pytest.fixture
def channel():
    return FakeChannel(id=10, name="queue-board")


@pytest.fixture
def users():
    return [FakeUser(100 + i, f"user{i}") for i in range(8)]
