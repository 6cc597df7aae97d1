"""Pytest configuration and shared fixtures."""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Ensure src directory is in Python path for all tests
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


# Wednesday, so "friday" is two days ahead and "wednesday" a full week ahead
FIXED_NOW = datetime(2024, 1, 10, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def now():
    """Fixed reference time for date-relative parsing."""
    return FIXED_NOW


@pytest.fixture(autouse=True)
def reset_config():
    """Never let a cached configuration leak between tests."""
    from smart_todo.config import Config

    Config.reset()
    yield
    Config.reset()
