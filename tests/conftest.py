"""
Shared pytest fixtures for deepsignal tests.
"""

import pytest

from deepsignal import _tracking
from deepsignal.normalize import DEFAULT_MAX_DEPTH, set_max_depth


@pytest.fixture(autouse=True)
def reset_scheduler():
    """Reset scheduler state around each test to prevent leakage."""
    _tracking._reset()
    yield
    _tracking._reset()
    set_max_depth(DEFAULT_MAX_DEPTH)
