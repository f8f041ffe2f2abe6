"""Test helper utilities package.

Provides the in-memory tracker used by the engine tests.
"""

from .fake_tracker import FakeTracker

__all__ = [
    "FakeTracker",
]
