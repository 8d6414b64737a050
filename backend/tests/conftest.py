"""
Pytest configuration file.

This adds the parent directory to the Python path so tests can import the
polygon_mapper package, and provides shared fixtures.
"""

import sys
from datetime import datetime, timezone
from itertools import count
from pathlib import Path

import pytest

# Add the backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from polygon_mapper.models import Coordinate  # noqa: E402


class RecordingLayerAdapter:
    """Map layer adapter that records every command it receives."""

    def __init__(self):
        self.calls = []

    def render_draft(self, ring):
        self.calls.append(("render_draft", list(ring)))

    def clear_draft(self):
        self.calls.append(("clear_draft",))

    def render_polygon(self, polygon_id, ring, label):
        self.calls.append(("render_polygon", polygon_id, list(ring), label))

    def remove_polygon(self, polygon_id):
        self.calls.append(("remove_polygon", polygon_id))

    def set_polygons_visible(self, visible):
        self.calls.append(("set_polygons_visible", visible))

    def names(self):
        return [call[0] for call in self.calls]


class FailingPersistence:
    """Persistence provider whose writes fail (e.g. disk full)."""

    def __init__(self, blob=None):
        self.blob = blob
        self.fail = True

    def read_all(self):
        return self.blob

    def write_all(self, blob):
        if self.fail:
            raise OSError("No space left on device")
        self.blob = blob


@pytest.fixture
def recorder():
    return RecordingLayerAdapter()


@pytest.fixture
def failing_persistence():
    return FailingPersistence()


@pytest.fixture
def id_factory():
    """Deterministic polygon ids: poly-1, poly-2, ..."""
    counter = count(1)
    return lambda: f"poly-{next(counter)}"


@pytest.fixture
def fixed_clock():
    return lambda: datetime(2024, 3, 1, 9, 30, 15, 123456, tzinfo=timezone.utc)


@pytest.fixture
def montana_ring():
    """~0.1° x 0.1° square near Montana (open ring, counter-clockwise)."""
    return [
        Coordinate(-109.5, 47.0),
        Coordinate(-109.4, 47.0),
        Coordinate(-109.4, 47.1),
        Coordinate(-109.5, 47.1),
    ]


@pytest.fixture
def field_ring():
    """Small field in India, a few hectares."""
    return [
        Coordinate(77.5946, 12.9716),
        Coordinate(77.5966, 12.9716),
        Coordinate(77.5966, 12.9736),
        Coordinate(77.5946, 12.9736),
    ]
