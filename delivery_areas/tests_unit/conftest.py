"""
Fixtures for pure-logic tests (geometry, matching, drawing).

No database and no network: geocoders and the map renderer are fakes
from factories.py.
"""
import os

os.environ.setdefault("ENVIRONMENT", "development")

import pytest

from delivery_areas.app.services.zone_drawing import DrawingSession
from factories import RecordingRenderer


@pytest.fixture
def renderer() -> RecordingRenderer:
    return RecordingRenderer()


@pytest.fixture
def session(renderer: RecordingRenderer):
    """Open drawing session wired to a recording renderer."""
    drawing = DrawingSession(renderer).open()
    yield drawing
    drawing.close()
