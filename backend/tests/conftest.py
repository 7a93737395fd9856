"""
Pytest configuration and fixtures.
"""

import pytest
from datetime import datetime

from response_tracker.db import make_engine
from response_tracker.schemas import Response
from response_tracker.services.store import ResponseStore


class FakeClock:
    """Settable wall clock for the store."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    """Clock fixed at 20 Feb 2024, noon."""
    return FakeClock(datetime(2024, 2, 20, 12, 0))


@pytest.fixture
def store(clock):
    """Store backed by a private in-memory SQLite database."""
    engine = make_engine("sqlite://")
    s = ResponseStore(engine, clock=clock)
    yield s
    engine.dispose()


@pytest.fixture
def make_response():
    def _make(day: datetime, number: str = "F0001", details: str = "") -> Response:
        return Response(incident_number=number, details=details, date=day)
    return _make
