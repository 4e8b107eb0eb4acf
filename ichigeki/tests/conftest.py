"""
Shared fixtures for guard and destination tests.
"""

import io
from datetime import date, datetime

import pytest

from ichigeki.core.clock import FixedClock
from ichigeki.service.destinations.base import Destination


class KeepOpenBytesIO(io.BytesIO):
    """BytesIO that stays readable after close()."""

    def close(self):
        self.closed_called = True


class MemoryDestination(Destination):
    """In-memory destination that records every call."""

    def __init__(self, label="memory", exists=False, distinct=False, exists_error=None, open_error=None, close_error=None):
        self.label = label
        self._exists = exists
        self.distinct = distinct
        self.exists_error = exists_error
        self.open_error = open_error
        self.close_error = close_error
        self.calls = []
        self.stdout = KeepOpenBytesIO()
        self.stderr = KeepOpenBytesIO() if distinct else self.stdout

    @property
    def location(self):
        return f"{self.label}://{self.name}.log"

    def set_name(self, name):
        self.calls.append("set_name")
        super().set_name(name)

    def exists(self):
        self.calls.append("exists")
        if self.exists_error is not None:
            raise self.exists_error
        return self._exists

    def open(self):
        self.calls.append("open")
        if self.open_error is not None:
            raise self.open_error
        return self.stdout, self.stderr

    def close(self):
        self.calls.append("close")
        if self.close_error is not None:
            raise self.close_error


@pytest.fixture
def run_day():
    return date(2022, 6, 5)


@pytest.fixture
def clock():
    return FixedClock(datetime(2022, 6, 5, 12, 0, 0))


@pytest.fixture
def memory_destination():
    return MemoryDestination()


@pytest.fixture
def echo():
    """Operator-side stdout/stderr streams."""
    return io.BytesIO(), io.BytesIO()
