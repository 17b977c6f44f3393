"""Shared test fixtures for Void Focus tests."""

import asyncio
from datetime import datetime

import pytest

from void_focus.core import FocusController, FocusSession, JsonKeyValueStore, SessionStore
from void_focus.core.recording import Microphone


class FakeMicrophone(Microphone):
    """In-memory microphone returning scripted dBFS readings."""

    def __init__(self, levels=None, granted=True, fail_start=False, fail_reads=(), read_delay=0.0):
        self.levels = list(levels or [-20.0])
        self.granted = granted
        self.fail_start = fail_start
        self.fail_reads = set(fail_reads)
        self.read_delay = read_delay
        self.open_handles = set()
        self.permission_requests = 0
        self.start_calls = 0
        self.stop_calls = 0
        self.reads = 0
        self.in_flight = 0
        self.max_in_flight = 0

    async def request_permission(self):
        self.permission_requests += 1
        await asyncio.sleep(0)
        return self.granted

    async def start_metering(self, config):
        self.start_calls += 1
        await asyncio.sleep(0)
        if self.fail_start:
            raise OSError("Device busy")
        handle = object()
        self.open_handles.add(handle)
        return handle

    async def read_level(self, handle):
        assert handle in self.open_handles
        self.reads += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.read_delay:
                await asyncio.sleep(self.read_delay)
            if self.reads in self.fail_reads:
                raise OSError("Input overflowed")
            return self.levels[min(self.reads, len(self.levels)) - 1]
        finally:
            self.in_flight -= 1

    async def stop_metering(self, handle):
        self.stop_calls += 1
        self.open_handles.discard(handle)


@pytest.fixture
def fake_microphone():
    """Provide the fake microphone class so tests can script it."""
    return FakeMicrophone


@pytest.fixture(autouse=True)
def release_controller():
    """Release the single FocusController slot after every test."""
    yield
    FocusController._instance = None


@pytest.fixture
def store_path(tmp_path):
    """Provide a temporary session store file."""
    return tmp_path / "data" / "sessions.json"


@pytest.fixture
def session_store(store_path):
    """Provide a SessionStore backed by a temporary JSON file."""
    return SessionStore(JsonKeyValueStore(store_path))


def ms(dt: datetime) -> int:
    """Epoch milliseconds of a naive local datetime."""
    return int(dt.timestamp() * 1000)


@pytest.fixture
def make_session():
    """Build completed sessions from local datetimes."""

    def _make(session_id: str, start: datetime, minutes: int = 25) -> FocusSession:
        start_ms = ms(start)
        return FocusSession(
            id=session_id,
            start_time=start_ms,
            end_time=start_ms + minutes * 60 * 1000,
            duration=minutes * 60,
            is_active=False,
        )

    return _make
