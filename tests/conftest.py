"""Shared fixtures: in-memory stores, a hand-driven ticker and a settable clock."""

from datetime import datetime

import pytest

from sproutling.storage.credentials import InMemoryCredentialStore
from sproutling.storage.key_value import InMemoryKeyValueStore
from sproutling.storage.records import InMemoryRecordStore
from sproutling.tracker.session import SessionTracker


class ManualTicker:
    """Ticker advanced explicitly by the test."""

    def __init__(self):
        self.callback = None
        self.interval = None
        self.starts = 0

    @property
    def running(self) -> bool:
        return self.callback is not None

    def start(self, callback, interval):
        self.cancel()
        self.callback = callback
        self.interval = interval
        self.starts += 1

    def cancel(self):
        self.callback = None

    def advance(self, ticks: int = 1) -> None:
        for _ in range(ticks):
            if self.callback is None:
                return
            self.callback()


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 2, 9, 0, 0))


@pytest.fixture
def records():
    return InMemoryRecordStore()


@pytest.fixture
def usage_store():
    return InMemoryKeyValueStore()


@pytest.fixture
def credentials():
    return InMemoryCredentialStore()


@pytest.fixture
def ticker():
    return ManualTicker()


@pytest.fixture
def make_tracker(records, usage_store, credentials, ticker, clock):
    """Build a tracker over the shared fakes; call ``setup()`` yourself."""

    def _make(**overrides) -> SessionTracker:
        kwargs = dict(
            records=records,
            usage_store=usage_store,
            credentials=credentials,
            ticker=ticker,
            pin_hash_rounds=4,
            clock=clock,
        )
        kwargs.update(overrides)
        return SessionTracker(**kwargs)

    return _make


@pytest.fixture
def tracker(make_tracker):
    t = make_tracker()
    t.setup()
    return t
