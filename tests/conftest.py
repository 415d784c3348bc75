"""
Pytest configuration and shared fixtures for the trading dashboard test suite.
"""
import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from trading_dashboard.caching.cache_backends import FileCache  # noqa: E402
from trading_dashboard.caching.cache_store import CacheStore, SessionMarkers, SessionStore  # noqa: E402
from trading_dashboard.jobs.models import JobSlot  # noqa: E402
from trading_dashboard.jobs.polling import PollingEngine  # noqa: E402
from trading_dashboard.jobs.sources import status_source_for  # noqa: E402

from .fakes import FakeAnalysisApi, FakeSleep, RecordingObserver  # noqa: E402


@pytest.fixture
def fake_api():
    """Scripted analysis server."""
    return FakeAnalysisApi()


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def session():
    return SessionStore()


@pytest.fixture
def cache_store(tmp_path, session):
    """Cache store with a durable on-disk snapshot backend."""
    return CacheStore(durable=FileCache(str(tmp_path / "cache")), session=session)


@pytest.fixture
def markers(session):
    return SessionMarkers(session)


@pytest.fixture
def make_engine(fake_api, cache_store, markers, observer):
    """Factory for a manually ticked engine wired to the fake server."""

    def _make(slot=JobSlot.SINGLE, interval=1.0, **kwargs):
        kwargs.setdefault('auto_tick', False)
        engine = PollingEngine(
            slot,
            status_source_for(slot, fake_api),
            interval,
            cache=cache_store,
            markers=markers,
            **kwargs,
        )
        engine.subscribe(observer)
        return engine

    return _make
