# tests/conftest.py
"""Shared fixtures: in-memory SQLite store, a controllable clock, a mocked barrier."""

import sys
import os
import tempfile
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Must be set before app.config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["MQTT_ENABLED"] = "false"
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="parking-logs-"))

import pytest
from datetime import datetime, timedelta
from unittest.mock import MagicMock
from sqlalchemy.orm import sessionmaker

from app.database import build_engine, create_tables
from app.services.barrier_service import BarrierController
from app.services.deduplicator import EventDeduplicator
from app.services.orchestrator import ReconciliationEngine
from app.services.parking_store import ParkingStore

T0 = datetime(2026, 3, 2, 9, 0, 0)


class FakeClock:
    def __init__(self, start: datetime = T0):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db_engine():
    engine = build_engine("sqlite://")
    create_tables(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autoflush=False, bind=db_engine)


@pytest.fixture
def store(session_factory, clock):
    return ParkingStore(session_factory=session_factory, now=clock)


@pytest.fixture
def barrier():
    b = MagicMock(spec=BarrierController)
    for name in ("open_entry", "close_entry", "open_exit", "close_exit", "set_mode", "command", "push_wifi_config"):
        getattr(b, name).return_value = True
    return b


@pytest.fixture
def dedup():
    return EventDeduplicator(window_seconds=0, min_dwell_seconds=5)


@pytest.fixture
def engine(store, barrier, dedup, clock):
    return ReconciliationEngine(store, barrier=barrier, dedup=dedup, spot_ids=[1, 2, 3], now=clock)
