"""
Shared pytest fixtures.

Uses a file-backed SQLite database so no Postgres is required for tests.
The URL is set before the app is imported so the app's own engine (and the
SessionLocal used by post-commit background tasks) points at it.

Every test gets a fresh user id, which keeps rows from different tests
apart without truncating tables between them.
"""
import os

os.environ["DATABASE_URL"] = "sqlite:///./test_bodymind.db"
os.environ["TIMEZONE"] = "UTC"

import threading
import uuid
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

import app.models  # noqa: F401  registers every table on Base.metadata
from app.core.clock import FixedClock, get_clock
from app.core.errors import WearableAPIError
from app.db.base import Base, SessionLocal, engine
from app.main import app
from app.models.activity import Pillar
from app.services.activities import create_activity
from app.services.whoop_client import get_whoop_client_factory

# Tuesday afternoon, 9 hours before midnight UTC.
NOW = datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def user_id() -> str:
    return f"user-{uuid.uuid4().hex[:12]}"


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture()
def headers(user_id):
    return {"X-User-Id": user_id}


@pytest.fixture()
def set_clock():
    """Point the app's clock dependency at a new FixedClock mid-test."""
    def _set(new_clock: FixedClock) -> None:
        app.dependency_overrides[get_clock] = lambda: new_clock
    return _set


@pytest.fixture()
def client(clock):
    app.dependency_overrides[get_clock] = lambda: clock
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def make_activity(db, user_id):
    def _make(
        name="Morning run",
        pillar=Pillar.BODY,
        points=25,
        sub_category="TRAINING",
        is_habit=False,
        owner=None,
    ):
        return create_activity(
            db,
            owner or user_id,
            name=name,
            pillar=pillar,
            sub_category=sub_category,
            points=points,
            is_habit=is_habit,
        )
    return _make


# ---------------------------------------------------------------------------
# WHOOP fake
# ---------------------------------------------------------------------------

class FakeWhoopClient:
    """
    In-memory stand-in for WhoopClient. Set `failures[<method>]` to an
    exception instance to make that call raise.
    """

    def __init__(self):
        self.sleep_records = []
        self.workout_records = []
        self.recovery_records = []
        self.cycle = None
        self.cycle_recovery_record = None
        self.failures: dict[str, WearableAPIError] = {}
        self.calls: list[str] = []

    def _call(self, name):
        self.calls.append(name)
        exc = self.failures.get(name)
        if exc is not None:
            raise exc

    def sleeps(self, start, end):
        self._call("sleeps")
        return list(self.sleep_records)

    def workouts(self, start, end):
        self._call("workouts")
        return list(self.workout_records)

    def recoveries(self, start, end):
        self._call("recoveries")
        return list(self.recovery_records)

    def latest_cycle(self):
        self._call("latest_cycle")
        return self.cycle

    def cycle_recovery(self, cycle_id):
        self._call("cycle_recovery")
        return self.cycle_recovery_record

    def latest_sleep(self):
        self._call("latest_sleep")
        if not self.sleep_records:
            return None
        return max(self.sleep_records, key=lambda s: s.end)

    def recent_workouts(self, limit=5):
        self._call("recent_workouts")
        return sorted(self.workout_records, key=lambda w: w.start, reverse=True)[:limit]


@pytest.fixture()
def fake_whoop():
    return FakeWhoopClient()


@pytest.fixture()
def whoop_client(client, fake_whoop):
    """TestClient whose WHOOP client factory hands out `fake_whoop`."""
    app.dependency_overrides[get_whoop_client_factory] = lambda: (lambda token: fake_whoop)
    return client


# ---------------------------------------------------------------------------
# Concurrent writers
# ---------------------------------------------------------------------------

@pytest.fixture()
def race():
    """
    Run `fn(session)` in *n* threads at once, each with its own session.

    Returns (results, errors). Anything `fn` reads off ORM rows must be read
    inside `fn`; the sessions are closed when the threads finish.
    """
    def _race(fn, n=2):
        barrier = threading.Barrier(n)
        results, errors = [], []
        lock = threading.Lock()

        def _worker():
            session = SessionLocal()
            try:
                barrier.wait()
                value = fn(session)
                with lock:
                    results.append(value)
            except Exception as exc:  # noqa: BLE001  reported to the test
                with lock:
                    errors.append(exc)
            finally:
                session.close()

        threads = [threading.Thread(target=_worker) for _ in range(n)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)
        return results, errors
    return _race
