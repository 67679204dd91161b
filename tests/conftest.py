import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure project root is on sys.path so 'battleplan' is importable during tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("SUPABASE_DISABLED", "1")
os.environ.setdefault("SUPABASE_STORAGE_LOCAL_DIR", ".local_storage")
os.environ.pop("USE_LOCAL_DB", None)


@pytest.fixture(scope="session")
def client() -> TestClient:
    # lazy import after env configured
    from battleplan.main import create_app

    app = create_app()
    return TestClient(app)


@pytest.fixture()
def auth_header() -> dict[str, str]:
    # any token is accepted in disabled mode
    return {"Authorization": "Bearer test-token"}


@pytest.fixture()
def test_user_id() -> str:
    from battleplan.infrastructure.database.supabase_client import fake_user_id

    return fake_user_id("test-token")


@pytest.fixture(autouse=True)
def clean_memory_store():
    from battleplan.infrastructure.database.memory_store import get_memory_store

    get_memory_store().clear()
    yield
    get_memory_store().clear()


class _FakeInterval:
    def __init__(self, scheduler: "FakeScheduler", seconds: float, callback) -> None:
        self.scheduler = scheduler
        self.seconds = seconds
        self.callback = callback
        self.next_at = scheduler.now + seconds
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Manual clock for interval timers."""

    def __init__(self) -> None:
        self.now = 0.0
        self.intervals: list[_FakeInterval] = []

    def call_every(self, seconds: float, callback) -> _FakeInterval:
        interval = _FakeInterval(self, seconds, callback)
        self.intervals.append(interval)
        return interval

    @property
    def live(self) -> list[_FakeInterval]:
        return [interval for interval in self.intervals if not interval.cancelled]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [i for i in self.live if i.next_at <= target]
            if not due:
                break
            interval = min(due, key=lambda i: i.next_at)
            self.now = interval.next_at
            interval.next_at += interval.seconds
            interval.callback()
        self.now = target


@pytest.fixture()
def scheduler() -> FakeScheduler:
    return FakeScheduler()
