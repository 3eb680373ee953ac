from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

import dbqueue
from dbqueue.config import QueueSettings
from dbqueue.events.bus import EventBus
from dbqueue.server.engine import QueueEngine
from dbqueue.storage.connection import dispose_engines
from dbqueue.storage.memory_storage import MemoryStorage
from dbqueue.storage.sql_storage import SqlStorage
from tests import sample_jobs


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


def make_sql_storage(table: str = "dbqueue_jobs") -> SqlStorage:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    return SqlStorage(engine=engine, table=table, create_tables=True)


def make_settings(**overrides) -> QueueSettings:
    values = dict(
        default_queue="default",
        max_retries=3,
        timeout=30,
        delete_done_messages_after=3600,
    )
    values.update(overrides)
    return QueueSettings(_env_file=None, **values)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC))


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture(params=["sql", "memory"])
def storage(request):
    if request.param == "sql":
        return make_sql_storage()
    return MemoryStorage()


@pytest.fixture
def engine(storage, settings, bus, clock, sleeps):
    return QueueEngine(
        storage,
        settings=settings,
        events=bus,
        clock=clock,
        sleep=sleeps.append,
    )


@pytest.fixture(autouse=True)
def _reset_global_state():
    sample_jobs.CALLS.clear()
    yield
    dbqueue.configure(None, None)
    dispose_engines()
