"""
QR Feedback - Test Configuration and Fixtures
"""
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from qr_feedback.bootstrap import Services, build_services
from qr_feedback.config import Settings
from qr_feedback.domain.exceptions import TransientIOError
from qr_feedback.domain.models import FeedbackRecord, QRCodeRecord
from qr_feedback.infrastructure.database import create_engine, init_db, make_session_maker
from qr_feedback.infrastructure.persistence import LocalStore, MemoryAdapter
from qr_feedback.infrastructure.retry import RetryPolicy

FAST_RETRY = RetryPolicy(attempts=3, base_delay=0, factor=2, timeout=5)


class FakeClock:
    """Callable clock that only moves when told to"""

    def __init__(self, start: datetime = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FlakyAdapter:
    """Wraps an adapter; while ``failing`` every call raises TransientIOError"""

    def __init__(self, inner):
        self.inner = inner
        self.model = inner.model
        self.failing = False
        self.calls = []

    def _check(self, name: str) -> None:
        self.calls.append(name)
        if self.failing:
            raise TransientIOError(f"{name} unavailable")

    async def put(self, record):
        self._check("put")
        await self.inner.put(record)

    async def get(self, id):
        self._check("get")
        return await self.inner.get(id)

    async def get_all(self, filter=None, *, newest_first=False, limit=None):
        self._check("get_all")
        return await self.inner.get_all(filter, newest_first=newest_first, limit=limit)

    async def update(self, id, fields):
        self._check("update")
        return await self.inner.update(id, fields)

    async def delete(self, id):
        self._check("delete")
        return await self.inner.delete(id)

    async def delete_many(self, filter):
        self._check("delete_many")
        return await self.inner.delete_many(filter)

    async def ping(self):
        return not self.failing


def make_settings(**overrides) -> Settings:
    values = {
        "public_base_url": "https://feedback.example.com",
        "qr_backend": "memory",
        "feedback_backend": "memory",
        "local_storage_dir": None,
        "retry_attempts": 3,
        "retry_base_delay_seconds": 0,
        "operation_timeout_seconds": 5,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_record(clock: FakeClock, id: str = "qr-1", **overrides) -> QRCodeRecord:
    values = {
        "id": id,
        "context": "Table 5",
        "created_at": clock(),
        "expires_at": clock() + timedelta(hours=24),
        "max_scans": 100,
        "current_scans": 0,
        "is_active": True,
    }
    values.update(overrides)
    return QRCodeRecord(**values)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def local_store() -> LocalStore:
    return LocalStore()


@pytest.fixture
def remote() -> FlakyAdapter:
    return FlakyAdapter(MemoryAdapter(QRCodeRecord))


@pytest.fixture
def feedback_adapter() -> FlakyAdapter:
    return FlakyAdapter(MemoryAdapter(FeedbackRecord))


@pytest.fixture
def services(settings, local_store, remote, feedback_adapter, clock) -> Services:
    return build_services(
        settings,
        local_store=local_store,
        qr_remote=remote,
        feedback_adapter=feedback_adapter,
        clock=clock,
    )


@pytest.fixture
def manager(services):
    return services.qr_codes


@pytest.fixture
async def session_maker(tmp_path) -> AsyncGenerator:
    """Fresh SQLite database per test"""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine, max_retries=1)
    yield make_session_maker(engine)
    await engine.dispose()


@pytest.fixture
async def client(services, settings) -> AsyncGenerator[AsyncClient, None]:
    """API client wired to in-memory services"""
    from qr_feedback.api.v1.deps import get_services, get_settings
    from qr_feedback.main import app

    app.dependency_overrides[get_services] = lambda: services
    app.dependency_overrides[get_settings] = lambda: settings

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
