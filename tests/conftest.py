"""Shared test fixtures for Usage-Governor."""

import os
from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient

API_KEY = "test-admin-api-key"
USER_ID = "user-123"

T0 = datetime(2025, 3, 10, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Controllable time source; call it to read, advance() to move forward."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, **kwargs) -> datetime:
        self.now = self.now + timedelta(seconds=seconds, **kwargs)
        return self.now

    def set(self, moment: datetime) -> None:
        self.now = moment


@pytest.fixture
def api_key():
    return API_KEY


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def app(clock):
    """Create a test app with in-memory DB and a fake clock."""
    os.environ["GOVERNOR_DB_URL"] = "sqlite+aiosqlite://"
    os.environ["GOVERNOR_API_KEY"] = API_KEY
    os.environ["GOVERNOR_ENVIRONMENT"] = "development"

    # Clear caches and singletons so new env vars take effect
    from usage_governor.common.config import get_settings
    get_settings.cache_clear()

    from usage_governor.deps import reset_singletons, set_clock
    reset_singletons()
    set_clock(clock)

    from usage_governor.app import create_app
    return create_app()


@pytest.fixture
async def client(app):
    # Manually init DB since ASGITransport doesn't run lifespan
    from usage_governor.deps import get_db
    db = get_db()
    await db.init()
    await db.create_all()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await db.close()


@pytest.fixture
def admin_headers():
    return {"X-Governor-Api-Key": API_KEY}


@pytest.fixture
def user_headers():
    return {"X-User-Id": USER_ID}
