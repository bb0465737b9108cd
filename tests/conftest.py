from __future__ import annotations

from datetime import datetime, timedelta

import httpx
import pytest
import pytest_asyncio
import respx
from httpx import ASGITransport, AsyncClient
from sqlalchemy.pool import StaticPool

from app.api.v1.deps import get_nafath_service
from app.core.config import Settings, get_settings
from app.core.rate_limit import limiter
from app.db.base import Base
from app.db.session import (
    configure_database,
    dispose_engine,
    get_async_session,
    get_session_maker,
)
from app.main import create_app
from app.services.nafath import NafathConfig, NafathService

NAFATH_BASE = "https://nafath.test"
APP_URL = "http://testserver"


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 6, 14, 9, 0, 0))


@pytest.fixture
def nafath_config() -> NafathConfig:
    return NafathConfig(
        base_url=NAFATH_BASE,
        client_id="client-id",
        client_secret="client-secret",
        redirect_uri=f"{APP_URL}/api/nafath/callback",
        scope="profile national_id",
    )


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        app_url=APP_URL,
        nafath_url_base=NAFATH_BASE,
        nafath_client_id="client-id",
        nafath_client_secret="client-secret",
    )


@pytest_asyncio.fixture
async def session_maker():
    engine = configure_database(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield get_session_maker()

    await dispose_engine()


@pytest_asyncio.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def http_client():
    async with httpx.AsyncClient(timeout=httpx.Timeout(10.0)) as client:
        yield client


@pytest.fixture
def nafath_service(nafath_config, http_client, clock) -> NafathService:
    return NafathService(nafath_config, http_client, clock=clock)


@pytest.fixture
def nafath_api():
    with respx.mock(base_url=NAFATH_BASE, assert_all_called=False) as router:
        yield router


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    limiter.reset()
    yield


@pytest.fixture
def app(session_maker, nafath_service, test_settings):
    app = create_app()

    async def _override_session():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_async_session] = _override_session
    app.dependency_overrides[get_nafath_service] = lambda: nafath_service
    app.dependency_overrides[get_settings] = lambda: test_settings
    return app


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


DEFAULT_USER = {
    "national_id": "1012345678",
    "name_ar": " محمد عبدالله القحطاني ",
    "birth_date": "2000-06-15",
    "nationality": "saudi",
}


@pytest.fixture
def mock_provider(nafath_api):
    """Return a helper that mocks a successful token exchange and user-info fetch."""

    def _mock(*, access_token: str = "access-123", user: dict | None = None):
        token_route = nafath_api.post("/oauth/token").mock(
            return_value=httpx.Response(
                200, json={"access_token": access_token, "token_type": "Bearer"}
            )
        )
        user_route = nafath_api.get("/api/user").mock(
            return_value=httpx.Response(200, json=user if user is not None else DEFAULT_USER)
        )
        return token_route, user_route

    return _mock
