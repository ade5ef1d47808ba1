"""Shared pytest fixtures for the Weatherboard test suite.

Storage is a file-backed SQLite database (one per test) so that concurrent
per-city sessions each get their own connection. The weather provider is an
``httpx.MockTransport`` that answers per latitude.
"""

from collections.abc import Callable
from datetime import datetime, timezone

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from weatherboard.db.base import Base
from weatherboard.db.session import get_db, get_session_factory
from weatherboard.dependencies import get_http_client
from weatherboard.main import app
from weatherboard.models import City

CITIES = [
    City(id=1, name="Tokyo", latitude=35.6895, longitude=139.6917),
    City(id=2, name="Osaka", latitude=34.6937, longitude=135.5023),
    City(id=3, name="Sapporo", latitude=43.0618, longitude=141.3545),
]


def provider_payload(temp: float = 18.4, **overrides) -> dict:
    """A current-weather body shaped like OpenWeatherMap's /weather response."""
    payload = {
        "weather": [{"id": 801, "main": "Clouds", "description": "few clouds", "icon": "02d"}],
        "main": {
            "temp": temp,
            "feels_like": temp - 0.6,
            "temp_min": temp - 2.0,
            "temp_max": temp + 1.5,
            "pressure": 1012,
            "humidity": 64,
        },
        "visibility": 10000,
        "wind": {"speed": 3.6, "deg": 140},
        "clouds": {"all": 20},
        "sys": {"sunrise": 1760821200, "sunset": 1760861400, "country": "JP"},
        "dt": 1760850000,
        "name": "Shibuya",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def engine(tmp_path):
    eng = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'weather.db'}", poolclass=NullPool
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def cities(session_factory) -> list[City]:
    """Register the three test cities."""
    async with session_factory() as session:
        session.add_all(
            [City(id=c.id, name=c.name, latitude=c.latitude, longitude=c.longitude) for c in CITIES]
        )
        await session.commit()
    return CITIES


@pytest.fixture
def provider_responses() -> dict[float, Callable[[httpx.Request], httpx.Response]]:
    """Per-latitude overrides; cities without one get a default 200 body."""
    return {}


@pytest.fixture
def provider_client(provider_responses) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        lat = float(request.url.params["lat"])
        if lat in provider_responses:
            return provider_responses[lat](request)
        return httpx.Response(200, json=provider_payload())

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def now() -> datetime:
    return datetime(2026, 10, 19, 3, 0, tzinfo=timezone.utc)


@pytest.fixture
async def client(session_factory, provider_client) -> AsyncClient:
    """Async test client that talks directly to the ASGI app (no network required)."""

    async def _get_db():
        async with session_factory() as session:
            yield session

    async def _get_http_client():
        yield provider_client

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_http_client] = _get_http_client

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://testserver",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
    await provider_client.aclose()
