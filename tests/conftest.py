"""Test configuration."""

import os

# Must be set before any healthspot module reads settings
os.environ["TESTING"] = "true"

from collections.abc import AsyncGenerator
from typing import cast
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from healthspot.api import deps
from healthspot.core.db import get_session
from healthspot.core.geocoding import GeocodeResolver
from healthspot.core.logging import configure_logging
from healthspot.database import models  # noqa: F401
from healthspot.database.base import Base
from healthspot.integrations.deepseek import DeepSeekClient
from healthspot.integrations.google_maps import PlacesClient
from healthspot.integrations.twilio import TwilioGateway
from healthspot.main import create_app
from healthspot.middleware.rate_limit import SlidingWindowRateLimiter

configure_logging(testing=True, level="debug")


@pytest_asyncio.fixture(scope="function")
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine with every table created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture
def places() -> MagicMock:
    """Places client double; every API method is an AsyncMock."""
    client = MagicMock(spec=PlacesClient)
    client.api_key = "test-maps-key"
    client.is_configured = True
    client.nearby_search = AsyncMock(return_value=[])
    client.text_search = AsyncMock(return_value=[])
    client.place_details = AsyncMock(return_value=None)
    client.compute_routes = AsyncMock(return_value={"routes": []})
    return client


@pytest.fixture
def resolver() -> MagicMock:
    return MagicMock(spec=GeocodeResolver)


@pytest.fixture
def llm() -> MagicMock:
    client = MagicMock(spec=DeepSeekClient)
    client.is_configured = True
    client.complete = AsyncMock(return_value="")
    client.generate_sms_reply = AsyncMock(
        return_value={"success": True, "message": "AI reply"}
    )
    client.check_health = AsyncMock(return_value={"status": "healthy"})
    return client


@pytest.fixture
def gateway() -> MagicMock:
    sms = MagicMock(spec=TwilioGateway)
    sms.is_configured = True
    sms.send = AsyncMock(return_value={"sid": "SM123"})
    return sms


@pytest.fixture
def test_app(
    db_session: AsyncSession,
    places: MagicMock,
    resolver: MagicMock,
    llm: MagicMock,
    gateway: MagicMock,
) -> FastAPI:
    """Application wired to the in-memory database and integration doubles."""
    app = create_app(rate_limiter=SlidingWindowRateLimiter(max_requests=10000))

    async def _session() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[deps.get_places] = lambda: places
    app.dependency_overrides[deps.get_resolver] = lambda: resolver
    app.dependency_overrides[deps.get_llm] = lambda: llm
    app.dependency_overrides[deps.get_sms_gateway] = lambda: gateway
    return app


@pytest_asyncio.fixture
async def client(test_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(
        app=test_app, client=cast(tuple[str, int], ("testclient", 50000))
    )
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac
