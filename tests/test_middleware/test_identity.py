"""Tests for correlation ids and anonymous visitor cookies."""

import uuid

import pytest
import pytest_asyncio
from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient

from healthspot.middleware.anonymous import AnonymousIdMiddleware
from healthspot.middleware.correlation import CorrelationMiddleware, is_valid_correlation_id

VALID_ID = "0123456789abcdef0123456789abcdef"


@pytest_asyncio.fixture
async def identity_client():
    app = FastAPI()
    app.add_middleware(AnonymousIdMiddleware, cookie_name="anonymousId", secure=False)
    app.add_middleware(CorrelationMiddleware)

    @app.get("/whoami")
    async def whoami(request: Request):
        return {
            "anonymous_id": request.state.anonymous_id,
            "correlation_id": request.state.correlation_id,
        }

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.mark.parametrize(
    "value,expected",
    [
        (str(uuid.uuid4()), True),
        ("test-123", True),
        ("not-a-uuid", False),
        ("", False),
        (None, False),
    ],
)
def test_is_valid_correlation_id(value, expected):
    assert is_valid_correlation_id(value) is expected


@pytest.mark.asyncio
async def test_correlation_id_is_generated(identity_client):
    response = await identity_client.get("/whoami", headers={"X-Request-ID": "bogus"})

    generated = response.headers["X-Request-ID"]
    assert generated != "bogus"
    assert uuid.UUID(generated)
    assert response.json()["correlation_id"] == generated


@pytest.mark.asyncio
async def test_new_visitor_gets_cookie(identity_client):
    response = await identity_client.get("/whoami")

    anonymous_id = response.json()["anonymous_id"]
    cookie = response.headers["set-cookie"]
    assert len(anonymous_id) == 32
    assert f"anonymousId={anonymous_id}" in cookie
    assert "HttpOnly" in cookie
    assert "SameSite=strict" in cookie


@pytest.mark.asyncio
async def test_existing_cookie_is_reused(identity_client):
    response = await identity_client.get(
        "/whoami", headers={"Cookie": f"anonymousId={VALID_ID}"}
    )

    assert response.json()["anonymous_id"] == VALID_ID
    assert "set-cookie" not in response.headers


@pytest.mark.asyncio
async def test_malformed_cookie_is_replaced(identity_client):
    response = await identity_client.get(
        "/whoami", headers={"Cookie": "anonymousId=<script>"}
    )

    assert response.json()["anonymous_id"] != "<script>"
    assert "set-cookie" in response.headers
