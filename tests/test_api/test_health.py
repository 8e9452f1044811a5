"""Tests for health and metrics endpoints."""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_root_health(client: AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_api_health_reports_integrations(client: AsyncClient, gateway, llm):
    gateway.is_configured = False
    llm.is_configured = False

    response = await client.get("/api/health")

    body = response.json()
    assert body["status"] == "healthy"
    assert body["services"] == {
        "googleMaps": "configured",
        "sms": "unconfigured",
        "ai": "unconfigured",
    }
    assert body["correlation_id"] == response.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_ai_health(client: AsyncClient, llm):
    response = await client.get("/api/health/ai")

    assert response.json()["status"] == "healthy"
    llm.check_health.assert_awaited_once()


@pytest.mark.asyncio
async def test_db_health(client: AsyncClient):
    response = await client.get("/api/health/db")

    assert response.json()["status"] == "healthy"
    assert response.json()["database"] == "sqlite"


@pytest.mark.asyncio
async def test_metrics_endpoint(client: AsyncClient):
    await client.get("/api/maps/config")

    response = await client.get("/metrics")

    assert response.status_code == 200
    assert "healthspot_http_requests_total" in response.text


@pytest.mark.asyncio
async def test_security_headers(client: AsyncClient):
    response = await client.get("/health")

    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert "X-Frame-Options" in response.headers
