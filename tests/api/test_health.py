"""Health endpoint tests."""

import pytest
from fastapi.testclient import TestClient
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
    """GET /health returns 200 with healthy status and a timestamp."""
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "T" in data["timestamp"]


@pytest.mark.asyncio
async def test_version(client: AsyncClient) -> None:
    """GET /version returns version and environment."""
    response = await client.get("/version")
    assert response.status_code == 200
    assert response.json() == {"version": "0.1.0", "environment": "development"}


@pytest.mark.asyncio
async def test_docs_hidden_outside_debug(client: AsyncClient) -> None:
    response = await client.get("/docs")
    assert response.status_code == 404
    assert response.json() == {"detail": "Not Found"}


@pytest.mark.asyncio
async def test_readiness_degraded_without_broadcaster(client: AsyncClient) -> None:
    """Before the lifespan starts the live feed loop, /ready reports 503."""
    response = await client.get("/ready")
    assert response.status_code == 503
    assert response.json() == {
        "status": "degraded",
        "checks": {"broadcaster": "stopped", "redis": "disabled"},
    }


def test_readiness_when_running(app) -> None:
    with TestClient(app) as client:
        response = client.get("/ready")
    assert response.status_code == 200
    assert response.json()["checks"] == {"broadcaster": "running", "redis": "disabled"}
