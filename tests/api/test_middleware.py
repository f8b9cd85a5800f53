"""Middleware and logging tests."""

import pytest
from httpx import AsyncClient

from chainpulse.middleware.logging import REDACTED, redact_secrets


@pytest.mark.asyncio
async def test_request_id_generated(client: AsyncClient) -> None:
    response = await client.get("/api/stats")
    assert len(response.headers["X-Request-Id"]) == 36


@pytest.mark.asyncio
async def test_request_id_propagated(client: AsyncClient) -> None:
    response = await client.get("/api/stats", headers={"X-Request-Id": "delivery-42"})
    assert response.headers["X-Request-Id"] == "delivery-42"


@pytest.mark.asyncio
async def test_request_id_on_error_responses(client: AsyncClient) -> None:
    response = await client.post("/api/chainhook/events/x", json={})
    assert response.status_code == 401
    assert "X-Request-Id" in response.headers


@pytest.mark.asyncio
async def test_cors_preflight_for_dashboard(client: AsyncClient) -> None:
    response = await client.options(
        "/api/leaderboard",
        headers={
            "Origin": "http://localhost:3000",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "http://localhost:3000"


@pytest.mark.asyncio
async def test_validation_error_shape(client: AsyncClient) -> None:
    response = await client.get("/api/leaderboard", params={"limit": 0})
    assert response.status_code == 422
    data = response.json()
    assert data["detail"] == "Validation error"
    assert data["errors"][0]["field"] == "query.limit"


class TestRedactSecrets:
    def test_masks_secret_keys(self):
        event = redact_secrets(None, "info", {"event": "x", "Authorization": "Bearer s3cret", "token": "abc"})
        assert event["Authorization"] == REDACTED
        assert event["token"] == REDACTED

    def test_masks_token_query_param(self):
        event = redact_secrets(None, "info", {"event": "x", "url": "/api/chainhook/events/a?token=s3cret&x=1"})
        assert event["url"] == f"/api/chainhook/events/a?token={REDACTED}&x=1"

    def test_leaves_other_fields(self):
        event = redact_secrets(None, "info", {"event": "activity_recorded", "points": 10, "user": "SP1"})
        assert event == {"event": "activity_recorded", "points": 10, "user": "SP1"}
