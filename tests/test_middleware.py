"""Middleware tests: request ID, rate limiting, CORS, error handling."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import AsyncClient

from guildchat.middleware import rate_limit


@pytest.mark.asyncio
async def test_request_id_generated(client: AsyncClient) -> None:
    """Request ID is auto-generated when not provided."""
    response = await client.get("/health")
    assert len(response.headers["x-request-id"]) == 36  # UUID format


@pytest.mark.asyncio
async def test_request_id_preserved(client: AsyncClient) -> None:
    response = await client.get("/health", headers={"X-Request-Id": "test-abc-123"})
    assert response.headers["x-request-id"] == "test-abc-123"


@pytest.mark.asyncio
async def test_no_rate_limit_without_redis(client: AsyncClient) -> None:
    response = await client.get("/version")
    assert response.status_code == 200
    assert "x-ratelimit-limit" not in response.headers


def _fake_redis(count: int) -> MagicMock:
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[count, True])
    redis = MagicMock()
    redis.pipeline = MagicMock(return_value=pipe)
    return redis


@pytest.mark.asyncio
async def test_rate_limit_headers(client: AsyncClient, alice: dict, monkeypatch) -> None:
    monkeypatch.setattr(rate_limit, "get_redis_or_none", lambda: _fake_redis(1))
    response = await client.get("/api/auth/user", headers=alice)
    assert response.status_code == 200
    assert response.headers["x-ratelimit-limit"] == "300"
    assert response.headers["x-ratelimit-remaining"] == "299"


@pytest.mark.asyncio
async def test_rate_limit_blocks_excess(client: AsyncClient, alice: dict, monkeypatch) -> None:
    monkeypatch.setattr(rate_limit, "get_redis_or_none", lambda: _fake_redis(301))
    response = await client.get("/api/auth/user", headers=alice)
    assert response.status_code == 429
    assert "retry-after" in response.headers
    assert response.json()["code"] == "rate_limited"


@pytest.mark.asyncio
async def test_version_exempt_from_rate_limit(client: AsyncClient, monkeypatch) -> None:
    monkeypatch.setattr(rate_limit, "get_redis_or_none", lambda: _fake_redis(10_000))
    response = await client.get("/version")
    assert response.status_code == 200
    assert "x-ratelimit-limit" not in response.headers


@pytest.mark.asyncio
async def test_health_exempt_from_rate_limit(client: AsyncClient, monkeypatch) -> None:
    monkeypatch.setattr(rate_limit, "get_redis_or_none", lambda: _fake_redis(10_000))
    response = await client.get("/health")
    assert response.status_code == 200


def test_exempt_paths() -> None:
    assert rate_limit.is_exempt("/ready")
    assert rate_limit.is_exempt("/uploads/abc.png")
    assert not rate_limit.is_exempt("/api/servers")


@pytest.mark.asyncio
async def test_cors_preflight(client: AsyncClient) -> None:
    response = await client.options(
        "/api/servers",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "POST",
        },
    )
    assert response.headers["access-control-allow-origin"] == "http://localhost:5173"


@pytest.mark.asyncio
async def test_domain_error_shape(client: AsyncClient) -> None:
    response = await client.get("/api/invites/UNKNOWN1")
    assert response.status_code == 404
    assert response.json() == {"detail": "Invite not found", "code": "not_found"}


@pytest.mark.asyncio
async def test_validation_error_shape(client: AsyncClient, alice: dict) -> None:
    response = await client.post("/api/servers", json={}, headers=alice)
    assert response.status_code == 422
    body = response.json()
    assert body["detail"] == "Validation error"
    assert body["errors"][0]["loc"] == ["body", "name"]
