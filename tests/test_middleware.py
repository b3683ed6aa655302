"""Middleware tests: request ID, rate limiting, CORS, error handling."""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_request_id_generated(client: AsyncClient) -> None:
    """Request ID is auto-generated when not provided."""
    response = await client.get("/health")
    assert "x-request-id" in response.headers
    assert len(response.headers["x-request-id"]) == 36  # UUID format


@pytest.mark.asyncio
async def test_request_id_preserved(client: AsyncClient) -> None:
    """Custom request ID is echoed back in response."""
    response = await client.get("/health", headers={"X-Request-Id": "test-abc-123"})
    assert response.headers["x-request-id"] == "test-abc-123"


@pytest.mark.asyncio
async def test_no_rate_limit_without_redis(client: AsyncClient) -> None:
    """Requests pass unthrottled when Redis is unavailable."""
    response = await client.get("/version")
    assert response.status_code == 200
    assert "x-ratelimit-limit" not in response.headers


@pytest.mark.asyncio
async def test_rate_limit_headers(client: AsyncClient, redis_client) -> None:
    """Rate limit headers are present on non-exempt endpoints."""
    response = await client.get("/version")
    assert "x-ratelimit-remaining" in response.headers
    assert "x-ratelimit-limit" in response.headers


@pytest.mark.asyncio
async def test_rate_limit_blocks_excess(client: AsyncClient, redis_client) -> None:
    """101st request returns 429 with Retry-After header."""
    for _ in range(100):
        await client.get("/version")
    response = await client.get("/version")
    assert response.status_code == 429
    assert "retry-after" in response.headers
    assert "detail" in response.json()


@pytest.mark.asyncio
async def test_health_exempt_from_rate_limit(client: AsyncClient, redis_client) -> None:
    """Health endpoint is exempt from rate limiting; 200 requests all succeed."""
    for _ in range(200):
        response = await client.get("/health")
        assert response.status_code == 200


@pytest.mark.asyncio
async def test_cors_preflight(client: AsyncClient) -> None:
    """CORS preflight returns access-control-allow-origin for the configured frontend origin."""
    response = await client.options(
        "/health",
        headers={
            "Origin": "http://localhost:3000",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert response.headers["access-control-allow-origin"] == "http://localhost:3000"


@pytest.mark.asyncio
async def test_404_returns_json(client: AsyncClient) -> None:
    """Unknown paths return 404 with JSON body."""
    response = await client.get("/nonexistent-path")
    assert response.status_code == 404
    assert response.json()["detail"] == "Not Found"
    assert response.headers["content-type"] == "application/json"


@pytest.mark.asyncio
async def test_validation_error_is_400(client: AsyncClient, auth_headers) -> None:
    """Malformed input yields 400 with the validation errors listed."""
    response = await client.post("/api/v1/goals", json={"title": ""}, headers=auth_headers())
    assert response.status_code == 400
    data = response.json()
    assert data["detail"] == "Validation error"
    assert data["errors"]


@pytest.mark.asyncio
async def test_missing_token_is_401(client: AsyncClient) -> None:
    response = await client.get("/api/v1/goals")
    assert response.status_code == 401
