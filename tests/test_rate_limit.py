from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from httpx import ASGITransport, AsyncClient

from hims.core.config import settings
from hims.infrastructure.redis import RateLimitService
from hims.main import create_app
from hims.middleware.rate_limit import RateLimitMiddleware


def _redis(count: int, oldest: float = None) -> AsyncMock:
    redis = AsyncMock()
    redis.zcard.return_value = count
    redis.zrange.return_value = [("member", oldest)] if oldest is not None else []
    return redis


@pytest.mark.unit
class TestRateLimitService:
    async def test_allows_under_limit(self) -> None:
        redis = _redis(count=3)

        result = await RateLimitService(redis).is_allowed("api", 5, 60, identifier="10.0.0.1")

        assert result["allowed"] is True
        assert result["remaining"] == 1
        redis.zadd.assert_awaited_once()
        assert redis.zadd.await_args.args[0] == "rate_limit:api:10.0.0.1"
        redis.expire.assert_awaited_once_with("rate_limit:api:10.0.0.1", 60)

    async def test_blocks_at_limit(self) -> None:
        redis = _redis(count=5)

        result = await RateLimitService(redis).is_allowed("api", 5, 60)

        assert result["allowed"] is False
        assert result["remaining"] == 0
        assert result["retry_after"] >= 1
        redis.zadd.assert_not_awaited()


def _app(service) -> FastAPI:
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, service_factory=lambda: service)

    @app.get("/api/v1/ping")
    async def ping():
        return {"success": True}

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


async def _get(app: FastAPI, path: str):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        return await ac.get(path)


@pytest.mark.unit
class TestRateLimitMiddleware:
    async def test_rejects_with_retry_after(self) -> None:
        service = AsyncMock()
        service.is_allowed.return_value = {"allowed": False, "limit": 5, "remaining": 0, "retry_after": 42}

        with patch.object(settings, "RATE_LIMIT_ENABLED", True):
            response = await _get(_app(service), "/api/v1/ping")

        assert response.status_code == 429
        assert response.headers["retry-after"] == "42"
        body = response.json()
        assert body["success"] is False
        assert body["error_code"] == "RATE_LIMIT_ERROR"

    async def test_allowed_request_gets_headers(self) -> None:
        service = AsyncMock()
        service.is_allowed.return_value = {"allowed": True, "limit": 5, "remaining": 4, "retry_after": 0}

        with patch.object(settings, "RATE_LIMIT_ENABLED", True):
            response = await _get(_app(service), "/api/v1/ping")

        assert response.status_code == 200
        assert response.headers["x-ratelimit-remaining"] == "4"

    async def test_non_api_paths_skip_limiter(self) -> None:
        service = AsyncMock()

        with patch.object(settings, "RATE_LIMIT_ENABLED", True):
            response = await _get(_app(service), "/health")

        assert response.status_code == 200
        service.is_allowed.assert_not_awaited()

    async def test_unreachable_redis_serves_request(self) -> None:
        service = AsyncMock()
        service.is_allowed.side_effect = RuntimeError("Redis is not connected")

        with patch.object(settings, "RATE_LIMIT_ENABLED", True):
            response = await _get(_app(service), "/api/v1/ping")

        assert response.status_code == 200


def _window_service(limit: int) -> AsyncMock:
    """Limiter double counting requests per identifier"""
    seen = {}

    async def is_allowed(action, max_requests, window, identifier=None):
        seen[identifier] = seen.get(identifier, 0) + 1
        allowed = seen[identifier] <= limit
        return {"allowed": allowed, "limit": limit, "remaining": max(limit - seen[identifier], 0),
                "retry_after": 0 if allowed else 30}

    service = AsyncMock()
    service.is_allowed.side_effect = is_allowed
    return service


@pytest.mark.unit
class TestClientIdentity:
    async def test_rotating_forwarded_for_still_limited(self) -> None:
        service = _window_service(limit=2)
        app = _app(service)

        with patch.object(settings, "RATE_LIMIT_ENABLED", True):
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
                statuses = [
                    (await ac.get("/api/v1/ping", headers={"X-Forwarded-For": f"1.2.3.{i}"})).status_code
                    for i in range(3)
                ]

        assert statuses == [200, 200, 429]
        identifiers = {call.kwargs["identifier"] for call in service.is_allowed.await_args_list}
        assert identifiers == {"127.0.0.1"}

    async def test_forwarded_for_trusted_behind_proxy(self) -> None:
        service = _window_service(limit=5)

        with patch.object(settings, "RATE_LIMIT_ENABLED", True), \
                patch.object(settings, "TRUSTED_PROXIES", ["127.0.0.1", "10.0.0.2"]):
            async with AsyncClient(transport=ASGITransport(app=_app(service)), base_url="http://test") as ac:
                await ac.get("/api/v1/ping", headers={"X-Forwarded-For": "6.6.6.6, 41.90.1.7, 10.0.0.2"})

        assert service.is_allowed.await_args.kwargs["identifier"] == "41.90.1.7"


@pytest.mark.unit
class TestMiddlewareOrder:
    async def test_rate_limited_response_carries_cors_headers(self) -> None:
        limiter = MagicMock()
        limiter.return_value.is_allowed = AsyncMock(
            return_value={"allowed": False, "limit": 1, "remaining": 0, "retry_after": 5}
        )

        with patch.object(settings, "BACKEND_CORS_ORIGINS", ["http://localhost:3000"]), \
                patch.object(settings, "RATE_LIMIT_ENABLED", True), \
                patch("hims.middleware.rate_limit.RateLimitService", limiter), \
                patch("hims.middleware.rate_limit.redis_manager"):
            app = create_app()
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
                response = await ac.get("/api/v1/auth/me", headers={"Origin": "http://localhost:3000"})

        assert response.status_code == 429
        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
        assert app.user_middleware[0].cls is CORSMiddleware
