import logging
from typing import Callable, Optional

from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from hims.core.config import settings
from hims.core.exceptions import RateLimitError, create_error_response
from hims.infrastructure.redis import RateLimitService, redis_manager

logger = logging.getLogger(__name__)


def client_identity(request: Request) -> str:
    """Address the limit is keyed on.

    X-Forwarded-For is only read when the connecting peer is a trusted
    proxy; the nearest hop not in TRUSTED_PROXIES is the client.
    """
    peer = request.client.host if request.client else "unknown"
    if peer not in settings.TRUSTED_PROXIES:
        return peer

    hops = [h.strip() for h in request.headers.get("x-forwarded-for", "").split(",") if h.strip()]
    for hop in reversed(hops):
        if hop not in settings.TRUSTED_PROXIES:
            return hop
    return peer


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-client sliding-window limit on API routes"""

    def __init__(self, app, service_factory: Optional[Callable[[], RateLimitService]] = None):
        super().__init__(app)
        self._service_factory = service_factory or (lambda: RateLimitService(redis_manager.client))

    async def dispatch(self, request: Request, call_next):
        if not settings.RATE_LIMIT_ENABLED or not request.url.path.startswith(settings.API_V1_STR):
            return await call_next(request)

        client_ip = client_identity(request)

        try:
            result = await self._service_factory().is_allowed(
                "api",
                settings.RATE_LIMIT_REQUESTS,
                settings.RATE_LIMIT_WINDOW_SECONDS,
                identifier=client_ip,
            )
        except (RedisError, RuntimeError) as e:
            # Limiter unavailable: serve the request unthrottled
            logger.warning(f"Rate limiter unavailable: {e}")
            return await call_next(request)

        if not result["allowed"]:
            error = RateLimitError(
                "Too many requests. Please try again later.",
                details={"retry_after": result["retry_after"]},
            )
            return JSONResponse(
                status_code=error.status_code,
                content=create_error_response(error),
                headers={"Retry-After": str(result["retry_after"])},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(result["limit"])
        response.headers["X-RateLimit-Remaining"] = str(result["remaining"])
        return response
