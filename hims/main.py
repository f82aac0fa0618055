from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError

from hims.api.v1.api import api_router
from hims.core.config import settings
from hims.core.events import RequestLoggingMiddleware
from hims.core.exceptions import register_exception_handlers
from hims.core.logging import setup_logging
from hims.infrastructure.database import close_db, init_db
from hims.infrastructure.redis import close_redis, init_redis, redis_manager
from hims.middleware.rate_limit import RateLimitMiddleware

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    await init_db()
    if settings.RATE_LIMIT_ENABLED:
        try:
            await init_redis(settings.REDIS_URL)
        except (RedisError, OSError):
            logger.warning("Redis unavailable; rate limiting disabled for this process")
    logger.info(f"{settings.PROJECT_NAME} started")
    yield
    if redis_manager.is_connected:
        await close_redis()
    await close_db()


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(RequestLoggingMiddleware)

    # CORS stays outermost, 429 responses included
    if settings.BACKEND_CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[str(origin).rstrip("/") for origin in settings.BACKEND_CORS_ORIGINS],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    register_exception_handlers(app)

    app.include_router(api_router, prefix=settings.API_V1_STR)

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    return app


app = create_app()
