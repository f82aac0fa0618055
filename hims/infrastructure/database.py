from datetime import datetime
from typing import AsyncGenerator
import logging
import uuid

from sqlalchemy import Column, DateTime
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base

from hims.core.config import settings

logger = logging.getLogger(__name__)

if settings.is_sqlite:
    engine = create_async_engine(
        settings.DATABASE_URL,
        echo=settings.DEBUG,
    )
else:
    engine = create_async_engine(
        settings.DATABASE_URL,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_pre_ping=True,
        pool_recycle=3600,
        echo=settings.DEBUG
    )

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False
)

# Base model
Base = declarative_base()


def gen_uuid() -> str:
    return str(uuid.uuid4())


class TimestampMixin:
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


def _import_models() -> None:
    # Registers every table on Base.metadata
    from hims.domain.auth import models as _auth  # noqa: F401
    from hims.domain.patients import models as _patients  # noqa: F401
    from hims.domain.appointments import models as _appointments  # noqa: F401
    from hims.domain.visits import models as _visits  # noqa: F401
    from hims.domain.diagnostics import models as _diagnostics  # noqa: F401
    from hims.domain.catalog import models as _catalog  # noqa: F401
    from hims.domain.billing import models as _billing  # noqa: F401
    from hims.domain.pharmacy import models as _pharmacy  # noqa: F401
    from hims.domain.store import models as _store  # noqa: F401
    from hims.domain.mortuary import models as _mortuary  # noqa: F401
    from hims.domain.wards import models as _wards  # noqa: F401
    from hims.domain.theatres import models as _theatres  # noqa: F401
    from hims.domain.ipd import models as _ipd  # noqa: F401


async def init_db() -> None:
    """Initialize database tables"""
    _import_models()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ready")


async def close_db() -> None:
    """Close database connections"""
    await engine.dispose()
