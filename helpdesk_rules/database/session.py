from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
import logging
import re

from helpdesk_rules.core.config import settings

logger = logging.getLogger(__name__)


# Helper to get the async driver
def get_async_driver(uri: str) -> str:
    if uri.startswith("mysql"):
        # Replaces mysql:// or mysql+pymysql:// with mysql+aiomysql://
        return re.sub(r"mysql(\+pymysql)?://", "mysql+aiomysql://", uri)
    return uri


def create_engine_for(uri: str):
    return create_async_engine(
        get_async_driver(uri),
        pool_pre_ping=True,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        echo=False,
    )


if settings.DATABASE_URI:
    engine = create_engine_for(settings.DATABASE_URI)

    AsyncSessionLocal = sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
else:
    logger.warning("DATABASE_URI is not configured. Rule storage will not be available.")
    engine = None
    AsyncSessionLocal = None


async def get_db() -> AsyncSession:
    if AsyncSessionLocal is None:
        raise ValueError("No database connection configured")

    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()
