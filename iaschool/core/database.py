# iaschool/core/database.py
"""Database connection and session management using SQLAlchemy."""
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool
import logging

from .config import settings

logger = logging.getLogger(__name__)


def _engine_options(application_name: str, statement_timeout: str, pooled: bool = True) -> dict:
    """Pool and driver options; asyncpg-only arguments are skipped for other drivers"""
    if pooled:
        options = {"pool_pre_ping": True}
    else:
        options = {"poolclass": NullPool}
    if not settings.database_url.startswith("postgresql+asyncpg"):
        return options
    if pooled:
        options.update(pool_size=10, max_overflow=20, pool_timeout=60, pool_recycle=1800)
    return {
        **options,
        "connect_args": {
            "command_timeout": 60,
            "server_settings": {
                "jit": "off",
                "application_name": application_name,
                "statement_timeout": statement_timeout,
                "idle_in_transaction_session_timeout": "60s",
            }
        }
    }


engine = create_async_engine(
    settings.database_url,
    echo=(settings.environment == 'development' and settings.log_level == 'debug'),
    **_engine_options("iaschool_api", "60s")
)

# Celery tasks each run in a new event loop; connections must not outlive it
background_engine = create_async_engine(
    settings.database_url,
    echo=False,
    **_engine_options("iaschool_background", "300s", pooled=False)
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    expire_on_commit=False,
    class_=AsyncSession,
    autoflush=False,
)

AsyncBackgroundSessionLocal = async_sessionmaker(
    background_engine,
    expire_on_commit=False,
    class_=AsyncSession,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session for API requests with proper error handling"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception as e:
            logger.error(f"Database session error: {e}")
            await session.rollback()
            raise
        finally:
            await session.close()


async def close_db_connections():
    """Properly close all database connections"""
    await engine.dispose()
    await background_engine.dispose()
    logger.info("Database connections closed")
