"""
Database engine and session factory management with SQLAlchemy async
"""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from core.config import settings
import logging

logger = logging.getLogger(__name__)


def create_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """Create async engine for the configured database"""
    url = database_url or settings.DATABASE_URL
    logger.debug(f"Creating database engine for {url.split('@')[-1]}")

    return create_async_engine(
        url,
        echo=False,
        poolclass=NullPool,  # For async, connection pooling handled differently
        future=True
    )


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker:
    """Create session factory bound to an engine"""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False
    )
