import logging
from typing import Optional

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, AsyncEngine
from sqlalchemy.orm import sessionmaker

from app.shared.core.config import settings
from app.shared.core.constants import DB_POOL_SIZE, DB_MAX_OVERFLOW, DB_POOL_RECYCLE

logger = logging.getLogger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[sessionmaker] = None


def get_engine() -> AsyncEngine:
    """
    Create the async engine on first use.

    Lazy so that importing the app (tests, alembic, scripts) does not need a
    reachable database.
    """
    global _engine
    if _engine is None:
        if not settings.DATABASE_URL:
            logger.error("❌ DATABASE_URL is missing in .env file")
            raise ValueError("DATABASE_URL is required")

        # statement_cache_size=0 disables prepared statements (required for PgBouncer)
        _engine = create_async_engine(
            settings.DATABASE_URL,
            echo=False,
            pool_pre_ping=True,
            pool_size=DB_POOL_SIZE,
            max_overflow=DB_MAX_OVERFLOW,
            pool_recycle=DB_POOL_RECYCLE,
            connect_args={
                "statement_cache_size": 0,
                "prepared_statement_cache_size": 0
            }
        )
        logger.info("✅ Database Engine Initialized (Transaction Pooler)")
    return _engine


def get_session_factory() -> sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(
            bind=get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False
        )
    return _session_factory


async def get_db():
    """Dependency for FastAPI routes to get a DB session"""
    async with get_session_factory()() as session:
        yield session


async def dispose_engine() -> None:
    """Release pooled connections on shutdown."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
