"""Database session management."""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from devops_insight.core.config import get_settings
from devops_insight.core.logging import get_logger
from devops_insight.models.base import Base

logger = get_logger(__name__)

# Global engine and session factory
engine = None
async_session_factory = None


def init_db() -> None:
    """
    Initialize database engine and session factory.

    Creates async engine with connection pooling and configures session factory.
    """
    global engine, async_session_factory

    settings = get_settings()

    if settings.is_sqlite:
        # In-memory SQLite needs one shared connection
        engine = create_async_engine(
            settings.database_url,
            echo=settings.debug,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        logger.info("database_initialized", pool_class="StaticPool", backend="sqlite")
    elif settings.is_production:
        engine = create_async_engine(
            settings.database_url,
            echo=settings.debug,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_timeout=settings.database_pool_timeout,
            pool_recycle=settings.database_pool_recycle,
            pool_pre_ping=True,
            connect_args={
                "server_settings": {"application_name": settings.app_name},
                "timeout": 30,
            },
        )
        logger.info(
            "database_initialized",
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            environment=settings.environment,
        )
    else:
        # Development: No pooling for easier debugging
        engine = create_async_engine(
            settings.database_url,
            echo=settings.debug,
            poolclass=NullPool,
            pool_pre_ping=True,
            connect_args={
                "server_settings": {"application_name": settings.app_name},
                "timeout": 30,
            },
        )
        logger.info(
            "database_initialized",
            pool_class="NullPool",
            environment=settings.environment,
        )

    async_session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


def get_session_factory() -> async_sessionmaker:
    """Return the configured session factory."""
    if async_session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return async_session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency to get database session.

    Yields:
        AsyncSession instance
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def close_db() -> None:
    """Close database connections and dispose of engine."""
    if engine is not None:
        await engine.dispose()
        logger.info("database_connections_closed")


async def create_tables() -> None:
    """Create all database tables. Use only in development or for testing."""
    if engine is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        logger.info("database_tables_created")
