"""Async database engine, session factory and schema management."""

from typing import Any, Dict, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from site_evaluator.core.config import DatabaseSettings
from site_evaluator.utils.logging import get_logger

LOGGER = get_logger(__name__)


class Base(DeclarativeBase):
    """Declarative base for the site evaluation tables."""

    pass


def build_engine(db_settings: DatabaseSettings) -> AsyncEngine:
    """Create an async engine for the configured database.

    Pool sizing only applies to server databases; SQLite gets a busy timeout
    so concurrent section writers wait for the lock instead of failing.
    """
    kwargs: Dict[str, Any] = {"echo": db_settings.echo, "future": True}

    if db_settings.is_sqlite:
        kwargs["connect_args"] = {"timeout": 30}
    else:
        kwargs.update(
            pool_size=db_settings.pool_size,
            max_overflow=db_settings.max_overflow,
            # Disable prepared statement cache for PgBouncer compatibility
            connect_args={"statement_cache_size": 0},
        )

    return create_async_engine(db_settings.connection_url, **kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class DatabaseClient:
    """Owns the engine: connectivity checks, schema creation and disposal."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    async def ping(self) -> None:
        """Run a trivial query, raising if the database is unreachable."""
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        LOGGER.info("Database reachable", extra={"dialect": self.dialect})

    async def create_tables(self) -> None:
        """Create missing location, job and report tables; existing ones are left alone."""
        # Registers the mapped classes on Base.metadata
        from site_evaluator.database import models  # noqa: F401

        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except Exception as e:
            LOGGER.error("Failed to create site evaluation tables", exc_info=True, extra={"error": str(e)})
            raise

        LOGGER.info("Site evaluation tables verified", extra={"tables": sorted(Base.metadata.tables)})

    async def health_check(self) -> Dict[str, Any]:
        try:
            async with self.engine.connect() as conn:
                value = await conn.scalar(text("SELECT 1"))
        except Exception as e:
            LOGGER.error("Database health check failed", extra={"error": str(e)})
            return {"status": "unhealthy", "connected": False, "database": self.dialect, "error": str(e)}

        return {
            "status": "healthy" if value == 1 else "unhealthy",
            "connected": True,
            "database": self.dialect,
        }

    async def dispose(self) -> None:
        await self.engine.dispose()
        LOGGER.info("Database engine disposed")


async def init_database(client: DatabaseClient, auto_migrate: bool = True) -> None:
    """Check connectivity and, when enabled, create any missing tables.

    Production deployments run alembic and set DATABASE_AUTO_MIGRATE=false.
    """
    try:
        await client.ping()
        if auto_migrate:
            await client.create_tables()
    except Exception as e:
        LOGGER.error("Database initialization failed", exc_info=True, extra={"error": str(e)})
        raise


async def close_database(client: Optional[DatabaseClient]) -> None:
    if client is None:
        return
    try:
        await client.dispose()
    except Exception as e:
        LOGGER.error("Error disposing database engine", exc_info=True, extra={"error": str(e)})
