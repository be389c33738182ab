"""Database engine, session scope and lifecycle for the order store."""

import os
import logging
from typing import Any, AsyncGenerator, Dict, Optional
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    create_async_engine as sa_create_async_engine,
    AsyncSession,
    async_sessionmaker,
    AsyncEngine,
)
from sqlalchemy.pool import StaticPool

from . import models

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./orders.db"

# Plain driver schemes mapped to their async equivalents
ASYNC_SCHEMES = {
    "postgresql://": "postgresql+asyncpg://",
    "postgres://": "postgresql+asyncpg://",
}


def get_database_url() -> str:
    """Resolve the order store URL from DATABASE_URL.

    Plain PostgreSQL URLs are rewritten to the asyncpg driver. Without
    DATABASE_URL a local SQLite file is used.
    """
    db_url = os.getenv("DATABASE_URL")
    if not db_url:
        return DEFAULT_DATABASE_URL
    for scheme, async_scheme in ASYNC_SCHEMES.items():
        if db_url.startswith(scheme):
            return async_scheme + db_url[len(scheme):]
    return db_url


def _engine_options(url: str, pool_size: int, max_overflow: int) -> Dict[str, Any]:
    # SQLite shares a single connection so in-memory stores survive across sessions
    if url.startswith("sqlite"):
        return {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }
    return {"pool_size": pool_size, "max_overflow": max_overflow}


def create_async_engine(
    database_url: Optional[str] = None,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 10,
) -> AsyncEngine:
    """
    Create an async engine for the order store.

    Args:
        database_url: Connection URL. Defaults to get_database_url().
        echo: Log every SQL statement.
        pool_size: Pooled connections (ignored for SQLite).
        max_overflow: Extra connections beyond pool_size (ignored for SQLite).
    """
    url = database_url or get_database_url()
    return sa_create_async_engine(url, echo=echo, **_engine_options(url, pool_size, max_overflow))


def get_async_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Build a session factory bound to ``engine``."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@asynccontextmanager
async def session_scope(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Open a session that commits on success and rolls back on error.

    Example:
        async with session_scope(factory) as session:
            repo = OrderRepository(session)
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def create_tables(engine: AsyncEngine) -> None:
    """Create the orders and order_notes tables if missing."""
    async with engine.begin() as conn:
        await conn.run_sync(models.Base.metadata.create_all)
    logger.info("Order store tables ready")


class DatabaseManager:
    """
    Owns the engine for one process (API app, CLI command).

    Example:
        db_manager = DatabaseManager()
        await db_manager.initialize()
        engine = ReconciliationEngine(db_manager.session_factory, client)
        ...
        await db_manager.shutdown()
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        echo: bool = False,
        pool_size: int = 5,
        max_overflow: int = 10,
    ):
        self.database_url = database_url
        self.echo = echo
        self.pool_size = pool_size
        self.max_overflow = max_overflow
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        """The session factory, available once initialized."""
        if self._session_factory is None:
            raise RuntimeError("DatabaseManager not initialized. Call initialize() first.")
        return self._session_factory

    async def initialize(self, create_all: bool = True) -> None:
        """Connect to the order store, creating tables unless told otherwise."""
        self._engine = create_async_engine(
            self.database_url,
            echo=self.echo,
            pool_size=self.pool_size,
            max_overflow=self.max_overflow,
        )
        self._session_factory = get_async_session_factory(self._engine)

        if create_all:
            await create_tables(self._engine)

        logger.info("Order store connected")

    async def shutdown(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Order store connection closed")

    def session(self):
        """Transactional session scope on this manager's factory."""
        return session_scope(self.session_factory)
