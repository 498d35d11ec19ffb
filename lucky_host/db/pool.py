# lucky_host/db/pool.py
"""
PostgreSQL connection pool for the booking history queries and audit inserts.

Opened once at process startup by the booking workflow that embeds the
selector, closed on shutdown. Every pooled session runs in UTC so that
booking timestamps compare consistently.
"""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from lucky_host.config import settings
from lucky_host.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

POOL_CLOSE_TIMEOUT_S = 30.0

_SESSION_SETTINGS = (
    "SET timezone = 'UTC'",
    "SET statement_timeout = '30s'",
)


class DatabasePoolManager:
    """Owns the process-wide AsyncConnectionPool."""

    def __init__(self):
        self.pool: AsyncConnectionPool | None = None
        self._initialized = False
        self._closed = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized and not self._closed

    async def initialize(self) -> None:
        if self._initialized:
            logger.warning("Database pool already initialized")
            return
        if self._closed:
            raise RuntimeError("Cannot reinitialize closed pool")
        if not settings.DATABASE_URL:
            raise RuntimeError("DATABASE_URL is not configured")

        pool_config = self._get_pool_config()
        self.pool = AsyncConnectionPool(conninfo=settings.DATABASE_URL, open=False, **pool_config)

        try:
            await self.pool.open()
            await self.pool.wait()
        except Exception as e:
            logger.error("Failed to open database pool", error=str(e))
            await self._discard_pool()
            raise RuntimeError(f"Database pool initialization failed: {e}") from e

        self._initialized = True
        logger.info(
            "Database pool ready",
            min_size=pool_config["min_size"],
            max_size=pool_config["max_size"],
            timeout=pool_config["timeout"],
        )

    def _get_pool_config(self) -> dict[str, Any]:
        config = settings.get_db_pool_config()
        config["check"] = AsyncConnectionPool.check_connection
        config["configure"] = self._configure_connection
        return config

    async def _configure_connection(self, conn: psycopg.AsyncConnection) -> None:
        """
        Prepare a new pooled connection: dict rows, autocommit, UTC session.

        Raising here makes the pool discard the connection instead of
        handing out one with the wrong session settings.
        """
        try:
            conn.row_factory = dict_row
            await conn.set_autocommit(True)

            # SET cannot be parameterized
            app_name = f"lucky-host-{settings.environment}"
            await conn.execute(sql.SQL("SET application_name = {}").format(sql.Literal(app_name)))
            for statement in _SESSION_SETTINGS:
                await conn.execute(statement)
        except Exception:
            logger.exception("Failed to configure database connection")
            raise

    async def _discard_pool(self) -> None:
        if self.pool is None:
            return
        try:
            await asyncio.wait_for(self.pool.close(), timeout=POOL_CLOSE_TIMEOUT_S)
        except Exception as e:
            logger.warning("Error closing database pool", error=str(e))
        self.pool = None

    async def close(self) -> None:
        if not self.is_initialized:
            return

        logger.info("Closing database connection pool")
        await self._discard_pool()
        self._initialized = False
        self._closed = True

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        """
        Borrow a connection from the pool.

        Usage:
            async with db_pool.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute("SELECT 1")
        """
        if self._closed:
            raise RuntimeError("Database pool is closed")
        if not self._initialized or self.pool is None:
            raise RuntimeError("Database pool not initialized. Call initialize() first.")

        try:
            async with self.pool.connection() as conn:
                yield conn
        except Exception as e:
            logger.error("Database connection error", error=str(e), error_type=type(e).__name__)
            raise


db_pool = DatabasePoolManager()


async def get_db_connection():
    return db_pool.connection()
