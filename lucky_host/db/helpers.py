# lucky_host/db/helpers.py
"""
Database helper functions for common patterns.
Reduces boilerplate in the repository layer.
"""

from typing import Any

import psycopg

from lucky_host.db.pool import get_db_connection
from lucky_host.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class DatabaseError(Exception):
    """Custom exception for database operations."""

    def __init__(self, message: str, operation: str = "unknown", recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


async def fetch_all(
    query: str, params: tuple = (), *, connection: psycopg.AsyncConnection | None = None
) -> list[dict[str, Any]]:
    """
    Execute query and return all rows as list of dicts.

    Args:
        query: SQL query with %s placeholders
        params: Query parameters
        connection: Optional existing connection

    Returns:
        List of dicts with row data
    """
    try:
        if connection:
            async with connection.cursor() as cur:
                await cur.execute(query, params)
                return await cur.fetchall()
        else:
            async with await get_db_connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, params)
                    return await cur.fetchall()

    except psycopg.OperationalError as e:
        logger.error("Database fetch_all error", query=query[:100], error=str(e))
        raise DatabaseError(f"Query failed: {e}", operation="fetch_all") from e
    except psycopg.Error as e:
        logger.error("Database fetch_all error", query=query[:100], error=str(e))
        raise DatabaseError(f"Query failed: {e}", operation="fetch_all", recoverable=False) from e


async def execute_query(
    query: str, params: tuple = (), *, connection: psycopg.AsyncConnection | None = None
) -> int:
    """
    Execute query and return number of affected rows.

    Args:
        query: SQL query with %s placeholders
        params: Query parameters
        connection: Optional existing connection

    Returns:
        Number of affected rows
    """
    try:
        if connection:
            cursor = await connection.execute(query, params)
            return cursor.rowcount
        else:
            async with await get_db_connection() as conn:
                cursor = await conn.execute(query, params)
                return cursor.rowcount

    except psycopg.Error as e:
        logger.error("Database execute error", query=query[:100], error=str(e))
        raise DatabaseError(f"Query failed: {e}", operation="execute") from e
