from contextlib import asynccontextmanager
from contextvars import ContextVar
from functools import wraps
from typing import Any

import asyncpg
import structlog

from point_service.config import get_settings

logger = structlog.get_logger(__name__)

# Context variable to store the current database connection (only one per context)
_current_connection: ContextVar[asyncpg.Connection | None] = ContextVar(
    "current_connection", default=None
)
_db_pools: dict[str, asyncpg.Pool] = {}


class DatabaseManager:
    """Manages database pools and connections"""

    @staticmethod
    def _resolve_name(name: str | None) -> str:
        return name or get_settings().db_pool_name

    @classmethod
    async def add_pool(cls, name: str, pool: asyncpg.Pool):
        """Add a database pool with a name"""
        _db_pools[name] = pool

    @classmethod
    async def get_pool(cls, name: str | None = None) -> asyncpg.Pool:
        """Get a database pool by name, defaulting to the configured pool"""
        name = cls._resolve_name(name)
        if name not in _db_pools:
            raise ValueError(f"Database pool '{name}' not found")
        return _db_pools[name]

    @classmethod
    def has_pool(cls, name: str | None = None) -> bool:
        return cls._resolve_name(name) in _db_pools

    @classmethod
    async def create_pool(cls, name: str | None = None) -> asyncpg.Pool:
        """Create a pool from settings and register it"""
        settings = get_settings()
        name = cls._resolve_name(name)
        pool = await asyncpg.create_pool(
            settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
        )
        await cls.add_pool(name, pool)
        logger.info(
            "db_pool_created",
            pool=name,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
        )
        return pool

    @classmethod
    async def close_pool(cls, name: str | None = None):
        """Close a pool and forget it"""
        pool = _db_pools.pop(cls._resolve_name(name), None)
        if pool is not None:
            await pool.close()

    @classmethod
    def get_current_connection(cls) -> asyncpg.Connection | None:
        """Get the current active connection from context"""
        return _current_connection.get()

    @classmethod
    def log_query(cls, query: str, params: list[Any]):
        logger.debug("db_query", query=query, params=params)

    @classmethod
    @asynccontextmanager
    async def transaction(cls, db_name: str | None = None):
        """Context manager for database transactions.

        Behavior:
        - If called within an existing transaction/connection, it opens a nested transaction using the same connection.
        - Otherwise it acquires a connection from the asyncpg pool using `async with pool.acquire()` and starts a transaction.
        - The acquired connection is always released back to the pool when the context exits,
          whether it exits normally, through an exception or through cancellation.

        Args:
            db_name: Name of the database pool to use, the configured pool when omitted
        """
        current_conn = _current_connection.get()

        if current_conn:
            async with current_conn.transaction():
                yield current_conn
        else:
            pool = await cls.get_pool(db_name)
            async with pool.acquire() as conn, conn.transaction():
                conn_token = _current_connection.set(conn)
                try:
                    yield conn
                finally:
                    _current_connection.reset(conn_token)


def transactional(db_name: str | None = None):
    """Decorator to run a coroutine function within a database transaction.

    Args:
        db_name: Name of the database pool to use, the configured pool when omitted

    Example:
        @router.get("/points/{id}")
        @transactional()
        async def get_point(id: int):
            return await repo.find_by_id(id)
    """

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            async with DatabaseManager.transaction(db_name):
                return await func(*args, **kwargs)

        return wrapper

    return decorator
