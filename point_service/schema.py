"""
Table bootstrap for the point store.
"""

import asyncpg
import structlog

from point_service.db_context import DatabaseManager

logger = structlog.get_logger(__name__)

POINT_TABLE_DDL = """
    CREATE TABLE IF NOT EXISTS point (
        id BIGSERIAL PRIMARY KEY,
        title VARCHAR(255) NOT NULL,
        description VARCHAR(255)
    );
"""


async def create_schema(pool: asyncpg.Pool | None = None):
    """Create the point table if it doesn't exist."""
    pool = pool or await DatabaseManager.get_pool()
    async with pool.acquire() as conn:
        await conn.execute(POINT_TABLE_DDL)
    logger.info("schema_ready", table="point")
