import os

import asyncpg
import pytest
import pytest_asyncio
from testcontainers.postgres import PostgresContainer

os.environ["DB_POOL_NAME"] = "test_db"
os.environ.setdefault("LOG_LEVEL", "WARNING")

from point_service.config import reset_settings  # noqa: E402
from point_service.db_context import DatabaseManager  # noqa: E402
from point_service.schema import POINT_TABLE_DDL  # noqa: E402

reset_settings()


@pytest.fixture(scope="session")
def postgres_container():
    """Start a PostgreSQL test container for the session."""
    with PostgresContainer("postgres:17") as postgres:
        yield postgres


@pytest_asyncio.fixture
async def test_db_pool(postgres_container):
    """Create a database pool connected to the test container for each test."""
    host = postgres_container.get_container_host_ip()
    port = postgres_container.get_exposed_port(5432)
    dsn = f"postgresql://{postgres_container.username}:{postgres_container.password}@{host}:{port}/{postgres_container.dbname}"

    # Create a new pool for each test to avoid event loop issues
    pool = await asyncpg.create_pool(dsn, min_size=1, max_size=5)

    async with pool.acquire() as conn:
        await conn.execute(POINT_TABLE_DDL)

    await DatabaseManager.add_pool("test_db", pool)

    yield pool

    async with pool.acquire() as conn:
        await conn.execute("TRUNCATE TABLE point RESTART IDENTITY;")

    await DatabaseManager.close_pool("test_db")
