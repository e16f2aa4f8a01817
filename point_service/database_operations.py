from collections.abc import AsyncIterator, Sequence
from typing import Any

import asyncpg

from point_service.db_context import DatabaseManager

NO_TRANSACTION_MESSAGE = (
    "No active transaction found. Repository methods must be called within "
    "DatabaseManager.transaction() or a @transactional function."
)


class DatabaseOperations:
    """Runs statements on the connection bound by `DatabaseManager.transaction()`.

    Every statement is logged before it is sent; values always travel as
    `$n` parameters, never inside the SQL text.
    """

    @staticmethod
    def get_connection() -> asyncpg.Connection:
        conn = DatabaseManager.get_current_connection()
        if conn is None:
            raise ValueError(NO_TRANSACTION_MESSAGE)
        return conn

    def _prepare(self, query: str, params: Sequence[Any]) -> asyncpg.Connection:
        conn = self.get_connection()
        DatabaseManager.log_query(query, list(params))
        return conn

    async def fetch_all(self, query: str, params: Sequence[Any] = ()) -> list[asyncpg.Record]:
        return await self._prepare(query, params).fetch(query, *params)

    async def fetch_one(self, query: str, params: Sequence[Any] = ()) -> asyncpg.Record | None:
        """First row of the result, None when it is empty"""
        return await self._prepare(query, params).fetchrow(query, *params)

    async def fetch_value(self, query: str, params: Sequence[Any] = ()) -> Any:
        """First column of the first row, e.g. a COUNT or a RETURNING id"""
        return await self._prepare(query, params).fetchval(query, *params)

    async def execute_query(self, query: str, params: Sequence[Any] = ()) -> str:
        """Run a statement and return its command status, e.g. "UPDATE 1" """
        return await self._prepare(query, params).execute(query, *params)

    async def iterate(
        self, query: str, params: Sequence[Any] = (), prefetch: int = 50
    ) -> AsyncIterator[asyncpg.Record]:
        """Execute query through a server-side cursor and yield rows lazily.

        Rows are fetched `prefetch` at a time; abandoning the iterator stops
        further fetches.
        """
        conn = self._prepare(query, params)
        async for row in conn.cursor(query, *params, prefetch=prefetch):
            yield row

    @staticmethod
    def affected_rows(status: str) -> int:
        """Extract the row count from a command status such as "DELETE 3" """
        try:
            return int(status.split()[-1])
        except (AttributeError, IndexError, ValueError):
            return 0
