"""Point repository"""

from collections.abc import AsyncIterator
from contextlib import aclosing

import structlog

from point_service.database_operations import DatabaseOperations
from point_service.entities import Pageable, Point, PointCriteria, PointSchema
from point_service.entity_mapper import EntityMapper
from point_service.errors import WriteConflictError
from point_service.query_builder import QueryBuilder
from point_service.search_condition_builder import SearchConditionBuilder

logger = structlog.get_logger(__name__)


class PointRepository:
    """Data access for the `point` table.

    Every method must run inside `DatabaseManager.transaction()`; reads always
    go to the store, nothing is cached.
    """

    schema = PointSchema

    def __init__(self):
        self.db_ops = DatabaseOperations()
        self.entity_mapper = EntityMapper()
        self.conditions = SearchConditionBuilder(self.schema)
        self._table = self.schema.table_name
        self._alias = self.schema.alias

    def _select(self) -> QueryBuilder:
        """SELECT of all columns, each exposed as `e_<column>`"""
        columns = [field.aliased(self._alias) for field in self.schema.fields().values()]
        return QueryBuilder(self._table, self._alias).select(*columns)

    def create_query(
        self, pageable: Pageable | None = None, criteria: PointCriteria | None = None
    ) -> QueryBuilder:
        """Build the SELECT for `find_all` without executing it"""
        builder = self.conditions.apply_search_conditions(self._select(), criteria)

        if pageable is not None:
            builder = self.conditions.apply_sort(builder, pageable.sort)
            if pageable.size is not None:
                builder = builder.limit(pageable.size).offset(pageable.offset)

        return builder

    async def find_all(
        self, pageable: Pageable | None = None, criteria: PointCriteria | None = None
    ) -> AsyncIterator[Point]:
        """Lazily yield the points matching `criteria`, one page if `pageable` has a size.

        Each call runs the query again.
        """
        query, params = self.create_query(pageable, criteria).build()
        async with aclosing(self.db_ops.iterate(query, params)) as rows:
            async for row in rows:
                yield self.entity_mapper.map_row_to_entity(row, self._alias)

    async def find_all_as_list(
        self, pageable: Pageable | None = None, criteria: PointCriteria | None = None
    ) -> list[Point]:
        query, params = self.create_query(pageable, criteria).build()
        rows = await self.db_ops.fetch_all(query, params)
        return self.entity_mapper.map_rows_to_entities(rows, self._alias)

    async def find_by_id(self, point_id: int) -> Point | None:
        """Find a point by ID, None when no row matches"""
        criteria = PointCriteria(id=point_id)
        query, params = self.create_query(criteria=criteria).limit(1).build()
        row = await self.db_ops.fetch_one(query, params)
        if row is None:
            return None
        return self.entity_mapper.map_row_to_entity(row, self._alias)

    async def exists_by_id(self, point_id: int) -> bool:
        query, params = (
            QueryBuilder(self._table, self._alias)
            .select("COUNT(*)")
            .where(self.schema.id.qualified(self._alias), point_id)
            .build()
        )
        count = await self.db_ops.fetch_value(query, params)
        return (count or 0) > 0

    async def count(self) -> int:
        query, params = QueryBuilder(self._table, self._alias).select("COUNT(*)").build()
        result = await self.db_ops.fetch_value(query, params)
        return result or 0

    async def insert(self, point: Point) -> Point:
        """Insert a new point and return it with the generated ID"""
        if point.id is not None:
            raise ValueError("Cannot insert a point that already has an id")

        new_id = await self.db_ops.fetch_value(
            f"INSERT INTO {self._table} ({self.schema.title}, {self.schema.description}) "
            f"VALUES ($1, $2) RETURNING {self.schema.id}",
            [point.title, point.description],
        )
        logger.debug("point_inserted", id=new_id)
        return Point(id=new_id, title=point.title, description=point.description)

    async def update(self, point: Point) -> int:
        """Replace title and description of an existing point.

        Returns:
            Number of rows affected, 0 or 1
        """
        if point.id is None:
            raise ValueError("Cannot update a point without an id")

        result = await self.db_ops.execute_query(
            f"UPDATE {self._table} SET {self.schema.title} = $2, "
            f"{self.schema.description} = $3 WHERE {self.schema.id} = $1",
            [point.id, point.title, point.description],
        )
        return self.db_ops.affected_rows(result)

    async def save(self, point: Point) -> Point:
        """Insert when the point has no ID yet, update otherwise.

        Raises:
            WriteConflictError: the update matched no row
        """
        if point.id is None:
            return await self.insert(point)

        updated = await self.update(point)
        if updated <= 0:
            raise WriteConflictError(f"Unable to update Point with id = {point.id}")
        return Point(id=point.id, title=point.title, description=point.description)

    async def delete_by_id(self, point_id: int) -> int:
        """Delete a point. Deleting a missing point is not an error.

        Returns:
            Number of rows deleted
        """
        result = await self.db_ops.execute_query(
            f"DELETE FROM {self._table} WHERE {self.schema.id} = $1", [point_id]
        )
        return self.db_ops.affected_rows(result)
