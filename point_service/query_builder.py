"""
Simple QueryBuilder for building SELECT queries.
The goal is to produce parameterized SQL queries without execution.
"""

from typing import Any


class QueryBuilder:
    """
    Simple query builder for SELECT statements.

    Every builder method returns a new instance; values are only ever
    carried as `$n` parameters.

    Usage:
        builder = QueryBuilder("point", alias="e")
        query, params = builder.select("e.id AS e_id").where("e.id", point_id).build()
    """

    def __init__(self, table_name: str, alias: str | None = None):
        self.table_name = table_name
        self.alias = alias
        self.select_fields = "*"
        self.where_conditions: list[str] = []
        self.params: list[Any] = []
        self.order_by_parts: list[str] = []
        self.limit_count: int | None = None
        self.offset_count: int | None = None

    def _clone(self) -> "QueryBuilder":
        """Create a copy of the current QueryBuilder instance"""
        new_builder = QueryBuilder(self.table_name, self.alias)
        new_builder.select_fields = self.select_fields
        new_builder.where_conditions = self.where_conditions.copy()
        new_builder.params = self.params.copy()
        new_builder.order_by_parts = self.order_by_parts.copy()
        new_builder.limit_count = self.limit_count
        new_builder.offset_count = self.offset_count
        return new_builder

    def _add_condition(self, field: str, value: Any, operator: str) -> "QueryBuilder":
        new_builder = self._clone()

        # Handle None values with IS NULL / IS NOT NULL
        if value is None and operator == "=":
            condition = f"{field} IS NULL"
        elif value is None and operator in ("!=", "<>"):
            condition = f"{field} IS NOT NULL"
        else:
            param_index = len(new_builder.params) + 1
            condition = f"{field} {operator} ${param_index}"
            new_builder.params.append(value)

        new_builder.where_conditions.append(condition)
        return new_builder

    @property
    def from_clause(self) -> str:
        if self.alias:
            return f"{self.table_name} {self.alias}"
        return self.table_name

    def select(self, *fields: str) -> "QueryBuilder":
        """Set the SELECT fields. Defaults to * when none is provided."""
        new_builder = self._clone()
        new_builder.select_fields = ", ".join(fields) if fields else "*"
        return new_builder

    def where(self, field: str, *args: Any) -> "QueryBuilder":
        """Add a WHERE condition, combined with AND.

        Supports both of the following call styles:
        - where(field, value) -> operator defaults to '='
        - where(field, operator, value) -> explicit operator in the second place
        """
        if len(args) == 2:
            operator, value = args
            return self._add_condition(field, value, operator)
        if len(args) == 1:
            return self._add_condition(field, args[0], "=")
        raise TypeError("where() expects (field, value) or (field, operator, value)")

    def order_by_asc(self, field: str) -> "QueryBuilder":
        """Add an ORDER BY ... ASC on the given field. Can be chained to add multiple fields."""
        new_builder = self._clone()
        new_builder.order_by_parts.append(f"{field}")
        return new_builder

    def order_by_desc(self, field: str) -> "QueryBuilder":
        """Add an ORDER BY ... DESC on the given field. Can be chained to add multiple fields."""
        new_builder = self._clone()
        new_builder.order_by_parts.append(f"{field} DESC")
        return new_builder

    def limit(self, count: int) -> "QueryBuilder":
        """Set the LIMIT clause"""
        new_builder = self._clone()
        new_builder.limit_count = count
        return new_builder

    def offset(self, count: int) -> "QueryBuilder":
        """Set the OFFSET clause"""
        new_builder = self._clone()
        new_builder.offset_count = count
        return new_builder

    def build(self) -> tuple[str, list[Any]]:
        """Build the final SQL query and parameters"""
        query_parts = [f"SELECT {self.select_fields} FROM {self.from_clause}"]

        if self.where_conditions:
            query_parts.append(f"WHERE {' AND '.join(self.where_conditions)}")

        if self.order_by_parts:
            query_parts.append(f"ORDER BY {', '.join(self.order_by_parts)}")

        if self.limit_count is not None:
            query_parts.append(f"LIMIT {int(self.limit_count)}")

        if self.offset_count is not None:
            query_parts.append(f"OFFSET {int(self.offset_count)}")

        return " ".join(query_parts), self.params

    def to_sql(self) -> str:
        """Return only the SQL query string without parameters"""
        query, _ = self.build()
        return query

    def __str__(self) -> str:
        query, params = self.build()
        return f"Query: {query}\nParams: {params}"
