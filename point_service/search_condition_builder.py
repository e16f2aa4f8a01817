from pydantic import BaseModel

from point_service.entities import SchemaBase, SortOrder
from point_service.query_builder import QueryBuilder


class SearchConditionBuilder:
    """Composition class for turning criteria and sort keys into query clauses.

    Column names are always taken from the schema, never from the caller, so
    an unknown field is rejected rather than spliced into SQL.
    """

    def __init__(self, schema: type[SchemaBase]):
        self.schema = schema
        self._fields = schema.fields()

    def column(self, name: str) -> str:
        """Resolve a field name to its alias-qualified column"""
        field = self._fields.get(name)
        if field is None:
            raise ValueError(f"Unknown property '{name}' for {self.schema.table_name}")
        return field.qualified(self.schema.alias)

    def apply_search_conditions(
        self, builder: QueryBuilder, search: BaseModel | None
    ) -> QueryBuilder:
        """Apply equality conditions for every non-null criteria field"""
        if search is None:
            return builder

        search_dict = {k: v for k, v in search.model_dump().items() if v is not None}
        for field, value in search_dict.items():
            builder = builder.where(self.column(field), value)

        return builder

    def apply_sort(
        self, builder: QueryBuilder, sort: list[tuple[str, SortOrder]] | None
    ) -> QueryBuilder:
        """Apply sorting in the given order; ASC unless DESC is requested."""
        for field, order in sort or []:
            if SortOrder(order) == SortOrder.DESC:
                builder = builder.order_by_desc(self.column(field))
            else:
                builder = builder.order_by_asc(self.column(field))

        return builder
