from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any

from point_service.entities import Point, PointSchema
from point_service.errors import ColumnConversionError


class ColumnConverter:
    """Reads a single column out of a row as a given Python type"""

    def from_row(self, row: Mapping[str, Any], column: str, expected: type) -> Any:
        try:
            value = row[column]
        except KeyError:
            raise ColumnConversionError(column, expected) from None

        if value is None:
            return None
        if expected is int:
            # bool is an int subclass but never a valid identifier
            if isinstance(value, bool):
                raise ColumnConversionError(column, expected, value)
            if isinstance(value, int):
                return value
            if isinstance(value, Decimal) and value == value.to_integral_value():
                return int(value)
            raise ColumnConversionError(column, expected, value)
        if isinstance(value, expected):
            return value
        raise ColumnConversionError(column, expected, value)


class EntityMapper:
    """Composition class for mapping `<prefix>_<column>` rows to points"""

    def __init__(self, converter: ColumnConverter | None = None):
        self.converter = converter or ColumnConverter()

    def map_row_to_entity(self, row: Mapping[str, Any], prefix: str = PointSchema.alias) -> Point:
        """Map database row to entity"""
        return Point.model_construct(
            id=self.converter.from_row(row, f"{prefix}_{PointSchema.id}", int),
            title=self.converter.from_row(row, f"{prefix}_{PointSchema.title}", str),
            description=self.converter.from_row(
                row, f"{prefix}_{PointSchema.description}", str
            ),
        )

    def map_rows_to_entities(
        self, rows: Iterable[Mapping[str, Any]], prefix: str = PointSchema.alias
    ) -> list[Point]:
        """Map database rows to entities"""
        return [self.map_row_to_entity(row, prefix) for row in rows]
