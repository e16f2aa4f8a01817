from enum import Enum
from typing import ClassVar

from pydantic import BaseModel, Field as ModelField
from pydantic.config import ConfigDict

TITLE_MIN_LENGTH = 20

# Ids are BIGINT
ID_MIN = -(2**63)
ID_MAX = 2**63 - 1

# Largest page size; keeps page * size inside BIGINT for every accepted page
MAX_PAGE_SIZE = 2000
MAX_PAGE = ID_MAX // MAX_PAGE_SIZE


class Field[T]:
    """Type-safe column definition for schema classes.

    Usage:
        class PointSchema(SchemaBase):
            title = Field[str]("title")

    This allows for:
        builder.where(PointSchema.title.qualified("e"), "some title")
    """

    def __init__(self, column_name: str):
        """
        Args:
            column_name: The actual database column name
        """
        self._column_name = column_name

    @property
    def column(self) -> str:
        """Return the underlying database column name."""
        return self._column_name

    def qualified(self, alias: str) -> str:
        """Return the column prefixed with a table alias"""
        return f"{alias}.{self._column_name}"

    def aliased(self, alias: str) -> str:
        """Return a select expression exposing the column as `<alias>_<column>`"""
        return f"{alias}.{self._column_name} AS {alias}_{self._column_name}"

    def __str__(self) -> str:
        return self._column_name

    def __repr__(self) -> str:
        return f"Field({self._column_name})"


class SchemaBase:
    """Base class for schema definitions with type-safe fields."""

    table_name: ClassVar[str]
    alias: ClassVar[str] = "e"

    @classmethod
    def fields(cls) -> dict[str, Field]:
        """Return the declared fields keyed by column name"""
        return {
            value.column: value
            for value in vars(cls).values()
            if isinstance(value, Field)
        }


class PointSchema(SchemaBase):
    """Columns of the `point` table"""

    table_name = "point"

    id = Field[int]("id")
    title = Field[str]("title")
    description = Field[str]("description")


class BaseEntity(BaseModel):
    """Base entity class for all database models."""

    model_config: ClassVar[ConfigDict] = ConfigDict(use_enum_values=True)
    id: int | None = ModelField(default=None, ge=ID_MIN, le=ID_MAX)


class Point(BaseEntity):
    """A stored point. `id` is None until the point has been inserted."""

    title: str
    description: str | None = None


class PointPayload(Point):
    """Request body for create and full update"""

    title: str = ModelField(min_length=TITLE_MIN_LENGTH)


class PointPatch(BaseModel):
    """Merge-patch body.

    `model_fields_set` records which fields the client actually sent; a field
    that is absent or null leaves the stored value untouched.
    """

    id: int | None = ModelField(default=None, ge=ID_MIN, le=ID_MAX)
    title: str | None = None
    description: str | None = None

    def apply_to(self, point: Point) -> Point:
        """Return a copy of `point` with every non-null patched field applied"""
        changes = {
            name: getattr(self, name)
            for name in ("title", "description")
            if name in self.model_fields_set and getattr(self, name) is not None
        }
        return point.model_copy(update=changes)


# Search model - all fields optional, only the set ones become conditions
class PointCriteria(BaseModel):
    id: int | None = ModelField(default=None, ge=ID_MIN, le=ID_MAX)
    title: str | None = None
    description: str | None = None


# Sorting functionality
class SortOrder(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


class Pageable(BaseModel):
    """Page request: zero-based page index, page size and ordered sort keys.

    Either `page`/`size` or `sort` may be left unset; an unset size means no
    LIMIT/OFFSET is applied.
    """

    page: int = ModelField(default=0, ge=0, le=MAX_PAGE)
    size: int | None = ModelField(default=None, ge=1, le=MAX_PAGE_SIZE)
    sort: list[tuple[str, SortOrder]] = ModelField(default_factory=list)

    @property
    def offset(self) -> int | None:
        if self.size is None:
            return None
        return self.page * self.size
