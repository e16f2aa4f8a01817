"""Point CRUD service over asyncpg"""

from point_service.entities import Pageable, Point, PointCriteria, PointPatch, SortOrder
from point_service.repository import PointRepository

__version__ = "0.1.0"

__all__ = [
    "Pageable",
    "Point",
    "PointCriteria",
    "PointPatch",
    "PointRepository",
    "SortOrder",
]
