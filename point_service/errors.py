"""Application-level errors"""


class PointServiceError(Exception):
    """Base class for errors raised by the service"""

    status_code = 500
    title = "Internal Server Error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.title)
        self.message = message or self.title


class BadRequestAlertError(PointServiceError):
    """A request that breaks an identifier rule for an entity.

    Args:
        message: Human readable title, e.g. "Invalid id"
        entity_name: Entity the request targets, e.g. "point"
        error_key: Machine readable key, e.g. "idnull"
    """

    status_code = 400
    title = "Bad Request"

    def __init__(self, message: str, entity_name: str, error_key: str):
        super().__init__(message)
        self.entity_name = entity_name
        self.error_key = error_key


class EntityNotFoundError(PointServiceError):
    status_code = 404
    title = "Not Found"


class WriteConflictError(PointServiceError):
    """An update touched no rows: the entity vanished before the write"""


class ColumnConversionError(PointServiceError):
    """A stored column could not be read as the expected Python type"""

    def __init__(self, column: str, expected: type, value: object = None):
        super().__init__(
            f"Cannot convert column '{column}' to {expected.__name__}"
            f" (got {type(value).__name__})"
        )
        self.column = column
        self.expected = expected
