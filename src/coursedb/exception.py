class CourseDBError(Exception):
    """Base class for all errors raised by coursedb"""


class MissingSQL(CourseDBError):
    """An auto-executed method has no SQL to run"""


class RecordNotFound(CourseDBError):
    """A single record was expected but the query returned nothing"""


class InvalidParams(CourseDBError, ValueError):
    """Input values do not satisfy the data model"""


class DBConnectionError(CourseDBError):
    """A connection could not be opened or acquired from the pool"""


class StatementError(CourseDBError):
    """A statement failed while being executed by the driver"""

    def __init__(self, message: str, query_name: str = "") -> None:
        super().__init__(message)
        self.query_name = query_name
