from enum import Enum
from typing import Optional

from coursedb.exception import CourseDBError


class TransactionState(Enum):
    """Lifecycle of a transaction handle"""

    IDLE = "idle"
    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled back"


class TransactionError(CourseDBError):
    """Base exception for transaction errors"""

    pass


class BeginTransactionError(TransactionError):
    """Raised when a transaction could not be started"""

    pass


class CommitError(TransactionError):
    """Raised when committing a transaction failed"""

    pass


class TransactionTimeoutError(TransactionError):
    """Raised when a unit of work exceeds its time allowance"""

    pass


class RollbackError(TransactionError):
    """Raised when a rollback failed.

    When the rollback was triggered by a failing unit of work, `original`
    holds that failure and is also chained as `__cause__`.
    """

    def __init__(
        self,
        message: str,
        rollback_error: Optional[BaseException] = None,
        original: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.rollback_error = rollback_error
        self.original = original
