from importlib.metadata import version

from .courses import CourseDB, CourseQueries
from .executor import Executor
from .hydrator import Hydrator
from .interface import (
    BaseInterface,
    MysqlPool,
    PostgresPool,
    SQLitePool,
    create_pool,
)
from .models import (
    Category,
    CategoryParams,
    Course,
    CourseParams,
    CourseWithCategory,
)
from .transaction import Transaction, TransactionRunner

__version__ = version("coursedb")

__all__ = (
    "create_pool",
    "BaseInterface",
    "Category",
    "CategoryParams",
    "Course",
    "CourseDB",
    "CourseParams",
    "CourseQueries",
    "CourseWithCategory",
    "Executor",
    "Hydrator",
    "MysqlPool",
    "PostgresPool",
    "SQLitePool",
    "Transaction",
    "TransactionRunner",
)
