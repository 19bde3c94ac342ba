import logging
from typing import Awaitable, Callable, List, Optional, TypeVar

from coursedb.executor import Executor
from coursedb.interface.base import BaseInterface
from coursedb.models import (
    Category,
    CategoryParams,
    Course,
    CourseParams,
    CourseWithCategory,
)
from coursedb.transaction import TransactionRunner

logger = logging.getLogger(__name__)

R = TypeVar("R")


class CourseQueries(Executor):
    """Statements on the category and course tables. The SQL for every
    method lives in `queries/<method name>.sql`."""

    async def create_category(
        self, id: str, name: str, description: Optional[str] = None
    ) -> None:
        ...

    async def update_category(
        self, id: str, name: str, description: Optional[str] = None
    ) -> None:
        ...

    async def delete_category(self, id: str) -> None:
        ...

    async def get_category(self, id: str) -> Optional[Category]:
        ...

    async def list_all_categories(self) -> List[Category]:
        ...

    async def create_course(
        self,
        id: str,
        name: str,
        category_id: str,
        price: float,
        description: Optional[str] = None,
    ) -> None:
        ...

    async def get_course(self, id: str) -> Optional[Course]:
        ...

    async def list_courses(self) -> List[CourseWithCategory]:
        ...


class CourseDB:
    """Course catalogue backed by an injected pool.

    `queries` runs single statements, each on its own connection.
    `run_in_transaction` and `create_course_and_category` group several
    statements on one transaction with a fresh `CourseQueries` bound to it.

    Inside a unit of work, only use the `CourseQueries` it receives. A
    transaction holds its connection until it finishes, so a call through
    `queries` from inside the unit of work waits for that connection. With
    `SQLitePool`, which has a single connection, it never gets it.
    """

    def __init__(
        self, pool: BaseInterface, timeout: Optional[float] = None
    ) -> None:
        self._pool = pool
        self.queries = CourseQueries(pool)
        self._runner: TransactionRunner[CourseQueries] = TransactionRunner(
            pool, CourseQueries, timeout=timeout
        )

    @property
    def pool(self) -> BaseInterface:
        return self._pool

    async def run_in_transaction(
        self,
        unit_of_work: Callable[[CourseQueries], Awaitable[R]],
        timeout: Optional[float] = None,
    ) -> R:
        """Run `unit_of_work` atomically. See `TransactionRunner.run`."""
        return await self._runner.run(unit_of_work, timeout=timeout)

    async def create_course_and_category(
        self, category: CategoryParams, course: CourseParams
    ) -> None:
        """Create a category and a course that belongs to it, atomically.

        The category is written first; the course refers to it by id.

        Args:
            category (CategoryParams): The new category
            course (CourseParams): The new course

        Raises:
            StatementError: If either insert failed. Neither row is kept.
        """

        async def unit_of_work(queries: CourseQueries) -> None:
            await queries.create_category(
                id=category.id,
                name=category.name,
                description=category.description,
            )
            await queries.create_course(
                id=course.id,
                name=course.name,
                description=course.description,
                category_id=category.id,
                price=course.price,
            )

        await self.run_in_transaction(unit_of_work)
        logger.info(
            "Created category %s with course %s", category.id, course.id
        )
