from __future__ import annotations

import asyncio
import logging
from typing import (
    TYPE_CHECKING,
    Awaitable,
    Callable,
    Generic,
    Optional,
    Type,
    TypeVar,
)

from .handle import Transaction
from .interfaces import TransactionTimeoutError

if TYPE_CHECKING:
    from coursedb.executor import Executor
    from coursedb.interface.base import BaseInterface

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Executor")
R = TypeVar("R")


class TransactionRunner(Generic[E]):
    """Run units of work atomically against a pool.

    Each call to `run` opens its own transaction and hands the unit of work a
    fresh executor bound to it. The executor is only usable while the unit
    of work runs.

    Example:

    ```python
    runner = TransactionRunner(pool, CourseQueries)

    async def unit_of_work(queries: CourseQueries) -> None:
        await queries.create_category(id="c1", name="Backend")
        await queries.create_course(
            id="k1", name="Go", category_id="c1", price=123.1
        )

    await runner.run(unit_of_work)
    ```
    """

    def __init__(
        self,
        pool: BaseInterface,
        executor: Type[E],
        timeout: Optional[float] = None,
    ) -> None:
        """
        Args:
            pool (BaseInterface): The pool transactions borrow from
            executor (Type[Executor]): Executor class instantiated against
                each transaction
            timeout (float, optional): Default time allowance in seconds
                for a unit of work. Defaults to `None`.
        """
        self._pool = pool
        self._executor = executor
        self._timeout = timeout

    @property
    def pool(self) -> BaseInterface:
        return self._pool

    async def run(
        self,
        unit_of_work: Callable[[E], Awaitable[R]],
        timeout: Optional[float] = None,
    ) -> R:
        """Run a unit of work inside a new transaction

        The transaction is committed if the unit of work returns and rolled
        back if it raises, is cancelled, or runs out of time. Only one of
        commit or rollback is ever attempted.

        Args:
            unit_of_work (Callable[[Executor], Awaitable[R]]): Coroutine
                function that performs the writes
            timeout (float, optional): Time allowance in seconds, overriding
                the runner's default. Defaults to `None`.

        Raises:
            DBConnectionError: If no connection could be acquired
            BeginTransactionError: If the transaction could not start. The
                unit of work is not called.
            TransactionTimeoutError: If the unit of work ran out of time
            RollbackError: If rolling back after a failure failed as well.
                The failure is available as `original`.
            CommitError: If the commit failed

        Returns:
            R: Whatever the unit of work returned
        """
        timeout = timeout if timeout is not None else self._timeout
        transaction = Transaction(self._pool)
        await transaction.begin()

        try:
            executor = self._executor(transaction)
            result = await self._call(unit_of_work, executor, timeout)
        except BaseException as e:
            logger.debug(
                "Unit of work failed in %s: %r", transaction.transaction_id, e
            )
            await transaction.rollback(cause=e)
            raise

        await transaction.commit()
        return result

    @staticmethod
    async def _call(
        unit_of_work: Callable[[E], Awaitable[R]],
        executor: E,
        timeout: Optional[float],
    ) -> R:
        if timeout is None:
            return await unit_of_work(executor)
        try:
            async with asyncio.timeout(timeout) as deadline:
                return await unit_of_work(executor)
        except TimeoutError as e:
            # A TimeoutError raised by the unit of work itself propagates
            if not deadline.expired():
                raise
            raise TransactionTimeoutError(
                f"Unit of work timed out after {timeout} seconds"
            ) from e
