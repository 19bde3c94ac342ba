from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncIterator, Optional
from uuid import uuid4

from .interfaces import (
    BeginTransactionError,
    CommitError,
    RollbackError,
    TransactionError,
    TransactionState,
)

if TYPE_CHECKING:
    from coursedb.interface.base import BaseInterface

logger = logging.getLogger(__name__)


class Transaction:
    """A transaction scope bound to one borrowed connection.

    The connection is acquired by `begin()` and given back by `commit()` or
    `rollback()`, whichever runs first. Executors can be bound to the handle
    exactly as they are bound to a pool; while the transaction is active all
    of their statements run on the borrowed connection.

    Example:

    ```python
    async with Transaction(pool) as transaction:
        queries = CourseQueries(transaction)
        await queries.create_category(id="c1", name="Backend")
    ```
    """

    def __init__(
        self, pool: BaseInterface, acquire_timeout: Optional[float] = None
    ) -> None:
        self.transaction_id = f"txn_{uuid4().hex[:8]}"
        self._pool = pool
        self._acquire_timeout = acquire_timeout
        self._state = TransactionState.IDLE
        self._stack: Optional[AsyncExitStack] = None
        self._connection: Any = None

    def __str__(self) -> str:
        return (
            f"<{self.__class__.__name__} {self.transaction_id} "
            f"({self._state.value})>"
        )

    @property
    def interface(self) -> BaseInterface:
        return self._pool

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is TransactionState.ACTIVE

    @property
    def is_committed(self) -> bool:
        return self._state is TransactionState.COMMITTED

    @property
    def is_rolled_back(self) -> bool:
        return self._state is TransactionState.ROLLED_BACK

    async def begin(self) -> None:
        """Borrow a connection and start the transaction on it

        Raises:
            TransactionError: If the handle was already used
            DBConnectionError: If no connection could be acquired
            BeginTransactionError: If the database refused to begin
        """
        if self._state is not TransactionState.IDLE:
            raise TransactionError(
                f"Transaction {self.transaction_id} is {self._state.value}"
            )

        logger.debug("Beginning transaction %s", self.transaction_id)
        stack = AsyncExitStack()
        connection = await stack.enter_async_context(
            self._pool.acquire(timeout=self._acquire_timeout)
        )
        try:
            await self._pool.begin(connection)
        except BaseException as e:
            await stack.aclose()
            if not isinstance(e, Exception):
                raise
            raise BeginTransactionError(
                f"Failed to begin transaction {self.transaction_id}: {e}"
            ) from e

        self._stack = stack
        self._connection = connection
        self._state = TransactionState.ACTIVE
        logger.info("Transaction %s started", self.transaction_id)

    async def commit(self) -> None:
        """Commit the transaction and release its connection

        Raises:
            TransactionError: If the transaction is not active
            CommitError: If the database failed to commit
        """
        self._ensure_active()
        logger.debug("Committing transaction %s", self.transaction_id)
        try:
            await self._pool.commit(self._connection)
        except Exception as e:
            # The database discards the work of a transaction that could
            # not be committed
            self._state = TransactionState.ROLLED_BACK
            logger.error(
                "Commit failed for %s: %s", self.transaction_id, e
            )
            raise CommitError(
                f"Failed to commit transaction {self.transaction_id}: {e}"
            ) from e
        else:
            self._state = TransactionState.COMMITTED
            logger.info("Transaction %s committed", self.transaction_id)
        finally:
            await self._release()

    async def rollback(self, cause: Optional[BaseException] = None) -> None:
        """Roll the transaction back and release its connection

        Args:
            cause (BaseException, optional): The failure that made the
                rollback necessary. It is attached to the `RollbackError`
                raised if the rollback itself fails. Defaults to `None`.

        Raises:
            TransactionError: If the transaction is not active
            RollbackError: If the database failed to roll back
        """
        self._ensure_active()
        logger.debug("Rolling back transaction %s", self.transaction_id)
        try:
            await self._pool.rollback(self._connection)
        except Exception as e:
            logger.critical(
                "Rollback failed for %s: %s", self.transaction_id, e
            )
            if cause is None:
                raise RollbackError(
                    f"Failed to rollback transaction "
                    f"{self.transaction_id}: {e}",
                    rollback_error=e,
                ) from e
            raise RollbackError(
                f"error on rollback: {e}, original error: {cause}",
                rollback_error=e,
                original=cause,
            ) from cause
        else:
            logger.info("Transaction %s rolled back", self.transaction_id)
        finally:
            # Even a failed rollback ends the transaction
            self._state = TransactionState.ROLLED_BACK
            await self._release()

    @asynccontextmanager
    async def connection(
        self, timeout: Optional[float] = None
    ) -> AsyncIterator:
        """Lend the transaction's connection to a statement

        Args:
            timeout (float, optional): Accepted for parity with the pool
                interfaces. The connection is already held, so it is
                unused. Defaults to `None`.

        Raises:
            TransactionError: If the transaction is not active

        Yields:
            The connection owned by this transaction
        """
        self._ensure_active()
        yield self._connection

    def _ensure_active(self) -> None:
        if self._state is not TransactionState.ACTIVE:
            raise TransactionError(
                f"Transaction {self.transaction_id} is not active "
                f"({self._state.value})"
            )

    async def _release(self) -> None:
        stack, self._stack = self._stack, None
        self._connection = None
        if stack is not None:
            await stack.aclose()

    async def __aenter__(self) -> Transaction:
        await self.begin()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if not self.is_active:
            return False
        if exc_type is None:
            await self.commit()
        else:
            await self.rollback(cause=exc_val)
        return False
