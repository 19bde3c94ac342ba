from __future__ import annotations

from typing import List, Optional, Union

from coursedb.exception import CourseDBError

from .base import BaseInterface, Row, Values

try:
    from psycopg.rows import dict_row
    from psycopg_pool import AsyncConnectionPool

    POSTGRES_ENABLED = True
except ModuleNotFoundError:
    POSTGRES_ENABLED = False
    AsyncConnectionPool = type("Connection", (), {})  # type: ignore


class PostgresPool(BaseInterface):
    """Interface for connecting to a Postgres database

    Pooled connections run in autocommit mode. Transactions are opened and
    finalized with explicit `BEGIN`, `COMMIT` and `ROLLBACK` statements on
    the borrowed connection.
    """

    scheme = "postgres"
    default_port = 5432

    def _setup_pool(self):
        if not POSTGRES_ENABLED:
            raise CourseDBError(
                "Postgres driver not found. Try reinstalling coursedb: "
                "pip install coursedb[postgres]"
            )
        self._pool = AsyncConnectionPool(
            self.full_dsn,
            min_size=self.min_size,
            max_size=self.max_size,
            kwargs={"autocommit": True},
            open=False,
        )

    async def open(self):
        """Open connections to the pool"""
        await self._pool.open()

    async def close(self):
        """Close connections to the pool"""
        await self._pool.close()

    def _acquire(self):
        return self._pool.connection()

    async def run(
        self, conn, query: str, values: Values, fetch: Optional[str]
    ) -> Union[Row, List[Row], None]:
        async with conn.cursor(row_factory=dict_row) as cursor:
            await cursor.execute(query, values)
            if fetch is None:
                return None
            if fetch == "all":
                return await cursor.fetchall()
            return await cursor.fetchone()

    async def begin(self, conn) -> None:
        await conn.execute("BEGIN")

    async def commit(self, conn) -> None:
        await conn.execute("COMMIT")

    async def rollback(self, conn) -> None:
        await conn.execute("ROLLBACK")
