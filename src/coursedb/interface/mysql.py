from __future__ import annotations

from typing import List, Optional, Union

from coursedb.exception import CourseDBError

from .base import BaseInterface, Row, Values

try:
    from asyncmy import create_pool
    from asyncmy.cursors import DictCursor

    MYSQL_ENABLED = True
except ModuleNotFoundError:
    MYSQL_ENABLED = False


class MysqlPool(BaseInterface):
    """Interface for connecting to a MySQL database"""

    scheme = "mysql"
    default_port = 3306

    def _setup_pool(self):
        if not MYSQL_ENABLED:
            raise CourseDBError(
                "MySQL driver not found. Try reinstalling coursedb: "
                "pip install coursedb[mysql]"
            )
        self._pool = None

    async def open(self):
        """Open connections to the pool"""
        if self._pool is not None:
            return
        self._pool = await create_pool(
            user=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            db=self.db,
            minsize=self.min_size,
            maxsize=self.max_size or 10,
            autocommit=True,
        )

    async def close(self):
        """Close connections to the pool"""
        if self._pool is None:
            return
        self._pool.close()
        await self._pool.wait_closed()
        self._pool = None

    def _acquire(self):
        if self._pool is None:
            raise CourseDBError(f"{self} has not been opened")
        return self._pool.acquire()

    async def run(
        self, conn, query: str, values: Values, fetch: Optional[str]
    ) -> Union[Row, List[Row], None]:
        async with conn.cursor(cursor=DictCursor) as cursor:
            await cursor.execute(query, values)
            if fetch is None:
                return None
            if fetch == "all":
                return list(await cursor.fetchall())
            return await cursor.fetchone()

    async def begin(self, conn) -> None:
        await conn.begin()

    async def commit(self, conn) -> None:
        await conn.commit()

    async def rollback(self, conn) -> None:
        await conn.rollback()
