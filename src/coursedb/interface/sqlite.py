from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from sqlite3 import Cursor
from typing import Any, Dict, List, Optional, Tuple, Union

import aiosqlite

from coursedb.exception import DBConnectionError

from .base import BaseInterface, Row, Values

logger = logging.getLogger(__name__)


class SQLitePool(BaseInterface):
    """Interface for connecting to a SQLite database

    SQLite is reached through a single connection. Borrowers take turns on
    it, so a transaction owns the connection until it is finalized.
    """

    scheme = "sqlite"
    positional_placeholder = "?"
    keyword_placeholder = ":{}"

    def __init__(self, db_path: str):
        self._db_path = db_path
        self._conn: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()
        super().__init__()

    def _setup_pool(self): ...

    def _populate_connection_args(self): ...

    def _populate_dsn(self):
        self._dsn = f"{self.scheme}:///{self._db_path}"
        self._full_dsn = self._dsn

    @property
    def db_path(self) -> str:
        return self._db_path

    async def open(self):
        """Open the connection to the database file"""
        if self._conn is not None:
            return
        try:
            self._conn = await aiosqlite.connect(self._db_path)
        except Exception as e:
            raise DBConnectionError(
                f"Could not open SQLite database {self._db_path}: {e}"
            ) from e
        self._conn.row_factory = self._dict_factory
        await self._conn.execute("PRAGMA foreign_keys = ON")
        logger.debug("Opened %s", self)

    async def close(self):
        """Close the connection to the database file"""
        if self._conn is None:
            return
        await self._conn.close()
        self._conn = None
        logger.debug("Closed %s", self)

    @asynccontextmanager
    async def _acquire(self):
        async with self._lock:
            if self._conn is None:
                await self.open()
            conn = self._conn
            try:
                yield conn
            finally:
                # Nothing may leak into the next borrower's work
                if conn.in_transaction:
                    logger.warning(
                        "Connection to %s returned inside a transaction, "
                        "rolling back",
                        self,
                    )
                    await conn.rollback()

    async def _finish_statement(self, conn) -> None:
        await conn.commit()

    async def run(
        self, conn, query: str, values: Values, fetch: Optional[str]
    ) -> Union[Row, List[Row], None]:
        cursor = await conn.execute(query, values or ())
        try:
            if fetch is None:
                return None
            if fetch == "all":
                return await cursor.fetchall()
            return await cursor.fetchone()
        finally:
            await cursor.close()

    async def begin(self, conn) -> None:
        await conn.execute("BEGIN")

    async def commit(self, conn) -> None:
        await conn.commit()

    async def rollback(self, conn) -> None:
        await conn.rollback()

    @staticmethod
    def _dict_factory(cursor: Cursor, row: Tuple[Any, ...]) -> Dict[str, Any]:
        return {val[0]: row[idx] for idx, val in enumerate(cursor.description)}
