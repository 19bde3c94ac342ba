from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import namedtuple
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Set, Type, Union
from urllib.parse import urlparse

from coursedb.exception import CourseDBError, DBConnectionError

logger = logging.getLogger(__name__)

UrlMapping = namedtuple("UrlMapping", ("key", "cast"))

Row = Dict[str, Any]
Values = Union[List[Any], Dict[str, Any], None]

URLPARSE_MAPPING = {
    "hostname": UrlMapping("_host", str),
    "username": UrlMapping("_user", str),
    "password": UrlMapping("_password", str),
    "port": UrlMapping("_port", int),
    "path": UrlMapping("_db", lambda value: value.replace("/", "")),
    "query": UrlMapping("_query", str),
}


class BaseInterface(ABC):
    """Access to one database through a driver specific pool.

    An interface can hand out connections in two ways. `connection()` scopes
    a single statement and finalizes it according to the driver's autocommit
    behavior. `acquire()` lends a raw connection exclusively, which is what a
    transaction holds on to between begin and commit or rollback.
    """

    scheme = "dummy"
    default_port: Optional[int] = None
    registered_interfaces: Set[Type[BaseInterface]] = set()
    positional_placeholder: str = "%s"
    keyword_placeholder: str = "%({})s"

    def __init_subclass__(cls) -> None:
        BaseInterface.registered_interfaces.add(cls)

    @abstractmethod
    def _setup_pool(self): ...

    @abstractmethod
    async def open(self): ...

    @abstractmethod
    async def close(self): ...

    @abstractmethod
    def _acquire(self):
        """Return an async context manager that lends out one connection"""

    @abstractmethod
    async def run(
        self, conn, query: str, values: Values, fetch: Optional[str]
    ) -> Union[Row, List[Row], None]:
        """Run a single statement on a connection

        Args:
            conn: A connection obtained from this interface
            query (str): Query text in the driver's paramstyle
            values (Values): Positional or keyword parameters
            fetch (str, optional): `"one"`, `"all"`, or `None` when the
                statement produces no result

        Returns:
            Union[Row, List[Row], None]: Rows as dictionaries
        """

    @abstractmethod
    async def begin(self, conn) -> None: ...

    @abstractmethod
    async def commit(self, conn) -> None: ...

    @abstractmethod
    async def rollback(self, conn) -> None: ...

    def __init__(
        self,
        dsn: Optional[str] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        db: Optional[str] = None,
        query: Optional[str] = None,
        min_size: int = 1,
        max_size: Optional[int] = None,
    ) -> None:
        """DB class initialization.

        Args:
            dsn (str, optional): DB data source name
            host (str, optional): DB address URL or IP
            port (int, optional): DB port. Defaults to the driver's port
            user (str, optional): DB user
            password (str, optional): DB password
            db (str, optional): DB name
            query (str, optional): DB query parameters. Defaults to None
            min_size (int, optional): Minimum number of connections in pool.
                Defaults to 1
            max_size (int, optional): Maximum number of connections in pool.
                Defaults to None
        """

        if dsn and host:
            raise CourseDBError("Cannot connect to DB using host and dsn")

        if not dsn:
            if port and (
                not isinstance(port, int) or port not in range(0, 65536)
            ):
                raise CourseDBError(
                    "port: must be an integer between 0 and 65535"
                )

            if host is not None and (
                not isinstance(host, str) or not len(host) > 0
            ):
                raise CourseDBError(
                    "host: must be a string at least 1 character long"
                )

        if password is not None and (
            not isinstance(password, str) or not len(password) > 0
        ):
            raise CourseDBError(
                "password: must be a string at least 1 character long"
            )

        self._dsn = dsn
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._db = db
        self._query = query
        self._min_size = min_size
        self._max_size = max_size
        self._full_dsn: Optional[str] = None

        self._populate_connection_args()
        self._populate_dsn()
        self._setup_pool()

    def __str__(self) -> str:
        return f"<{self.__class__.__name__} {self.dsn}>"

    def _populate_connection_args(self):
        dsn = self.dsn or ""
        parts = urlparse(dsn) if dsn else None
        defaults = {
            "port": self.default_port,
            "hostname": "localhost",
            "username": None,
            "password": None,
            "path": "/",
            "query": "",
        }
        for key, mapping in URLPARSE_MAPPING.items():
            if not getattr(self, mapping.key):
                value = getattr(parts, key, None) if parts else None
                if value is None:
                    value = defaults.get(key)
                if value is not None:
                    setattr(self, mapping.key, mapping.cast(value))

    def _populate_dsn(self):
        self._dsn = (
            (
                f"{self.scheme}://{self.user}:...@"
                f"{self.host}:{self.port}/{self.db}"
            )
            if self.password
            else (
                f"{self.scheme}://{self.user}@"
                f"{self.host}:{self.port}/{self.db}"
            )
        )
        self._full_dsn = (
            (
                f"{self.scheme}://{self.user}:{self.password}@"
                f"{self.host}:{self.port}/{self.db}"
            )
            if self.password
            else self.dsn
        )
        self._full_dsn += f"?{self._query}" if self._query else ""

    @property
    def dsn(self):
        return self._dsn

    @property
    def host(self):
        return self._host

    @property
    def port(self):
        return self._port

    @property
    def user(self):
        return self._user

    @property
    def password(self):
        return self._password

    @property
    def db(self):
        return self._db

    @property
    def full_dsn(self):
        return self._full_dsn

    @property
    def min_size(self):
        return self._min_size

    @property
    def max_size(self):
        return self._max_size

    @property
    def interface(self) -> BaseInterface:
        """The interface that owns the connections handed out by this source.
        Executors ask for it to learn the paramstyle and to run statements,
        regardless of whether they are bound to a pool or a transaction."""
        return self

    @asynccontextmanager
    async def acquire(self, timeout: Optional[float] = None) -> AsyncIterator:
        """Borrow a connection exclusively until the context exits

        Args:
            timeout (float, optional): Seconds to wait for a free connection.
                Defaults to `None`.

        Raises:
            DBConnectionError: When no connection could be obtained

        Yields:
            A database connection
        """
        try:
            context = self._acquire()
            if timeout is None:
                conn = await context.__aenter__()
            else:
                conn = await asyncio.wait_for(
                    context.__aenter__(), timeout=timeout
                )
        except asyncio.TimeoutError as e:
            raise DBConnectionError(
                f"Timed out after {timeout}s waiting for a connection "
                f"from {self}"
            ) from e
        except Exception as e:
            raise DBConnectionError(
                f"Could not acquire a connection from {self}: {e}"
            ) from e

        try:
            yield conn
        finally:
            await context.__aexit__(None, None, None)
            logger.debug("Released connection to %s", self)

    @asynccontextmanager
    async def connection(
        self, timeout: Optional[float] = None
    ) -> AsyncIterator:
        """Obtain a connection for a single statement

        Args:
            timeout (float, optional): Seconds to wait for a free connection.
                Defaults to `None`.

        Yields:
            A database connection
        """
        async with self.acquire(timeout=timeout) as conn:
            yield conn
            await self._finish_statement(conn)

    async def _finish_statement(self, conn) -> None:
        """Hook run after a statement outside of a transaction succeeded.
        Interfaces whose connections are not in autocommit mode commit here.
        """
