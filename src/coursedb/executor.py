from __future__ import annotations

import logging
from ast import Constant, Expr, Pass, parse
from functools import wraps
from inspect import (
    getmembers,
    getmodule,
    getsource,
    isfunction,
    signature,
    unwrap,
)
from pathlib import Path
from textwrap import dedent
from typing import TYPE_CHECKING, Any, Dict, Tuple, Union

from coursedb.exception import (
    CourseDBError,
    MissingSQL,
    RecordNotFound,
    StatementError,
)
from coursedb.hydrator import Hydrator
from coursedb.query import SQLQuery

if TYPE_CHECKING:
    from coursedb.interface.base import BaseInterface
    from coursedb.transaction import Transaction

    Source = Union[BaseInterface, Transaction]

logger = logging.getLogger(__name__)


class Executor:
    """
    Base class for query executors. A subclass declares one async method per
    statement. Methods whose name starts with one of `operation_prefixes` and
    whose body is empty run the SQL in `queries/<method name>.sql`, next to
    the module defining the subclass, and return rows shaped by their return
    annotation (see `Hydrator`).

    An executor is bound to a *source*: either a pool interface, where each
    statement gets a connection of its own, or an open `Transaction`, where
    every statement runs on the transaction's connection.
    """

    _queries: Dict[str, SQLQuery]
    operation_prefixes: Tuple[str, ...] = (
        "create_",
        "get_",
        "list_",
        "update_",
        "delete_",
    )
    queries_directory = "queries"

    def __init__(self, source: Source) -> None:
        """
        Args:
            source (Union[BaseInterface, Transaction]): Where connections
                come from
        """
        cls = self.__class__
        if "_queries" not in cls.__dict__:
            cls._load()
        self._source = source

    @property
    def source(self) -> Source:
        return self._source

    @property
    def interface(self) -> BaseInterface:
        return self._source.interface

    @classmethod
    def loaded_queries(cls) -> Dict[str, SQLQuery]:
        """The statements backing this executor's operations, by name"""
        if "_queries" not in cls.__dict__:
            cls._load()
        return dict(cls._queries)

    async def _run(
        self, query: SQLQuery, hydrator: Hydrator, arguments: Dict[str, Any]
    ):
        interface = self.interface
        text = query.for_interface(interface)
        values = query.bind(arguments)
        try:
            async with self._source.connection() as conn:
                raw = await interface.run(conn, text, values, hydrator.fetch)
        except CourseDBError:
            raise
        except Exception as e:
            logger.error("Query <%s> failed: %s", query.name, e)
            raise StatementError(
                f"Query <{query.name}> failed: {e}", query.name
            ) from e

        if not raw and hydrator.fetch == "one" and not hydrator.optional:
            raise RecordNotFound(
                f"Query <{query.name}> did not find any record using "
                f"{values}"
            )
        return hydrator.hydrate(raw)

    @classmethod
    def _load(cls) -> None:
        directory = cls._queries_path()
        queries = {}
        for name, func in getmembers(cls, isfunction):
            if not cls.is_operation(name) or not has_empty_body(func):
                continue
            path = directory / f"{name}.sql"
            try:
                text = path.read_text()
            except FileNotFoundError as e:
                raise MissingSQL(
                    f"Could not find SQL for {cls.__name__}.{name}. "
                    f"Looked for file named: {path}"
                ) from e
            queries[name] = SQLQuery(name, text)
            setattr(cls, name, cls._operation(func, queries[name]))

        cls._queries = queries
        logger.debug("Loaded %d queries for %s", len(queries), cls.__name__)

    @classmethod
    def _queries_path(cls) -> Path:
        module = getmodule(cls)
        if not module or not getattr(module, "__file__", None):
            raise CourseDBError(f"Could not locate module for {cls}")
        return Path(module.__file__).parent / cls.queries_directory

    @classmethod
    def is_operation(cls, name: str) -> bool:
        """Whether a method name marks a statement. The executor's own API
        never does."""
        if name in vars(Executor):
            return False
        return name.startswith(cls.operation_prefixes)

    @staticmethod
    def _operation(func, query: SQLQuery):
        func = unwrap(func)
        sig = signature(func, eval_str=True)
        try:
            hydrator = Hydrator.for_annotation(sig.return_annotation)
        except CourseDBError as e:
            raise CourseDBError(f"{func.__qualname__}: {e}") from e

        @wraps(func)
        async def operation(self: Executor, *args, **kwargs):
            bound = sig.bind(self, *args, **kwargs)
            bound.apply_defaults()
            arguments = dict(bound.arguments)
            arguments.pop("self", None)
            return await self._run(query, hydrator, arguments)

        return operation


def has_empty_body(func) -> bool:
    """Whether a method only holds a docstring, `...` or `pass`"""
    node = parse(dedent(getsource(unwrap(func)))).body[0]
    body = node.body
    if (
        isinstance(body[0], Expr)
        and isinstance(body[0].value, Constant)
        and isinstance(body[0].value.value, str)
    ):
        body = body[1:]
    return all(
        isinstance(statement, Pass)
        or (
            isinstance(statement, Expr)
            and isinstance(statement.value, Constant)
            and statement.value.value is Ellipsis
        )
        for statement in body
    )
