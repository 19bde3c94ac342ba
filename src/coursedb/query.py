from __future__ import annotations

import re
from enum import IntEnum, auto
from typing import TYPE_CHECKING, Any, Dict, List, Tuple

from coursedb.exception import CourseDBError

if TYPE_CHECKING:
    from coursedb.interface.base import BaseInterface, Values

PLACEHOLDER = re.compile(r"\$(?:(\d+)(?![a-z0-9_])|([a-z_][a-z0-9_]*))")


class ParamType(IntEnum):
    NONE = auto()
    POSITIONAL = auto()
    KEYWORD = auto()


class SQLQuery:
    """A named SQL statement written with `$name` or `$1` placeholders.

    The text is kept in its portable form. Each interface gets its own
    rendering, built on first use, with the placeholders that its driver
    understands.
    """

    __slots__ = ("name", "text", "param_type", "_slots", "_rendered")

    def __init__(self, name: str, text: str) -> None:
        self.name = name
        self.text = text
        self._rendered: Dict[Tuple[str, str], str] = {}

        positions = []
        keywords = []
        for match in PLACEHOLDER.finditer(text):
            if match.group(1):
                positions.append(int(match.group(1)))
            else:
                keywords.append(match.group(2))

        if positions and keywords:
            raise CourseDBError(
                f"Query {name} mixes positional and keyword arguments"
            )
        if positions:
            self.param_type = ParamType.POSITIONAL
            self._slots: List[Any] = positions
        elif keywords:
            self.param_type = ParamType.KEYWORD
            self._slots = keywords
        else:
            self.param_type = ParamType.NONE
            self._slots = []

    @property
    def parameters(self) -> List[str]:
        """Names of the keyword placeholders, in order of first use"""
        if self.param_type is not ParamType.KEYWORD:
            return []
        return list(dict.fromkeys(self._slots))

    def for_interface(self, interface: BaseInterface) -> str:
        """Render the query for the paramstyle of a database interface

        Args:
            interface (BaseInterface): The interface, or interface class, that
                will run the query

        Returns:
            str: The query text with driver specific placeholders
        """
        key = (interface.positional_placeholder, interface.keyword_placeholder)
        if key not in self._rendered:
            positional, keyword = key

            def substitute(match: re.Match) -> str:
                if match.group(1):
                    return positional
                return keyword.format(match.group(2))

            self._rendered[key] = PLACEHOLDER.sub(substitute, self.text)
        return self._rendered[key]

    def bind(self, arguments: Dict[str, Any]) -> Values:
        """Pick the values the query needs out of a method's arguments.

        Keyword queries receive a mapping limited to the names they use.
        Positional queries receive a list following the `$n` markers in the
        order they appear, so `$2 ... $1` is bound correctly.

        Raises:
            CourseDBError: When an argument the query needs is missing
        """
        if self.param_type is ParamType.KEYWORD:
            missing = [p for p in self.parameters if p not in arguments]
            if missing:
                raise CourseDBError(
                    f"Query {self.name} is missing values for: "
                    f"{', '.join(missing)}"
                )
            return {p: arguments[p] for p in self.parameters}
        if self.param_type is ParamType.POSITIONAL:
            values = list(arguments.values())
            if max(self._slots) > len(values):
                raise CourseDBError(
                    f"Query {self.name} expects {max(self._slots)} "
                    f"positional values, got {len(values)}"
                )
            return [values[position - 1] for position in self._slots]
        return None

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(name={self.name!r}, "
            f"param_type={self.param_type.name})"
        )

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, SQLQuery)
            and self.text == other.text
            and self.param_type is other.param_type
        )
