from __future__ import annotations

from inspect import Parameter
from types import UnionType
from typing import Any, Dict, List, Optional, Union, get_args, get_origin

from coursedb.exception import CourseDBError

SCALARS = (str, int, float, bool)


class Hydrator:
    """Turns the rows fetched for an operation into its declared result.

    A hydrator is derived once per operation from the method's return
    annotation:

    - `-> None` or no annotation: nothing is fetched
    - `-> Category`: one row, required
    - `-> Optional[Category]`: one row or `None`
    - `-> List[Category]`: every row, possibly none
    - `-> int` (or another scalar): the first column of one row
    - `-> Dict[str, Any]`: the row as a plain dictionary
    """

    __slots__ = ("model", "many", "optional")

    def __init__(
        self,
        model: Optional[type] = None,
        many: bool = False,
        optional: bool = False,
    ) -> None:
        self.model = model
        self.many = many
        self.optional = optional

    @classmethod
    def for_annotation(cls, annotation: Any) -> Hydrator:
        if annotation in (None, type(None), Parameter.empty):
            return cls()

        optional = False
        origin = get_origin(annotation)
        if origin is Union or origin is UnionType:
            args = get_args(annotation)
            models = [arg for arg in args if arg is not type(None)]
            if len(models) != 1 or len(args) != 2:
                raise CourseDBError(
                    f"Cannot hydrate {annotation}: only Optional[...] unions "
                    "are supported"
                )
            optional = True
            annotation = models[0]
            origin = get_origin(annotation)

        if origin is list:
            return cls(get_args(annotation)[0], many=True, optional=optional)
        if origin is dict:
            return cls(dict, optional=optional)
        if origin is not None:
            raise CourseDBError(
                f"Cannot hydrate {annotation}: return a model, "
                "Optional[Model] or List[Model]"
            )
        return cls(annotation, optional=optional)

    @property
    def fetch(self) -> Optional[str]:
        """How many rows the driver should fetch: `"one"`, `"all"` or none"""
        if self.model is None:
            return None
        return "all" if self.many else "one"

    def hydrate(
        self, raw: Union[Dict[str, Any], List[Dict[str, Any]], None]
    ):
        if self.model is None:
            return None
        if self.many:
            return [self.build(row) for row in raw or ()]
        if not raw:
            return None
        return self.build(raw)

    def build(self, row: Dict[str, Any]):
        """Cast a single row into the model"""
        if self.model in SCALARS:
            return self.model(next(iter(row.values())))
        if self.model is dict:
            return dict(row)
        return self.model(**row)

    def __repr__(self) -> str:
        name = getattr(self.model, "__name__", self.model)
        return (
            f"{self.__class__.__name__}(model={name}, many={self.many}, "
            f"optional={self.optional})"
        )
