from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional
from uuid import uuid4

from coursedb.exception import InvalidParams


@dataclass
class Category:
    id: str
    name: str
    description: Optional[str] = None


@dataclass
class Course:
    id: str
    name: str
    description: Optional[str]
    category_id: str
    price: float

    def __post_init__(self):
        # MySQL and Postgres hand NUMERIC columns back as Decimal
        self.price = float(self.price)


@dataclass
class CourseWithCategory(Course):
    category_name: str = ""


def _new_id() -> str:
    return str(uuid4())


@dataclass
class CategoryParams:
    """Values for a category about to be written"""

    name: str
    description: Optional[str] = None
    id: str = ""

    def __post_init__(self):
        if not self.id:
            self.id = _new_id()
        if not self.name or not self.name.strip():
            raise InvalidParams("Category name must not be empty")


@dataclass
class CourseParams:
    """Values for a course about to be written. The category is supplied
    separately when the course is created."""

    name: str
    price: float
    description: Optional[str] = None
    id: str = ""

    def __post_init__(self):
        if not self.id:
            self.id = _new_id()
        if not self.name or not self.name.strip():
            raise InvalidParams("Course name must not be empty")
        if self.price is None or not math.isfinite(self.price):
            raise InvalidParams(
                f"Course price must be a finite number, got {self.price}"
            )
        if self.price < 0:
            raise InvalidParams(
                f"Course price must not be negative, got {self.price}"
            )
