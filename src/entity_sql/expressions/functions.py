"""Declared SQL functions, rendered per dialect."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .ast import Expression, as_expression


class DBFunctionType(str, Enum):
    """Database built-ins available to expressions."""

    COUNT = "count"
    RANDOM = "random"
    ROWID = "rowid"
    LENGTH = "length"
    LAST_INSERT_ID = "last_insert_id"
    ALL = "all"


@dataclass(frozen=True, eq=False)
class Function(Expression):
    """Call-out to a database function. ``argument`` is optional."""

    kind: DBFunctionType
    argument: Expression | None = None

    def __str__(self) -> str:
        return self.kind.value


def count(argument: Any = None) -> Function:
    """``COUNT(*)`` or ``COUNT(argument)`` (non-null values only)."""
    return Function(
        DBFunctionType.COUNT, None if argument is None else as_expression(argument)
    )


def length(argument: Any) -> Function:
    return Function(DBFunctionType.LENGTH, as_expression(argument))


def random() -> Function:
    return Function(DBFunctionType.RANDOM)


def rowid() -> Function:
    return Function(DBFunctionType.ROWID)


def last_insert_id() -> Function:
    return Function(DBFunctionType.LAST_INSERT_ID)


def all_columns() -> Function:
    return Function(DBFunctionType.ALL)


__all__: list[str] = [
    "DBFunctionType",
    "Function",
    "all_columns",
    "count",
    "last_insert_id",
    "length",
    "random",
    "rowid",
]
