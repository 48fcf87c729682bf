"""Builder-state values shared by the operation builders."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..exceptions import ConfigurationError
from ..expressions.ast import Expression, Field


class CriteriaOperator(str, Enum):
    """How an ad-hoc filter links to the previous one."""

    AND = "AND"
    OR = "OR"


class JoinType(str, Enum):
    INNER = "INNER"
    LEFT = "LEFT"


@dataclass(frozen=True)
class JoinOperation:
    """Join of another entity under a generated ``j<n>`` alias."""

    entity_type: type[Any]
    criteria: Expression
    alias: str
    join_type: JoinType = JoinType.INNER


@dataclass(frozen=True)
class LoadCriteria:
    """Ad-hoc filter on a bare column name used by table data loads."""

    column: str
    operator: str
    value: Any
    link: CriteriaOperator = CriteriaOperator.AND


@dataclass(frozen=True)
class OrderBy:
    field: Expression
    ascending: bool = True


def as_field(value: Any, entity: type[Any] | None = None) -> Expression:
    """Accept expressions as-is and treat strings as member names of ``entity``."""
    if isinstance(value, Expression):
        return value
    if isinstance(value, str):
        return Field(value, entity)
    raise ConfigurationError(
        f"Expected a field name or expression, got {type(value).__name__}"
    )


def asc(value: Any) -> OrderBy:
    return OrderBy(as_field(value), ascending=True)


def desc(value: Any) -> OrderBy:
    return OrderBy(as_field(value), ascending=False)


__all__: list[str] = [
    "CriteriaOperator",
    "JoinOperation",
    "JoinType",
    "LoadCriteria",
    "OrderBy",
    "as_field",
    "asc",
    "desc",
]
