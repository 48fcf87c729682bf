"""
Predicate and value expression tree.

Nodes are immutable and composed with Python operators::

    company = fields(Company)
    criteria = (company.name == "acme") & (company.employees > Parameter("min"))
    # → AND(name = ?, employees > ?)

``==`` / ``!=`` against ``None`` produce ``IS NULL`` / ``IS NOT NULL``.
Nodes refuse to be used in a boolean context, so ``a and b`` raises
``TypeError`` instead of silently dropping a condition; use ``&`` / ``|``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..exceptions import ConfigurationError

LIKE_ESCAPE = "\\"


class ComparisonOperator(str, Enum):
    """Supported comparison operators."""

    EQ = "="
    NE = "<>"
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="


class ArithmeticOperator(str, Enum):
    """Supported arithmetic operators on numeric fields."""

    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    MOD = "%"


def as_expression(value: Any) -> Expression:
    """Wrap plain Python values in a :class:`Constant`."""
    if isinstance(value, Expression):
        return value
    return Constant(value)


def escape_like(value: str, escape: str = LIKE_ESCAPE) -> str:
    """Escape LIKE wildcards so ``value`` matches literally."""
    return (
        value.replace(escape, escape + escape)
        .replace("%", escape + "%")
        .replace("_", escape + "_")
    )


class Expression:
    """Base class for every expression node."""

    # -- comparison ----------------------------------------------------------

    def __eq__(self, other: object) -> Expression:  # type: ignore[override]
        if other is None:
            return IsNull(self)
        return Comparison(ComparisonOperator.EQ, self, as_expression(other))

    def __ne__(self, other: object) -> Expression:  # type: ignore[override]
        if other is None:
            return IsNull(self, negated=True)
        return Comparison(ComparisonOperator.NE, self, as_expression(other))

    def __lt__(self, other: Any) -> Comparison:
        return Comparison(ComparisonOperator.LT, self, as_expression(other))

    def __le__(self, other: Any) -> Comparison:
        return Comparison(ComparisonOperator.LE, self, as_expression(other))

    def __gt__(self, other: Any) -> Comparison:
        return Comparison(ComparisonOperator.GT, self, as_expression(other))

    def __ge__(self, other: Any) -> Comparison:
        return Comparison(ComparisonOperator.GE, self, as_expression(other))

    # -- boolean -------------------------------------------------------------

    def __and__(self, other: Expression) -> And:
        return And(*_flatten(And, self, other))

    def __or__(self, other: Expression) -> Or:
        return Or(*_flatten(Or, self, other))

    def __invert__(self) -> Not:
        return Not(self)

    def __bool__(self) -> bool:
        raise TypeError(
            "Expressions have no truth value; combine them with '&', '|' and '~'"
        )

    def __hash__(self) -> int:
        return id(self)

    # -- arithmetic ----------------------------------------------------------

    def __add__(self, other: Any) -> Arithmetic:
        return Arithmetic(ArithmeticOperator.ADD, self, as_expression(other))

    def __radd__(self, other: Any) -> Arithmetic:
        return Arithmetic(ArithmeticOperator.ADD, as_expression(other), self)

    def __sub__(self, other: Any) -> Arithmetic:
        return Arithmetic(ArithmeticOperator.SUB, self, as_expression(other))

    def __rsub__(self, other: Any) -> Arithmetic:
        return Arithmetic(ArithmeticOperator.SUB, as_expression(other), self)

    def __mul__(self, other: Any) -> Arithmetic:
        return Arithmetic(ArithmeticOperator.MUL, self, as_expression(other))

    def __rmul__(self, other: Any) -> Arithmetic:
        return Arithmetic(ArithmeticOperator.MUL, as_expression(other), self)

    def __truediv__(self, other: Any) -> Arithmetic:
        return Arithmetic(ArithmeticOperator.DIV, self, as_expression(other))

    def __rtruediv__(self, other: Any) -> Arithmetic:
        return Arithmetic(ArithmeticOperator.DIV, as_expression(other), self)

    def __mod__(self, other: Any) -> Arithmetic:
        return Arithmetic(ArithmeticOperator.MOD, self, as_expression(other))

    def __rmod__(self, other: Any) -> Arithmetic:
        return Arithmetic(ArithmeticOperator.MOD, as_expression(other), self)

    # -- set membership / null checks ----------------------------------------

    def in_(self, values: Any) -> In:
        """Membership in a fixed list of values or a nested load operation."""
        return In(self, _membership(values))

    def not_in(self, values: Any) -> In:
        return In(self, _membership(values), negated=True)

    def is_null(self) -> IsNull:
        return IsNull(self)

    def is_not_null(self) -> IsNull:
        return IsNull(self, negated=True)

    # -- pattern matching ----------------------------------------------------

    def like(self, pattern: Any) -> Like:
        """Raw LIKE pattern; ``%`` and ``_`` keep their wildcard meaning."""
        return Like(self, as_expression(pattern))

    def not_like(self, pattern: Any) -> Like:
        return Like(self, as_expression(pattern), negated=True)

    def contains(self, value: str) -> Like:
        return Like(self, Constant(f"%{escape_like(_text(value))}%"), escaped=True)

    def startswith(self, value: str) -> Like:
        return Like(self, Constant(f"{escape_like(_text(value))}%"), escaped=True)

    def endswith(self, value: str) -> Like:
        return Like(self, Constant(f"%{escape_like(_text(value))}"), escaped=True)

    # -- case handling -------------------------------------------------------

    def upper(self) -> Upper:
        return Upper(self)

    def lower(self) -> Lower:
        return Lower(self)

    def iequals(self, other: Any) -> Comparison:
        """Case-insensitive equality."""
        return Comparison(ComparisonOperator.EQ, Upper(self), Upper(as_expression(other)))

    def replace(self, old: Any, new: Any) -> Replace:
        return Replace(self, as_expression(old), as_expression(new))


def _text(value: Any) -> str:
    if not isinstance(value, str):
        raise ConfigurationError(
            f"Pattern helpers require a string value, got {type(value).__name__}"
        )
    return value


def _membership(values: Any) -> Any:
    if hasattr(values, "build"):
        return values
    if isinstance(values, str | bytes):
        raise ConfigurationError("in_() requires a collection of values, not a string")
    return tuple(as_expression(v) for v in values)


def _flatten(kind: type[Any], *operands: Expression) -> list[Expression]:
    result: list[Expression] = []
    for operand in operands:
        if isinstance(operand, kind):
            result.extend(operand.operands)
        else:
            result.append(operand)
    return result


@dataclass(frozen=True, eq=False)
class Field(Expression):
    """
    Reference to an entity member.

    ``entity`` is ``None`` for fields resolved against the root entity of
    the statement being built. ``alias`` overrides the join alias.
    """

    name: str
    entity: type[Any] | None = None
    alias: str | None = None


@dataclass(frozen=True, eq=False)
class Constant(Expression):
    """Literal value. Always compiled to a bound parameter."""

    value: Any


@dataclass(frozen=True, eq=False)
class Parameter(Expression):
    """Named parameter slot, filled when a prepared operation executes."""

    name: str


@dataclass(frozen=True, eq=False)
class Comparison(Expression):
    operator: ComparisonOperator
    left: Expression
    right: Expression


@dataclass(frozen=True, eq=False, init=False)
class And(Expression):
    operands: tuple[Expression, ...]

    def __init__(self, *operands: Expression) -> None:
        if not operands:
            raise ConfigurationError("AND requires at least one operand")
        object.__setattr__(self, "operands", tuple(operands))


@dataclass(frozen=True, eq=False, init=False)
class Or(Expression):
    operands: tuple[Expression, ...]

    def __init__(self, *operands: Expression) -> None:
        if not operands:
            raise ConfigurationError("OR requires at least one operand")
        object.__setattr__(self, "operands", tuple(operands))


@dataclass(frozen=True, eq=False)
class Not(Expression):
    operand: Expression


@dataclass(frozen=True, eq=False)
class In(Expression):
    """``operand IN (...)``. ``values`` is a tuple or a nested load operation."""

    operand: Expression
    values: Any
    negated: bool = False


@dataclass(frozen=True, eq=False)
class IsNull(Expression):
    operand: Expression
    negated: bool = False


@dataclass(frozen=True, eq=False)
class Like(Expression):
    """Pattern match. ``escaped`` patterns carry an ``ESCAPE`` clause."""

    operand: Expression
    pattern: Expression
    negated: bool = False
    escaped: bool = False


@dataclass(frozen=True, eq=False)
class Arithmetic(Expression):
    operator: ArithmeticOperator
    left: Expression
    right: Expression


@dataclass(frozen=True, eq=False)
class Upper(Expression):
    operand: Expression


@dataclass(frozen=True, eq=False)
class Lower(Expression):
    operand: Expression


@dataclass(frozen=True, eq=False)
class Replace(Expression):
    operand: Expression
    old: Expression
    new: Expression


class EntityFields:
    """
    Attribute proxy producing bound :class:`Field` nodes.

    Example::

        company = fields(Company)
        company.name == "acme"         # Field("name", Company)
        fields(Company, alias="j1").id  # explicit join alias
    """

    def __init__(self, entity: type[Any], alias: str | None = None) -> None:
        self._entity = entity
        self._alias = alias

    def __getattr__(self, name: str) -> Field:
        if name.startswith("_"):
            raise AttributeError(name)
        return Field(name, self._entity, self._alias)

    def __getitem__(self, name: str) -> Field:
        return Field(name, self._entity, self._alias)


def fields(entity: type[Any], alias: str | None = None) -> EntityFields:
    return EntityFields(entity, alias)


def field(name: str, entity: type[Any] | None = None) -> Field:
    return Field(name, entity)


__all__: list[str] = [
    "And",
    "Arithmetic",
    "ArithmeticOperator",
    "Comparison",
    "ComparisonOperator",
    "Constant",
    "EntityFields",
    "Expression",
    "Field",
    "In",
    "IsNull",
    "LIKE_ESCAPE",
    "Like",
    "Lower",
    "Not",
    "Or",
    "Parameter",
    "Replace",
    "Upper",
    "as_expression",
    "escape_like",
    "field",
    "fields",
]
