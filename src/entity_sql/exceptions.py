"""
Exception hierarchy for entity-sql.

All exceptions inherit from ``EntitySQLError`` and provide ``to_dict()``
for API-friendly error responses. Errors raised by the database engine
(constraint violations, connection failures) are never wrapped: they
surface as the driver / SQLAlchemy exception types.
"""

from __future__ import annotations

from difflib import get_close_matches
from typing import Any


class EntitySQLError(Exception):
    """Root exception for the entire entity-sql toolkit."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "message": str(self),
        }


class ConfigurationError(EntitySQLError):
    """Invalid builder or option configuration detected before execution."""


class TransactionError(EntitySQLError):
    """Raised when a transaction cannot be started or is used after it ended."""


# -- mapping -----------------------------------------------------------------


class MappingError(EntitySQLError):
    """A type or member cannot be represented in the database."""


class UnsupportedTypeError(MappingError):
    """No database type mapping exists for a host type."""

    def __init__(self, python_type: Any, dialect: str) -> None:
        self.python_type = python_type
        self.dialect = dialect
        name = getattr(python_type, "__name__", repr(python_type))
        super().__init__(f"Type '{name}' is not supported by the {dialect} dialect")

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "UNSUPPORTED_TYPE",
            "type": getattr(self.python_type, "__name__", repr(self.python_type)),
            "dialect": self.dialect,
        }


class UnknownFieldError(MappingError):
    """
    A referenced member has no corresponding column.

    Uses fuzzy matching to suggest similar column names.
    """

    def __init__(
        self,
        field: str,
        entity_name: str,
        available_fields: list[str],
        cutoff: float = 0.6,
    ) -> None:
        self.field = field
        self.entity_name = entity_name
        self.available_fields = available_fields
        self.suggestions = get_close_matches(
            field, available_fields, n=3, cutoff=cutoff
        )

        message = f"Unknown field '{field}' on '{entity_name}'."
        if self.suggestions:
            message += f" Did you mean: {', '.join(self.suggestions)}?"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "UNKNOWN_FIELD",
            "field": self.field,
            "entity": self.entity_name,
            "suggestions": self.suggestions,
            "available_fields": sorted(self.available_fields),
        }


# -- expressions -------------------------------------------------------------


class ExpressionError(EntitySQLError):
    """Base class for errors raised while compiling expressions."""


class UnsupportedExpressionError(ExpressionError):
    """The expression tree contains a node kind with no compiled form."""

    def __init__(self, node: Any) -> None:
        self.node = node
        self.node_type = type(node).__name__
        super().__init__(f"Unsupported expression node: {self.node_type} ({node!r})")

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "UNSUPPORTED_EXPRESSION",
            "node": self.node_type,
        }


class UnsupportedFunctionError(ExpressionError):
    """A database function has no rendering in the active dialect."""

    def __init__(self, function: Any, dialect: str) -> None:
        self.function = function
        self.dialect = dialect
        super().__init__(f"Function {function} is not supported by the {dialect} dialect")

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "UNSUPPORTED_FUNCTION",
            "function": str(self.function),
            "dialect": self.dialect,
        }


# -- schema ------------------------------------------------------------------


class SchemaError(EntitySQLError):
    """Introspected schema state is inconsistent with expectations."""


class TypeNotFoundError(SchemaError):
    """The requested table or view does not exist in the database."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Type '{name}' not found in database")


class SchemaMismatchError(SchemaError):
    """A database object does not have the expected kind or shape."""


class InvalidDescriptorError(SchemaError):
    """A schema descriptor has a kind that cannot be handled."""


class MigrationError(SchemaError):
    """A migration step could not be planned."""


__all__: list[str] = [
    "ConfigurationError",
    "EntitySQLError",
    "ExpressionError",
    "InvalidDescriptorError",
    "MappingError",
    "MigrationError",
    "SchemaError",
    "SchemaMismatchError",
    "TransactionError",
    "TypeNotFoundError",
    "UnknownFieldError",
    "UnsupportedExpressionError",
    "UnsupportedFunctionError",
    "UnsupportedTypeError",
]
