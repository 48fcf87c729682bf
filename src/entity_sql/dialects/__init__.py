"""
Dialect registry.

Clients pick their dialect by engine name (``engine.dialect.name`` for
SQLAlchemy engines). Additional dialects register under their own name::

    register_dialect("mysql", MySQLDialect)
"""

from __future__ import annotations

from difflib import get_close_matches

from ..exceptions import ConfigurationError
from .base import Dialect, index_name
from .postgres import PostgreSQLDialect
from .sqlite import SQLiteDialect

_DIALECTS: dict[str, type[Dialect]] = {}


def register_dialect(name: str, dialect_cls: type[Dialect]) -> None:
    _DIALECTS[name.lower()] = dialect_cls


def get_dialect(name: str) -> Dialect:
    """
    Create the dialect registered for ``name``.

    Raises:
        ConfigurationError: If no dialect is registered under ``name``.
    """
    dialect_cls = _DIALECTS.get(name.lower())
    if dialect_cls is None:
        message = f"No dialect registered for '{name}'."
        suggestions = get_close_matches(name.lower(), list(_DIALECTS), n=1)
        if suggestions:
            message += f" Did you mean: {suggestions[0]}?"
        raise ConfigurationError(message)
    return dialect_cls()


def registered_dialects() -> list[str]:
    return sorted(_DIALECTS)


register_dialect("sqlite", SQLiteDialect)
register_dialect("postgresql", PostgreSQLDialect)


__all__: list[str] = [
    "Dialect",
    "PostgreSQLDialect",
    "SQLiteDialect",
    "get_dialect",
    "index_name",
    "register_dialect",
    "registered_dialects",
]
