"""
Custom value converters.

A converter maps a host type the dialects do not know into a supported
storage type and back. Dialects consult their converter collection before
any built-in conversion, for column types, bound parameters and loaded
values alike::

    default_converters.register(
        ValueConverter(Point, str, to_db=lambda p: f"{p.x},{p.y}", from_db=Point.parse)
    )

The process-wide :data:`default_converters` is used by every dialect that
is not given its own collection.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValueConverter:
    """
    Attributes:
        python_type: Declared type on the entity.
        db_type: Supported type the value is stored as.
        to_db: Converts a ``python_type`` value into a ``db_type`` value.
        from_db: Converts a ``db_type`` value back into ``python_type``.
    """

    python_type: type[Any]
    db_type: type[Any]
    to_db: Callable[[Any], Any]
    from_db: Callable[[Any], Any]


class ConverterCollection:
    """
    Registry of :class:`ValueConverter` keyed by declared type.

    Lookups walk the MRO, so a converter registered for a base class also
    covers its subclasses unless they have their own.
    """

    def __init__(self) -> None:
        self._converters: dict[type[Any], ValueConverter] = {}
        self._lock = threading.Lock()

    def register(self, converter: ValueConverter) -> None:
        with self._lock:
            self._converters[converter.python_type] = converter
        logger.debug(
            "Registered converter %s -> %s",
            converter.python_type.__name__,
            converter.db_type.__name__,
        )

    def unregister(self, python_type: type[Any]) -> None:
        with self._lock:
            self._converters.pop(python_type, None)

    def get(self, python_type: Any) -> ValueConverter | None:
        """Return the converter covering ``python_type`` or ``None``."""
        if not self._converters:
            return None
        for klass in getattr(python_type, "__mro__", (python_type,)):
            converter = self._converters.get(klass)
            if converter is not None:
                return converter
        return None

    def has(self, python_type: Any) -> bool:
        return self.get(python_type) is not None

    def __len__(self) -> int:
        return len(self._converters)


default_converters = ConverterCollection()


__all__: list[str] = ["ConverterCollection", "ValueConverter", "default_converters"]
