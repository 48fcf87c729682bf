"""
Accumulator for command text and bound parameters.

Fragments are joined with single spaces, except that no space follows an
opening parenthesis and none precedes a closing parenthesis or a comma.
Every call to :meth:`OperationPreparator.append_parameter` emits the
dialect's placeholder and records the value at the same position, so the
placeholder order in the command text always equals the order of the
parameter list.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .prepared import PreparedOperation

if TYPE_CHECKING:
    from ..dialects.base import Dialect


def join_fragments(fragments: list[str]) -> str:
    parts: list[str] = []
    for fragment in fragments:
        if not fragment:
            continue
        if parts and not parts[-1].endswith("(") and not fragment.startswith((")", ",")):
            parts.append(" ")
        parts.append(fragment)
    return "".join(parts)


class OperationPreparator:
    """
    Collects SQL fragments and parameters in construction order.

    Example::

        preparator = OperationPreparator(dialect)
        preparator.append_text('SELECT "name" FROM "company" WHERE "id" =')
        preparator.append_parameter(7)
        preparator.get_operation()
        # → PreparedOperation('SELECT "name" FROM "company" WHERE "id" = ?', (7,))
    """

    def __init__(self, dialect: Dialect) -> None:
        self._dialect = dialect
        self._fragments: list[str] = []
        self._parameters: list[Any] = []

    @property
    def dialect(self) -> Dialect:
        return self._dialect

    @property
    def command_text(self) -> str:
        return join_fragments(self._fragments)

    @property
    def parameters(self) -> tuple[Any, ...]:
        return tuple(self._parameters)

    def append_text(self, *fragments: str) -> OperationPreparator:
        self._fragments.extend(fragments)
        return self

    def append_parameter(self, value: Any) -> OperationPreparator:
        self._fragments.append(self._dialect.placeholder(len(self._parameters) + 1))
        self._parameters.append(value)
        return self

    def append_field(self, name: str, qualifier: str | None = None) -> OperationPreparator:
        """Append a quoted column name, optionally qualified by a table or alias."""
        quoted = self._dialect.quote(name)
        self._fragments.append(f"{qualifier}.{quoted}" if qualifier else quoted)
        return self

    def append_list(self, items: list[str]) -> OperationPreparator:
        """Append ``items`` separated by commas."""
        for index, item in enumerate(items):
            if index:
                self._fragments.append(",")
            self._fragments.append(item)
        return self

    def get_operation(self) -> PreparedOperation:
        return PreparedOperation(self.command_text, self.parameters)

    def __str__(self) -> str:
        return self.command_text
