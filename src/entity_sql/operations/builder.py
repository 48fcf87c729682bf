"""Shared state of the fluent operation builders."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from ..exceptions import ConfigurationError
from ..expressions.ast import Expression
from ..expressions.compiler import AliasContext, CompileContext, ExpressionCompiler
from .preparator import OperationPreparator

if TYPE_CHECKING:
    from ..dialects.base import Dialect
    from ..schema.descriptors import EntityDescriptor

DescriptorLookup = Callable[[type[Any]], "EntityDescriptor"]


class OperationBuilder:
    """
    Base for builders bound to a client and an entity type.

    Builders accumulate configuration, validating each call eagerly, and
    produce an immutable prepared operation from ``prepare()``.
    """

    def __init__(
        self, client: Any, descriptors: DescriptorLookup, entity_type: type[Any]
    ) -> None:
        self._client = client
        self._descriptors = descriptors
        self._entity_type = entity_type

    @property
    def dialect(self) -> Dialect:
        return self._client.dialect

    @property
    def entity_type(self) -> type[Any]:
        return self._entity_type

    @property
    def descriptor(self) -> EntityDescriptor:
        return self._descriptors(self._entity_type)

    def _new_preparator(self) -> OperationPreparator:
        return OperationPreparator(self.dialect)

    def _compiler(
        self, preparator: OperationPreparator, aliases: AliasContext | None = None
    ) -> ExpressionCompiler:
        context = CompileContext(
            descriptors=self._descriptors,
            dialect=preparator.dialect,
            aliases=aliases or AliasContext(root=self._entity_type),
        )
        return ExpressionCompiler(context, preparator)

    @staticmethod
    def _require_expression(value: Any, clause: str) -> Expression:
        if not isinstance(value, Expression):
            raise ConfigurationError(
                f"{clause} requires an expression, got {type(value).__name__}"
            )
        return value

    def __str__(self) -> str:
        return self.prepare().command_text  # type: ignore[attr-defined]


__all__: list[str] = ["DescriptorLookup", "OperationBuilder"]
