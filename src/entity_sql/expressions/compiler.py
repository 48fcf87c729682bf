"""
Compile an expression tree into SQL text and bound parameters.

Uses the strategy pattern: each node kind is compiled by an isolated
:class:`NodeCompiler`, registered in a :class:`NodeCompilerRegistry`.
:class:`ExpressionCompiler` walks the tree and delegates each node to the
registry; engine-specific leaves (functions, upper/lower, replace) are
delegated further to the dialect.

Literals never appear in the command text. Each one is appended to the
preparator as a parameter in left-to-right walk order, which is the same
order the placeholders appear in the emitted text.

Parentheses are emitted only where operator precedence requires them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..exceptions import ConfigurationError, UnsupportedExpressionError
from .ast import (
    LIKE_ESCAPE,
    And,
    Arithmetic,
    ArithmeticOperator,
    Comparison,
    ComparisonOperator,
    Constant,
    Expression,
    Field,
    In,
    IsNull,
    Like,
    Lower,
    Not,
    Or,
    Parameter,
    Replace,
    Upper,
)
from .functions import Function

if TYPE_CHECKING:
    from ..dialects.base import Dialect
    from ..operations.preparator import OperationPreparator
    from ..schema.descriptors import EntityDescriptor

# Precedence levels, lowest binds loosest.
OR_PRECEDENCE = 1
AND_PRECEDENCE = 2
NOT_PRECEDENCE = 3
COMPARISON_PRECEDENCE = 4
ADDITIVE_PRECEDENCE = 5
MULTIPLICATIVE_PRECEDENCE = 6
ATOM_PRECEDENCE = 9


@dataclass
class AliasContext:
    """
    How column references are qualified.

    ``root`` is the entity unbound fields resolve against. ``aliases`` maps
    joined entity types to their generated aliases. With ``qualify`` set,
    entities without an alias are qualified by their quoted table name.
    """

    root: type[Any] | None = None
    aliases: dict[type[Any], str] = field(default_factory=dict)
    qualify: bool = False


@dataclass
class CompileContext:
    """Everything a node compiler needs besides the preparator."""

    descriptors: Callable[[type[Any]], EntityDescriptor]
    dialect: Dialect
    aliases: AliasContext = field(default_factory=AliasContext)


class NodeCompiler(ABC):
    """Strategy interface compiling one node kind."""

    @property
    @abstractmethod
    def node_type(self) -> type[Expression]:
        """The node class this strategy handles."""
        ...

    def precedence(self, node: Any) -> int:
        return ATOM_PRECEDENCE

    @abstractmethod
    def compile(self, node: Any, compiler: ExpressionCompiler) -> None:
        """Append the SQL for ``node`` to ``compiler.preparator``."""
        ...


class NodeCompilerRegistry:
    """Registry of :class:`NodeCompiler` instances keyed by node class."""

    def __init__(self) -> None:
        self._compilers: dict[type[Expression], NodeCompiler] = {}

    def register(self, compiler: NodeCompiler) -> None:
        self._compilers[compiler.node_type] = compiler

    def register_all(self, *compilers: NodeCompiler) -> None:
        for compiler in compilers:
            self.register(compiler)

    def unregister(self, node_type: type[Expression]) -> None:
        self._compilers.pop(node_type, None)

    def get(self, node_type: type[Any]) -> NodeCompiler | None:
        for klass in node_type.__mro__:
            compiler = self._compilers.get(klass)
            if compiler is not None:
                return compiler
        return None

    def has(self, node_type: type[Any]) -> bool:
        return self.get(node_type) is not None

    @property
    def supported_nodes(self) -> set[type[Expression]]:
        return set(self._compilers.keys())


class ExpressionCompiler:
    """Tree walker appending compiled nodes to an :class:`OperationPreparator`."""

    def __init__(
        self,
        context: CompileContext,
        preparator: OperationPreparator,
        registry: NodeCompilerRegistry | None = None,
    ) -> None:
        self.context = context
        self.preparator = preparator
        self.registry = registry or DEFAULT_NODE_REGISTRY

    @property
    def dialect(self) -> Dialect:
        return self.context.dialect

    def _strategy(self, node: Any) -> NodeCompiler:
        strategy = self.registry.get(type(node))
        if strategy is None:
            raise UnsupportedExpressionError(node)
        return strategy

    def precedence(self, node: Any) -> int:
        return self._strategy(node).precedence(node)

    def visit(self, node: Any, parent_precedence: int = 0) -> None:
        """Compile ``node``, parenthesized when it binds looser than its parent."""
        strategy = self._strategy(node)
        wrap = strategy.precedence(node) < parent_precedence
        if wrap:
            self.preparator.append_text("(")
        strategy.compile(node, self)
        if wrap:
            self.preparator.append_text(")")

    def column_reference(self, node: Field) -> str:
        """Resolve a field to ``[alias.]"column"`` through the descriptor lookup."""
        aliases = self.context.aliases
        entity = node.entity or aliases.root
        if entity is None:
            raise ConfigurationError(
                f"Field '{node.name}' is not bound to an entity and no root entity is set"
            )

        descriptor = self.context.descriptors(entity)
        column = self.dialect.quote(descriptor.get_column(node.name).name)

        prefix = node.alias or aliases.aliases.get(entity)
        if prefix is None and aliases.qualify:
            prefix = self.dialect.quote(descriptor.table_name)
        return f"{prefix}.{column}" if prefix else column


def compile_expression(
    node: Expression,
    context: CompileContext,
    preparator: OperationPreparator,
    registry: NodeCompilerRegistry | None = None,
) -> OperationPreparator:
    """Compile ``node`` into ``preparator`` and return the preparator."""
    ExpressionCompiler(context, preparator, registry).visit(node)
    return preparator


# ---------------------------------------------------------------------------
# Built-in node compilers
# ---------------------------------------------------------------------------


class FieldCompiler(NodeCompiler):
    @property
    def node_type(self) -> type[Expression]:
        return Field

    def compile(self, node: Field, compiler: ExpressionCompiler) -> None:
        compiler.preparator.append_text(compiler.column_reference(node))


class ConstantCompiler(NodeCompiler):
    @property
    def node_type(self) -> type[Expression]:
        return Constant

    def compile(self, node: Constant, compiler: ExpressionCompiler) -> None:
        compiler.preparator.append_parameter(compiler.dialect.to_db_value(node.value))


class ParameterCompiler(NodeCompiler):
    @property
    def node_type(self) -> type[Expression]:
        return Parameter

    def compile(self, node: Parameter, compiler: ExpressionCompiler) -> None:
        compiler.preparator.append_parameter(node)


class ComparisonCompiler(NodeCompiler):
    @property
    def node_type(self) -> type[Expression]:
        return Comparison

    def precedence(self, node: Any) -> int:
        return COMPARISON_PRECEDENCE

    def compile(self, node: Comparison, compiler: ExpressionCompiler) -> None:
        if (
            isinstance(node.right, Constant)
            and node.right.value is None
            and node.operator in (ComparisonOperator.EQ, ComparisonOperator.NE)
        ):
            compiler.visit(
                IsNull(node.left, negated=node.operator is ComparisonOperator.NE)
            )
            return
        compiler.visit(node.left, COMPARISON_PRECEDENCE + 1)
        compiler.preparator.append_text(node.operator.value)
        compiler.visit(node.right, COMPARISON_PRECEDENCE + 1)


class _JunctionCompiler(NodeCompiler):
    keyword = ""
    level = 0

    def precedence(self, node: Any) -> int:
        return self.level if len(node.operands) > 1 else self._single(node)

    def _single(self, node: Any) -> int:
        return ATOM_PRECEDENCE

    def compile(self, node: Any, compiler: ExpressionCompiler) -> None:
        if len(node.operands) == 1:
            compiler.visit(node.operands[0])
            return
        for index, operand in enumerate(node.operands):
            if index:
                compiler.preparator.append_text(self.keyword)
            compiler.visit(operand, self.level)


class AndCompiler(_JunctionCompiler):
    keyword = "AND"
    level = AND_PRECEDENCE

    @property
    def node_type(self) -> type[Expression]:
        return And


class OrCompiler(_JunctionCompiler):
    keyword = "OR"
    level = OR_PRECEDENCE

    @property
    def node_type(self) -> type[Expression]:
        return Or


class NotCompiler(NodeCompiler):
    @property
    def node_type(self) -> type[Expression]:
        return Not

    def precedence(self, node: Any) -> int:
        return NOT_PRECEDENCE

    def compile(self, node: Not, compiler: ExpressionCompiler) -> None:
        compiler.preparator.append_text("NOT")
        compiler.visit(node.operand, NOT_PRECEDENCE)


class InCompiler(NodeCompiler):
    @property
    def node_type(self) -> type[Expression]:
        return In

    def precedence(self, node: Any) -> int:
        return COMPARISON_PRECEDENCE

    def compile(self, node: In, compiler: ExpressionCompiler) -> None:
        preparator = compiler.preparator
        if isinstance(node.values, tuple) and not node.values:
            # empty list: constant predicate, no placeholders
            preparator.append_text("1 = 1" if node.negated else "1 = 0")
            return

        compiler.visit(node.operand, COMPARISON_PRECEDENCE + 1)
        preparator.append_text("NOT IN (" if node.negated else "IN (")
        if isinstance(node.values, tuple):
            for index, value in enumerate(node.values):
                if index:
                    preparator.append_text(",")
                compiler.visit(value)
        else:
            node.values.build(preparator)
        preparator.append_text(")")


class IsNullCompiler(NodeCompiler):
    @property
    def node_type(self) -> type[Expression]:
        return IsNull

    def precedence(self, node: Any) -> int:
        return COMPARISON_PRECEDENCE

    def compile(self, node: IsNull, compiler: ExpressionCompiler) -> None:
        compiler.visit(node.operand, COMPARISON_PRECEDENCE + 1)
        compiler.preparator.append_text("IS NOT NULL" if node.negated else "IS NULL")


class LikeCompiler(NodeCompiler):
    @property
    def node_type(self) -> type[Expression]:
        return Like

    def precedence(self, node: Any) -> int:
        return COMPARISON_PRECEDENCE

    def compile(self, node: Like, compiler: ExpressionCompiler) -> None:
        term = compiler.dialect.like_term
        compiler.visit(node.operand, COMPARISON_PRECEDENCE + 1)
        compiler.preparator.append_text(f"NOT {term}" if node.negated else term)
        compiler.visit(node.pattern, COMPARISON_PRECEDENCE + 1)
        if node.escaped:
            compiler.preparator.append_text(f"ESCAPE '{LIKE_ESCAPE}'")


_ARITHMETIC_PRECEDENCE = {
    ArithmeticOperator.ADD: ADDITIVE_PRECEDENCE,
    ArithmeticOperator.SUB: ADDITIVE_PRECEDENCE,
    ArithmeticOperator.MUL: MULTIPLICATIVE_PRECEDENCE,
    ArithmeticOperator.DIV: MULTIPLICATIVE_PRECEDENCE,
    ArithmeticOperator.MOD: MULTIPLICATIVE_PRECEDENCE,
}


class ArithmeticCompiler(NodeCompiler):
    @property
    def node_type(self) -> type[Expression]:
        return Arithmetic

    def precedence(self, node: Any) -> int:
        return _ARITHMETIC_PRECEDENCE[node.operator]

    def compile(self, node: Arithmetic, compiler: ExpressionCompiler) -> None:
        level = self.precedence(node)
        associative = node.operator in (ArithmeticOperator.ADD, ArithmeticOperator.MUL)
        compiler.visit(node.left, level)
        compiler.preparator.append_text(compiler.dialect.arithmetic_operator(node.operator))
        compiler.visit(node.right, level if associative else level + 1)


class UpperCompiler(NodeCompiler):
    @property
    def node_type(self) -> type[Expression]:
        return Upper

    def compile(self, node: Upper, compiler: ExpressionCompiler) -> None:
        compiler.dialect.render_upper(compiler, node.operand)


class LowerCompiler(NodeCompiler):
    @property
    def node_type(self) -> type[Expression]:
        return Lower

    def compile(self, node: Lower, compiler: ExpressionCompiler) -> None:
        compiler.dialect.render_lower(compiler, node.operand)


class ReplaceCompiler(NodeCompiler):
    @property
    def node_type(self) -> type[Expression]:
        return Replace

    def compile(self, node: Replace, compiler: ExpressionCompiler) -> None:
        compiler.dialect.render_replace(compiler, node.operand, node.old, node.new)


class FunctionCompiler(NodeCompiler):
    @property
    def node_type(self) -> type[Expression]:
        return Function

    def compile(self, node: Function, compiler: ExpressionCompiler) -> None:
        compiler.dialect.render_function(node, compiler)


def build_default_node_registry() -> NodeCompilerRegistry:
    """Create a registry with all built-in node compilers."""
    registry = NodeCompilerRegistry()
    registry.register_all(
        FieldCompiler(),
        ConstantCompiler(),
        ParameterCompiler(),
        ComparisonCompiler(),
        AndCompiler(),
        OrCompiler(),
        NotCompiler(),
        InCompiler(),
        IsNullCompiler(),
        LikeCompiler(),
        ArithmeticCompiler(),
        UpperCompiler(),
        LowerCompiler(),
        ReplaceCompiler(),
        FunctionCompiler(),
    )
    return registry


DEFAULT_NODE_REGISTRY = build_default_node_registry()


__all__: list[str] = [
    "AliasContext",
    "CompileContext",
    "DEFAULT_NODE_REGISTRY",
    "ExpressionCompiler",
    "NodeCompiler",
    "NodeCompilerRegistry",
    "build_default_node_registry",
    "compile_expression",
]
