"""Expression tree, database functions and the SQL compiler."""

from __future__ import annotations

from .ast import (
    And,
    Arithmetic,
    ArithmeticOperator,
    Comparison,
    ComparisonOperator,
    Constant,
    EntityFields,
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
    as_expression,
    escape_like,
    field,
    fields,
)
from .compiler import (
    DEFAULT_NODE_REGISTRY,
    AliasContext,
    CompileContext,
    ExpressionCompiler,
    NodeCompiler,
    NodeCompilerRegistry,
    build_default_node_registry,
    compile_expression,
)
from .functions import (
    DBFunctionType,
    Function,
    all_columns,
    count,
    last_insert_id,
    length,
    random,
    rowid,
)

__all__: list[str] = [
    "DEFAULT_NODE_REGISTRY",
    "AliasContext",
    "And",
    "Arithmetic",
    "ArithmeticOperator",
    "Comparison",
    "ComparisonOperator",
    "CompileContext",
    "Constant",
    "DBFunctionType",
    "EntityFields",
    "Expression",
    "ExpressionCompiler",
    "Field",
    "Function",
    "In",
    "IsNull",
    "Like",
    "Lower",
    "NodeCompiler",
    "NodeCompilerRegistry",
    "Not",
    "Or",
    "Parameter",
    "Replace",
    "Upper",
    "all_columns",
    "as_expression",
    "build_default_node_registry",
    "compile_expression",
    "count",
    "escape_like",
    "field",
    "fields",
    "last_insert_id",
    "length",
    "random",
    "rowid",
]
