"""entity-sql: typed entities, an expression compiler and schema migration over SQL engines.

Entities are plain dataclasses or pydantic models annotated with
:class:`Column` markers; the :class:`EntityManager` binds them to a
SQLAlchemy engine through a dialect.
"""

from __future__ import annotations

# ── Clients ─────────────────────────────────────────────────────
from .clients import AsyncDBClient, AsyncSQLAlchemyClient, DBClient, SQLAlchemyClient

# ── Converters ──────────────────────────────────────────────────
from .converters import ConverterCollection, ValueConverter, default_converters

# ── Dialects ────────────────────────────────────────────────────
from .dialects import (
    Dialect,
    PostgreSQLDialect,
    SQLiteDialect,
    get_dialect,
    register_dialect,
)

# ── Exceptions ──────────────────────────────────────────────────
from .exceptions import (
    ConfigurationError,
    EntitySQLError,
    ExpressionError,
    InvalidDescriptorError,
    MappingError,
    MigrationError,
    SchemaError,
    SchemaMismatchError,
    TransactionError,
    TypeNotFoundError,
    UnknownFieldError,
    UnsupportedExpressionError,
    UnsupportedFunctionError,
    UnsupportedTypeError,
)

# ── Expressions ─────────────────────────────────────────────────
from .expressions import (
    DBFunctionType,
    Expression,
    Field,
    Function,
    Parameter,
    count,
    field,
    fields,
    last_insert_id,
    length,
    random,
    rowid,
)

# ── Manager ─────────────────────────────────────────────────────
from .manager import EntityManager, ManagerOptions

# ── Operations ──────────────────────────────────────────────────
from .operations import (
    CreateTableOperation,
    CriteriaOperator,
    InsertDataOperation,
    JoinType,
    OperationPreparator,
    PreparedOperation,
    TruncateOptions,
    UpdateDataOperation,
    asc,
    desc,
)

# ── Schema ──────────────────────────────────────────────────────
from .schema import (
    Column,
    EntityDescriptor,
    EntityDescriptorCache,
    MigrationPlan,
    SchemaDescriptor,
    TableDescriptor,
    ViewDescriptor,
)

__version__ = "0.1.0"

__all__: list[str] = [
    "AsyncDBClient",
    "AsyncSQLAlchemyClient",
    "Column",
    "ConfigurationError",
    "ConverterCollection",
    "CreateTableOperation",
    "CriteriaOperator",
    "DBClient",
    "DBFunctionType",
    "Dialect",
    "EntityDescriptor",
    "EntityDescriptorCache",
    "EntityManager",
    "EntitySQLError",
    "Expression",
    "ExpressionError",
    "Field",
    "Function",
    "InsertDataOperation",
    "InvalidDescriptorError",
    "JoinType",
    "ManagerOptions",
    "MappingError",
    "MigrationError",
    "MigrationPlan",
    "OperationPreparator",
    "Parameter",
    "PostgreSQLDialect",
    "PreparedOperation",
    "SQLAlchemyClient",
    "SQLiteDialect",
    "SchemaDescriptor",
    "SchemaError",
    "SchemaMismatchError",
    "TableDescriptor",
    "TransactionError",
    "TruncateOptions",
    "TypeNotFoundError",
    "UnknownFieldError",
    "UnsupportedExpressionError",
    "UnsupportedFunctionError",
    "UnsupportedTypeError",
    "UpdateDataOperation",
    "ValueConverter",
    "ViewDescriptor",
    "asc",
    "count",
    "default_converters",
    "desc",
    "field",
    "fields",
    "get_dialect",
    "last_insert_id",
    "length",
    "random",
    "register_dialect",
    "rowid",
]
