"""Operation builders, the preparator and prepared operations."""

from __future__ import annotations

from .criteria import CriteriaOperator, JoinOperation, JoinType, LoadCriteria, OrderBy, asc, desc
from .delete import DeleteOperation
from .insert import InsertValuesOperation
from .load import LoadOperation
from .load_data import LoadDataOperation
from .preparator import OperationPreparator
from .prepared import (
    PreparedExecutable,
    PreparedInsert,
    PreparedLoad,
    PreparedNonQuery,
    PreparedOperation,
    PreparedScalar,
    RowMapper,
)
from .tables import CreateTableOperation, InsertDataOperation, UpdateDataOperation
from .truncate import TruncateOptions
from .update import UpdateValuesOperation

__all__: list[str] = [
    "CreateTableOperation",
    "CriteriaOperator",
    "DeleteOperation",
    "InsertDataOperation",
    "InsertValuesOperation",
    "JoinOperation",
    "JoinType",
    "LoadCriteria",
    "LoadDataOperation",
    "LoadOperation",
    "OperationPreparator",
    "OrderBy",
    "PreparedExecutable",
    "PreparedInsert",
    "PreparedLoad",
    "PreparedNonQuery",
    "PreparedOperation",
    "PreparedScalar",
    "RowMapper",
    "TruncateOptions",
    "UpdateDataOperation",
    "UpdateValuesOperation",
    "asc",
    "desc",
]
