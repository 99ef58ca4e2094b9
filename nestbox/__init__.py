"""Schema-aware data access over a single MySQL connection."""

from __future__ import annotations

from .config import AppConfig, ConnectionSettings, load_config, save_config
from .errors import (
    BindFailure,
    CannotBindArray,
    ConnectionError,
    EmptyQuery,
    InvalidColumn,
    InvalidParameters,
    InvalidTable,
    MissingConfig,
    NestboxError,
    QueryError,
    TransactionBeginFailed,
    TransactionCommitFailed,
    TransactionFailure,
    TransactionInProgress,
    TransactionRollbackFailed,
    UnrestrictedQuery,
)
from .models import BindValue, ConnectionDescriptor, ParamKind, QueryDescriptor, StatementResult
from .session import Nestbox

__all__ = [
    "AppConfig",
    "BindFailure",
    "BindValue",
    "CannotBindArray",
    "ConnectionDescriptor",
    "ConnectionError",
    "ConnectionSettings",
    "EmptyQuery",
    "InvalidColumn",
    "InvalidParameters",
    "InvalidTable",
    "MissingConfig",
    "Nestbox",
    "NestboxError",
    "ParamKind",
    "QueryDescriptor",
    "QueryError",
    "StatementResult",
    "TransactionBeginFailed",
    "TransactionCommitFailed",
    "TransactionFailure",
    "TransactionInProgress",
    "TransactionRollbackFailed",
    "UnrestrictedQuery",
    "load_config",
    "save_config",
]
