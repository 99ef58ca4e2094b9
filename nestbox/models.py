"""Shared dataclasses used across connection/query modules."""

from __future__ import annotations

import enum
from collections.abc import Mapping, Set
from dataclasses import dataclass, field
from typing import Any

from .errors import CannotBindArray

SchemaSnapshot = dict[str, dict[str, str]]
Row = dict[str, Any]


@dataclass(frozen=True, slots=True)
class ConnectionDescriptor:
    """Resolved parameters for the single live connection."""

    host: str
    user: str
    password: str
    database: str
    port: int = 3306


class ParamKind(enum.Enum):
    """Wire type a value is bound with."""

    INT = "int"
    BOOL = "bool"
    NULL = "null"
    TEXT = "text"


@dataclass(frozen=True, slots=True)
class BindValue:
    """A value paired with the wire type it should be bound as."""

    kind: ParamKind
    value: Any = None

    @classmethod
    def infer(cls, value: Any) -> BindValue:
        """Pick the wire type from a native Python value."""

        if isinstance(value, BindValue):
            _reject_collection(value.value)
            return value
        # bool is an int subclass, check it first
        if isinstance(value, bool):
            return cls(ParamKind.BOOL, value)
        if isinstance(value, int):
            return cls(ParamKind.INT, value)
        if value is None:
            return cls(ParamKind.NULL)
        _reject_collection(value)
        return cls(ParamKind.TEXT, value)


@dataclass(frozen=True, slots=True)
class QueryDescriptor:
    """SQL text plus the named parameters it references."""

    sql: str
    params: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    """Rows and counters read off a cursor right after execution."""

    columns: tuple[str, ...] = ()
    rows: list[Row] = field(default_factory=list)
    row_count: int = 0
    last_row_id: int | None = None


@dataclass(frozen=True, slots=True)
class StatementResult:
    """Outcome of one statement executed inside a transaction."""

    rows: list[Row]
    row_count: int
    last_insert_id: str


def _reject_collection(value: Any) -> None:
    if isinstance(value, (list, tuple, Set, Mapping)):
        raise CannotBindArray(f"Cannot bind {type(value).__name__} value; flatten it first.")


__all__ = [
    "BindValue",
    "ConnectionDescriptor",
    "ExecutionResult",
    "ParamKind",
    "QueryDescriptor",
    "Row",
    "SchemaSnapshot",
    "StatementResult",
]
