"""Bind native Python values to named placeholders of a text statement."""

from __future__ import annotations

from typing import Any

from sqlalchemy import bindparam
from sqlalchemy.exc import ArgumentError
from sqlalchemy.sql.elements import TextClause
from sqlalchemy.types import Boolean, Integer, NullType, String, TypeEngine

from .errors import BindFailure, CannotBindArray
from .models import BindValue, ParamKind

PLACEHOLDER_MARKER = ":"

_WIRE_TYPES: dict[ParamKind, type[TypeEngine]] = {
    ParamKind.INT: Integer,
    ParamKind.BOOL: Boolean,
    ParamKind.NULL: NullType,
    ParamKind.TEXT: String,
}


def normalize_name(name: str) -> str:
    """Accept ``:name`` or ``name`` and return the bare placeholder name."""

    return name[len(PLACEHOLDER_MARKER):] if name.startswith(PLACEHOLDER_MARKER) else name


def to_bind_value(name: str, value: Any) -> BindValue:
    try:
        return BindValue.infer(value)
    except CannotBindArray as exc:
        raise CannotBindArray(f"Cannot bind array type to {PLACEHOLDER_MARKER}{name}") from exc


def bind(statement: TextClause, name: str, value: Any) -> TextClause:
    """Return ``statement`` with ``value`` bound to placeholder ``name``."""

    key = normalize_name(name)
    typed = to_bind_value(key, value)
    try:
        return statement.bindparams(bindparam(key, typed.value, type_=_WIRE_TYPES[typed.kind]()))
    except ArgumentError as exc:
        raise BindFailure(key, typed.value, typed.kind.value) from exc


__all__ = ["PLACEHOLDER_MARKER", "bind", "normalize_name", "to_bind_value"]
