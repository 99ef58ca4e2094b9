"""SQL synthesis for the quick-query helpers.

Table and column names cannot be bound as parameters, so they are spliced
into the SQL text. Every name goes through ``quote_identifier`` and callers
must have validated it against the schema cache first; values always travel
as named parameters.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from .errors import InvalidParameters, UnrestrictedQuery
from .models import QueryDescriptor

CONJUNCTIONS = ("AND", "OR")
UPSERT_ALIAS = "new"
SET_PREFIX = "set_"
WHERE_PREFIX = "where_"

InsertParams = Mapping[str, Any] | Sequence[Mapping[str, Any]]


def quote_identifier(name: str) -> str:
    """Backtick-quote a table or column name."""

    cleaned = name.strip() if isinstance(name, str) else ""
    if not cleaned or "`" in cleaned:
        raise InvalidParameters(f"Refusing to quote identifier {name!r}.")
    return f"`{cleaned}`"


def normalize_conjunction(conjunction: str | None) -> str:
    """AND or OR; anything else falls back to AND."""

    value = conjunction.strip().upper() if isinstance(conjunction, str) else ""
    return value if value in CONJUNCTIONS else "AND"


def insert_rows(params: InsertParams) -> tuple[list[dict[str, Any]], bool]:
    """Split insert input into rows; the flag is True for multi-row input."""

    if isinstance(params, Mapping):
        if not params:
            raise InvalidParameters("Cannot insert a row without columns.")
        return [dict(params)], False
    if isinstance(params, (str, bytes)) or not isinstance(params, Sequence):
        raise InvalidParameters("Insert expects a mapping or a sequence of mappings.")
    rows = list(params)
    if not rows:
        raise InvalidParameters("Cannot insert an empty sequence of rows.")
    if not all(isinstance(row, Mapping) for row in rows):
        raise InvalidParameters("Every row of a multi-row insert must be a mapping.")
    columns = list(rows[0])
    if not columns:
        raise InvalidParameters("Cannot insert a row without columns.")
    for index, row in enumerate(rows[1:], start=1):
        if set(row) != set(columns):
            raise InvalidParameters(f"Row {index} does not have the same columns as row 0.")
    return [dict(row) for row in rows], True


def build_insert(
    table: str,
    params: InsertParams,
    primary_key: str = "",
    upsert: bool = True,
) -> QueryDescriptor:
    """INSERT for one row or many; with ``upsert`` every non-key column is updated on conflict."""

    rows, many = insert_rows(params)
    columns = list(rows[0])
    table_sql = quote_identifier(table)
    column_sql = ",".join(quote_identifier(column) for column in columns)

    bound: dict[str, Any] = {}
    if many:
        tuples: list[str] = []
        for index, row in enumerate(rows):
            names = [f"{column}_{index}" for column in columns]
            tuples.append("(" + ",".join(f":{name}" for name in names) + ")")
            bound.update({name: row[column] for name, column in zip(names, columns)})
        values_sql = ",".join(tuples)
    else:
        values_sql = "(" + ",".join(f":{column}" for column in columns) + ")"
        bound.update(rows[0])

    sql = f"INSERT INTO {table_sql} ({column_sql}) VALUES {values_sql}"
    if upsert:
        updatable = [column for column in columns if column != primary_key]
        if not updatable:
            # only the key was given: re-assign it so a duplicate is a no-op
            key = quote_identifier(primary_key)
            sql += f" ON DUPLICATE KEY UPDATE {key} = {key}"
        elif many:
            alias = quote_identifier(UPSERT_ALIAS)
            updates = ",".join(
                f"{table_sql}.{quote_identifier(column)} = {alias}.{quote_identifier(column)}"
                for column in updatable
            )
            sql += f" AS {alias} ON DUPLICATE KEY UPDATE {updates}"
        else:
            updates = ",".join(f"{quote_identifier(column)} = :{column}" for column in updatable)
            sql += f" ON DUPLICATE KEY UPDATE {updates}"
    return QueryDescriptor(sql=sql, params=bound)


def build_where(
    where: Mapping[str, Any],
    conjunction: str = "AND",
    prefix: str = "",
) -> tuple[str, dict[str, Any]]:
    """``col = :col`` comparisons joined by the conjunction; None compares with IS NULL."""

    joiner = f" {normalize_conjunction(conjunction)} "
    clauses: list[str] = []
    bound: dict[str, Any] = {}
    for column, value in where.items():
        if value is None:
            clauses.append(f"{quote_identifier(column)} IS NULL")
            continue
        name = f"{prefix}{column}"
        clauses.append(f"{quote_identifier(column)} = :{name}")
        bound[name] = value
    return joiner.join(clauses), bound


def build_update(
    table: str,
    params: Mapping[str, Any],
    where: Mapping[str, Any],
    conjunction: str = "AND",
    all_rows: bool = False,
) -> QueryDescriptor:
    if not params:
        raise InvalidParameters(f"Nothing to update in {table}.")
    assignments = ",".join(
        f"{quote_identifier(column)} = :{SET_PREFIX}{column}" for column in params
    )
    sql = f"UPDATE {quote_identifier(table)} SET {assignments}"
    bound = {f"{SET_PREFIX}{column}": value for column, value in params.items()}
    # SET and WHERE placeholders use distinct prefixes so no column name can collide
    restriction, where_params = _restrict(table, where, conjunction, all_rows, prefix=WHERE_PREFIX)
    bound.update(where_params)
    return QueryDescriptor(sql=sql + restriction, params=bound)


def build_delete(
    table: str,
    where: Mapping[str, Any],
    conjunction: str = "AND",
    all_rows: bool = False,
) -> QueryDescriptor:
    restriction, bound = _restrict(table, where, conjunction, all_rows)
    return QueryDescriptor(sql=f"DELETE FROM {quote_identifier(table)}{restriction}", params=bound)


def build_select(
    table: str,
    where: Mapping[str, Any],
    conjunction: str = "AND",
) -> QueryDescriptor:
    restriction, bound = _restrict(table, where, conjunction, all_rows=True)
    return QueryDescriptor(sql=f"SELECT * FROM {quote_identifier(table)}{restriction}", params=bound)


def _restrict(
    table: str,
    where: Mapping[str, Any],
    conjunction: str,
    all_rows: bool,
    prefix: str = "",
) -> tuple[str, dict[str, Any]]:
    if not where:
        if not all_rows:
            raise UnrestrictedQuery(
                f"Refusing to touch every row of {table} without all_rows=True."
            )
        return "", {}
    clause, bound = build_where(where, conjunction, prefix)
    return f" WHERE {clause}", bound


__all__ = [
    "CONJUNCTIONS",
    "InsertParams",
    "build_delete",
    "build_insert",
    "build_select",
    "build_update",
    "build_where",
    "insert_rows",
    "normalize_conjunction",
    "quote_identifier",
]
