"""Prepared statement execution and result access."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.sql.elements import TextClause

from . import binding
from .connections import ConnectionManager
from .errors import EmptyQuery, QueryError
from .models import ExecutionResult, Row

LOG = logging.getLogger(__name__)


@dataclass(slots=True)
class Statement:
    """The one prepared statement held per connection."""

    sql: str
    clause: TextClause
    result: ExecutionResult | None = None


class StatementExecutor:
    """Prepares, binds and runs statements over a ConnectionManager."""

    def __init__(self, connections: ConnectionManager) -> None:
        self._connections = connections
        self._statement: Statement | None = None

    @property
    def statement(self) -> Statement | None:
        return self._statement

    def query_execute(
        self,
        query: str,
        params: Mapping[str, Any] | None = None,
        close: bool = False,
    ) -> bool:
        """Run ``query`` with its named parameters; returns True on success.

        Parameters whose placeholder does not appear in the query text are
        dropped before binding. With ``close`` the connection is released once
        the statement has run, whatever the outcome.
        """

        if not query or not query.strip():
            raise EmptyQuery("Empty query provided.")
        bound = filter_parameters(query, params) if params else {}
        self._connections.connect()
        try:
            self.prep(query, bound)
            return self.execute()
        finally:
            if close:
                self._connections.close()

    def prep(self, query: str, params: Mapping[str, Any] | None = None) -> bool:
        """Compile ``query`` and bind ``params``, replacing any previous statement."""

        self._statement = Statement(sql=query, clause=text(query))
        for name, value in (params or {}).items():
            self.bind(name, value)
        return True

    def bind(self, name: str, value: Any) -> bool:
        statement = self._require_statement()
        statement.clause = binding.bind(statement.clause, name, value)
        return True

    def execute(self) -> bool:
        statement = self._require_statement()
        LOG.debug("Executing SQL: %s", statement.sql)
        try:
            statement.result = self._connections.run(statement.clause)
        except DBAPIError as exc:
            raise _query_error(exc) from exc
        except SQLAlchemyError as exc:
            raise QueryError(str(exc)) from exc
        return True

    def results(self, first_only: bool = False) -> list[Row] | Row:
        """Rows of the last statement; the first row alone with ``first_only``."""

        rows = list(self._executed().rows)
        if first_only and rows:
            return rows[0]
        return rows

    def row_count(self) -> int:
        return self._executed().row_count

    def last_insert_id(self) -> str:
        return self._connections.last_insert_id()

    def key_pair(self) -> dict[Any, Any]:
        """Map the first selected column onto the second."""

        result = self._executed()
        if len(result.columns) < 2:
            raise QueryError("key_pair() needs a result set with two columns.")
        key, value = result.columns[0], result.columns[1]
        return {row[key]: row[value] for row in result.rows}

    def reset(self) -> None:
        """Forget the prepared statement (the connection went away)."""

        self._statement = None

    def _require_statement(self) -> Statement:
        if self._statement is None:
            raise QueryError("No statement has been prepared.")
        return self._statement

    def _executed(self) -> ExecutionResult:
        statement = self._statement
        if statement is None or statement.result is None:
            return ExecutionResult()
        return statement.result


def filter_parameters(query: str, params: Mapping[str, Any]) -> dict[str, Any]:
    """Drop parameters whose ``:name`` placeholder is not referenced in ``query``."""

    kept: dict[str, Any] = {}
    for name, value in params.items():
        key = binding.normalize_name(name)
        if re.search(rf"{binding.PLACEHOLDER_MARKER}{re.escape(key)}\b", query):
            kept[key] = value
    return kept


def _query_error(exc: DBAPIError) -> QueryError:
    original = exc.orig
    args = getattr(original, "args", ()) or ()
    code = args[0] if args and isinstance(args[0], int) else None
    message = str(args[1]) if len(args) > 1 else str(original)
    return QueryError(message, sqlstate=getattr(original, "sqlstate", None), code=code)


__all__ = ["Statement", "StatementExecutor", "filter_parameters"]
