"""The Nestbox facade: one connection, one statement, one transaction."""

from __future__ import annotations

import functools
import threading
from collections.abc import Mapping
from typing import Any, Callable, TypeVar

from . import builder
from .config import AppConfig, load_config
from .connections import ConnectionManager
from .models import ConnectionDescriptor, Row, StatementResult
from .query import StatementExecutor
from .schema import SchemaCache
from .transactions import Params, Queries, TransactionCoordinator

_F = TypeVar("_F", bound=Callable[..., Any])


def _synchronized(method: _F) -> _F:
    @functools.wraps(method)
    def wrapper(self: Nestbox, *args: Any, **kwargs: Any) -> Any:
        with self._lock:
            return method(self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]


class Nestbox:
    """Data-access facade over a single MySQL connection.

    Every public call holds an instance lock, so the shared statement handle
    and transaction state are never used by two threads at once.
    """

    def __init__(
        self,
        host: str | None = None,
        user: str | None = None,
        password: str | None = None,
        database: str | None = None,
        *,
        config: AppConfig | None = None,
    ) -> None:
        config = config or AppConfig()
        self._lock = threading.RLock()
        self._connections = ConnectionManager(
            config.connection,
            host=host,
            user=user,
            password=password,
            database=database,
            echo=config.echo_sql,
        )
        self._executor = StatementExecutor(self._connections)
        self._schema = SchemaCache(self._connections, self._executor)
        self._transactions = TransactionCoordinator(self._connections, self._executor)

    @classmethod
    def from_config(cls, config: AppConfig | None = None) -> Nestbox:
        """Build an instance from ``config`` or, if omitted, the config file."""

        return cls(config=config or load_config())

    def __enter__(self) -> Nestbox:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __del__(self) -> None:  # pragma: no cover - best effort cleanup
        try:
            self.close()
        except Exception:
            pass

    @property
    def descriptor(self) -> ConnectionDescriptor:
        return self._connections.descriptor

    @property
    def schema(self) -> SchemaCache:
        return self._schema

    # connection

    @_synchronized
    def configure(
        self,
        host: str | None = None,
        user: str | None = None,
        password: str | None = None,
        database: str | None = None,
    ) -> None:
        """Reset all connection details; blanks fall back to the configured defaults."""

        self._executor.reset()
        self._connections.configure(host, user, password, database)

    @_synchronized
    def set_db_host(self, host: str | None = None) -> None:
        self._executor.reset()
        self._connections.set_host(host)

    @_synchronized
    def set_db_user(self, user: str | None = None) -> None:
        self._executor.reset()
        self._connections.set_user(user)

    @_synchronized
    def set_db_pass(self, password: str | None = None) -> None:
        self._executor.reset()
        self._connections.set_password(password)

    @_synchronized
    def set_db_name(self, database: str | None = None) -> None:
        self._executor.reset()
        self._connections.set_database(database)

    @_synchronized
    def connect(self) -> bool:
        return self._connections.connect()

    @_synchronized
    def check_connection(self) -> bool:
        return self._connections.check_connection()

    @_synchronized
    def close(self) -> bool:
        self._executor.reset()
        return self._connections.close()

    # queries

    @_synchronized
    def query_execute(self, query: str, params: Params = None, close: bool = False) -> bool:
        return self._executor.query_execute(query, params, close)

    @_synchronized
    def results(self, first_only: bool = False) -> list[Row] | Row:
        return self._executor.results(first_only)

    @_synchronized
    def row_count(self) -> int:
        return self._executor.row_count()

    @_synchronized
    def last_insert_id(self) -> str:
        return self._executor.last_insert_id()

    @_synchronized
    def key_pair(self) -> dict[Any, Any]:
        return self._executor.key_pair()

    # transactions

    @_synchronized
    def transaction_execute(self, queries: Queries) -> list[StatementResult]:
        return self._transactions.transaction_execute(queries)

    @_synchronized
    def transaction(
        self,
        query: str,
        params: Params = None,
        commit: bool = False,
        close: bool = False,
    ) -> StatementResult:
        return self._transactions.transaction(query, params, commit, close)

    @_synchronized
    def rollback(self) -> bool:
        return self._transactions.rollback()

    # quick queries

    @_synchronized
    def insert(self, table: str, params: builder.InsertParams, upsert: bool = True) -> int:
        """Insert one row (mapping) or many (sequence of mappings); returns the row count."""

        rows, _ = builder.insert_rows(params)
        self._schema.require(table, rows[0])
        primary_key = self._schema.table_primary_key(table) if upsert else ""
        query = builder.build_insert(table, params, primary_key, upsert)
        if self._executor.query_execute(query.sql, query.params):
            return self._executor.row_count()
        return 0

    @_synchronized
    def update(
        self,
        table: str,
        params: Mapping[str, Any],
        where: Mapping[str, Any],
        conjunction: str = "AND",
        all_rows: bool = False,
    ) -> int:
        """Update matching rows; an empty ``where`` needs ``all_rows=True``."""

        self._schema.require(table, [*params, *where])
        query = builder.build_update(table, params, where, conjunction, all_rows)
        self._executor.query_execute(query.sql, query.params)
        return self._executor.row_count()

    @_synchronized
    def delete(
        self,
        table: str,
        where: Mapping[str, Any],
        conjunction: str = "AND",
        all_rows: bool = False,
    ) -> int:
        """Delete matching rows; an empty ``where`` needs ``all_rows=True``."""

        self._schema.require(table, where)
        query = builder.build_delete(table, where, conjunction, all_rows)
        self._executor.query_execute(query.sql, query.params)
        return self._executor.row_count()

    @_synchronized
    def select(
        self,
        table: str,
        where: Mapping[str, Any] | None = None,
        conjunction: str = "AND",
    ) -> list[Row]:
        """Every row of ``table`` matching ``where`` (all rows if it is empty)."""

        where = where or {}
        self._schema.require(table, where)
        query = builder.build_select(table, where, conjunction)
        self._executor.query_execute(query.sql, query.params)
        rows = self._executor.results()
        return rows if isinstance(rows, list) else [rows]

    # schema

    @_synchronized
    def load_table_schema(self) -> bool:
        return self._schema.load_table_schema()

    @_synchronized
    def valid_schema(self, table: str, column: str | None = None) -> bool:
        return self._schema.valid_schema(table, column)

    @_synchronized
    def valid_table(self, table: str) -> bool:
        return self._schema.valid_table(table)

    @_synchronized
    def valid_column(self, table: str, column: str) -> bool:
        return self._schema.valid_column(table, column)

    @_synchronized
    def table_primary_key(self, table: str) -> str:
        return self._schema.table_primary_key(table)


__all__ = ["Nestbox"]
