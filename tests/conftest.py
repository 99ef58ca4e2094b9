"""Fake SQLAlchemy engine/connection pair shared by the test suite."""

from __future__ import annotations

from typing import Any, Callable

import pytest
from sqlalchemy.exc import InvalidRequestError, OperationalError

from nestbox.config import AppConfig, ConnectionSettings
from nestbox.session import Nestbox

CATALOG = {
    "users": {"id": "int", "name": "varchar", "email": "varchar", "active": "tinyint"},
    "posts": {"id": "int", "user_id": "int", "title": "varchar"},
    "tags": {"name": "varchar"},
}
PRIMARY_KEYS = {"users": "id", "posts": "id"}


class FakeDriverError(Exception):
    """Stands in for a PyMySQL error: args are (errno, message)."""


def driver_error(code: int = 1064, message: str = "You have an error in your SQL syntax") -> OperationalError:
    return OperationalError("statement", {}, FakeDriverError(code, message))


class FakeResult:
    def __init__(
        self,
        rows: list[dict[str, Any]] | None = None,
        *,
        columns: tuple[str, ...] | None = None,
        rowcount: int | None = None,
        lastrowid: int = 0,
    ) -> None:
        self._rows = [dict(row) for row in rows] if rows is not None else None
        if columns is None and self._rows:
            columns = tuple(self._rows[0])
        self._columns = columns or ()
        self.rowcount = rowcount if rowcount is not None else len(self._rows or [])
        self.lastrowid = lastrowid

    @property
    def returns_rows(self) -> bool:
        return self._rows is not None

    def keys(self) -> list[str]:
        return list(self._columns)

    def mappings(self) -> FakeResult:
        return self

    def all(self) -> list[dict[str, Any]]:
        return list(self._rows or [])


Response = FakeResult | Exception | Callable[[str, dict[str, Any]], FakeResult]


class FakeDatabase:
    """Scripted server: answers catalog queries and records everything else."""

    def __init__(self) -> None:
        self.catalog: dict[str, dict[str, str]] = {table: dict(cols) for table, cols in CATALOG.items()}
        self.primary_keys = dict(PRIMARY_KEYS)
        self.executed: list[tuple[str, dict[str, Any]]] = []
        self.pending: list[str] = []
        self.committed: list[str] = []
        self.probe_value: object = 1
        self.catalog_error: Exception | None = None
        self.fail_commit = False
        self.fail_rollback = False
        self.connections: list[FakeConnection] = []
        self._responses: list[tuple[str, Response]] = []

    def on(self, needle: str, response: Response) -> None:
        """Answer statements containing ``needle`` with ``response``."""

        self._responses.append((needle, response))

    @property
    def statements(self) -> list[str]:
        """Executed SQL except connection probes and catalog lookups."""

        return [sql for sql, _ in self.executed if not _is_internal(sql)]

    def last(self) -> tuple[str, dict[str, Any]]:
        return [entry for entry in self.executed if not _is_internal(entry[0])][-1]

    def handle(self, sql: str, params: dict[str, Any]) -> FakeResult:
        self.executed.append((sql, params))
        if sql.strip() == "SELECT 1":
            return FakeResult([{"1": self.probe_value}])
        if "`INFORMATION_SCHEMA`.`COLUMNS`" in sql:
            if self.catalog_error is not None:
                raise self.catalog_error
            assert params["database_name"] == "shop"
            return FakeResult(
                [
                    {"table_name": table, "column_name": column, "data_type": data_type}
                    for table, columns in self.catalog.items()
                    for column, data_type in columns.items()
                ],
                columns=("table_name", "column_name", "data_type"),
            )
        if "`KEY_COLUMN_USAGE`" in sql:
            key = self.primary_keys.get(params["table_name"])
            return FakeResult([{"column_name": key}] if key else [], columns=("column_name",))
        for needle, response in self._responses:
            if needle in sql:
                if isinstance(response, Exception):
                    raise response
                result = response(sql, params) if callable(response) else response
                break
        else:
            result = FakeResult(rowcount=1)
        self.pending.append(sql)
        return result

    def commit(self) -> None:
        self.committed.extend(self.pending)
        self.pending.clear()

    def rollback(self) -> None:
        self.pending.clear()


class FakeTransaction:
    def __init__(self, connection: FakeConnection) -> None:
        self._connection = connection
        self.is_active = True

    def commit(self) -> None:
        if self._connection.database.fail_commit:
            raise driver_error(1180, "Got error 1 during COMMIT")
        self.is_active = False
        self._connection.database.commit()
        self._connection.transaction = None

    def rollback(self) -> None:
        if self._connection.database.fail_rollback:
            raise driver_error(2013, "Lost connection to MySQL server during query")
        self.is_active = False
        self._connection.transaction = None
        self._connection.database.rollback()


class FakeConnection:
    """Mimics SQLAlchemy 2.0 autobegin semantics."""

    def __init__(self, database: FakeDatabase) -> None:
        self.database = database
        self.transaction: FakeTransaction | None = None
        self.autobegun = False
        self.closed = False

    def execute(self, clause: Any) -> FakeResult:
        if self.closed:
            raise driver_error(2006, "MySQL server has gone away")
        if self.transaction is None:
            self.autobegun = True
        return self.database.handle(str(clause), dict(clause.compile().params))

    def in_transaction(self) -> bool:
        return self.autobegun or self.transaction is not None

    def begin(self) -> FakeTransaction:
        if self.in_transaction():
            raise InvalidRequestError("a transaction is already begun for this connection")
        self.transaction = FakeTransaction(self)
        return self.transaction

    def commit(self) -> None:
        self.autobegun = False
        self.database.commit()

    def rollback(self) -> None:
        self.autobegun = False
        self.database.rollback()

    def close(self) -> None:
        self.closed = True
        self.database.pending.clear()


class FakeEngine:
    def __init__(self, database: FakeDatabase, url: Any, kwargs: dict[str, Any]) -> None:
        self.database = database
        self.url = url
        self.kwargs = kwargs
        self.disposed = False

    def connect(self) -> FakeConnection:
        connection = FakeConnection(self.database)
        self.database.connections.append(connection)
        return connection

    def dispose(self) -> None:
        self.disposed = True


def _is_internal(sql: str) -> bool:
    return sql.strip() == "SELECT 1" or "INFORMATION_SCHEMA" in sql


@pytest.fixture
def database() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def engines(monkeypatch: pytest.MonkeyPatch, database: FakeDatabase) -> list[FakeEngine]:
    created: list[FakeEngine] = []

    def _create_engine(url: Any, **kwargs: Any) -> FakeEngine:
        engine = FakeEngine(database, url, kwargs)
        created.append(engine)
        return engine

    monkeypatch.setattr("nestbox.connections.create_engine", _create_engine)
    return created


@pytest.fixture
def settings() -> ConnectionSettings:
    return ConnectionSettings(host="localhost", user="app", password="secret", database="shop")


@pytest.fixture
def db(engines: list[FakeEngine], settings: ConnectionSettings) -> Nestbox:
    return Nestbox(config=AppConfig(connection=settings))
