"""Cached view of the database catalog used to validate identifiers."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from .connections import ConnectionManager
from .errors import InvalidColumn, InvalidTable, QueryError
from .models import SchemaSnapshot
from .query import StatementExecutor

LOG = logging.getLogger(__name__)


class SchemaCache:
    """Table -> column -> data type snapshot loaded from INFORMATION_SCHEMA."""

    _METADATA_QUERY = """
        SELECT `TABLE_NAME` AS table_name, `COLUMN_NAME` AS column_name, `DATA_TYPE` AS data_type
        FROM `INFORMATION_SCHEMA`.`COLUMNS`
        WHERE `TABLE_SCHEMA` = :database_name
        ORDER BY `TABLE_NAME`, `ORDINAL_POSITION`
    """

    _PRIMARY_KEY_QUERY = """
        SELECT `COLUMN_NAME` AS column_name
        FROM `INFORMATION_SCHEMA`.`KEY_COLUMN_USAGE`
        WHERE `TABLE_SCHEMA` = :database_name
          AND `TABLE_NAME` = :table_name
          AND `CONSTRAINT_NAME` = 'PRIMARY'
        ORDER BY `ORDINAL_POSITION`
    """

    def __init__(self, connections: ConnectionManager, executor: StatementExecutor) -> None:
        self._connections = connections
        self._executor = executor
        self._tables: SchemaSnapshot = {}

    @property
    def tables(self) -> tuple[str, ...]:
        return tuple(self._tables)

    def columns(self, table: str) -> tuple[str, ...]:
        return tuple(self._tables.get(table, {}))

    def column_type(self, table: str, column: str) -> str | None:
        return self._tables.get(table, {}).get(column)

    def snapshot(self) -> SchemaSnapshot:
        """Copy of the cached catalog."""

        return {table: dict(columns) for table, columns in self._tables.items()}

    def load_table_schema(self) -> bool:
        """Rebuild the cache from the catalog; False if the catalog query fails."""

        try:
            self._executor.query_execute(
                self._METADATA_QUERY,
                {"database_name": self._connections.database},
            )
        except QueryError as exc:
            LOG.warning("Failed to load schema for '%s': %s", self._connections.database, exc)
            return False
        tables: SchemaSnapshot = {}
        for row in self._executor.results():
            tables.setdefault(str(row["table_name"]), {})[str(row["column_name"])] = str(row["data_type"])
        self._tables = tables
        LOG.debug("Loaded schema: %d tables", len(tables))
        return True

    def valid_schema(self, table: str, column: str | None = None) -> bool:
        """Reload the catalog, then check the table and optionally one of its columns."""

        self.load_table_schema()
        return self._contains(table, column)

    def valid_table(self, table: str) -> bool:
        """Check the cache, reloading once on a miss in case the schema changed."""

        if not self._tables:
            self.load_table_schema()
        if self._contains(table):
            return True
        self.load_table_schema()
        return self._contains(table)

    def valid_column(self, table: str, column: str) -> bool:
        return self.valid_schema(table, column)

    def require(self, table: str, columns: Iterable[str] = ()) -> None:
        """Reload once and raise for the first unknown table or column."""

        self.load_table_schema()
        if not self._contains(table):
            raise InvalidTable(table)
        for column in columns:
            if not self._contains(table, column):
                raise InvalidColumn(table, column)

    def table_primary_key(self, table: str) -> str:
        """Name of the table's primary key column, or ``""`` if it has none."""

        if not self.valid_schema(table):
            raise InvalidTable(table, f"Cannot get primary key of invalid table: {table}")
        executed = self._executor.query_execute(
            self._PRIMARY_KEY_QUERY,
            {"database_name": self._connections.database, "table_name": table.strip()},
        )
        if not executed:
            return ""
        row = self._executor.results(first_only=True)
        if not row:
            return ""
        return str(row["column_name"])

    def _contains(self, table: str, column: str | None = None) -> bool:
        columns = self._tables.get(table.strip() if table else table)
        if columns is None:
            return False
        if column is None:
            return True
        return column.strip() in columns


__all__ = ["SchemaCache"]
