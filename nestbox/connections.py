"""Connection lifecycle for the single database handle."""

from __future__ import annotations

import dataclasses
import logging

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Connection, Engine, Transaction
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.elements import TextClause

from .config import ConnectionSettings
from .errors import ConnectionError, MissingConfig
from .models import ConnectionDescriptor, ExecutionResult

LOG = logging.getLogger(__name__)


class ConnectionManager:
    """Owns the live connection, its descriptor and the open transaction.

    Outside an explicit transaction every statement is committed as soon as it
    runs. ``begin()`` switches to a single explicit transaction that lasts
    until ``commit()``, ``rollback()`` or ``close()``.
    """

    _PROBE_QUERY = "SELECT 1"

    def __init__(
        self,
        defaults: ConnectionSettings | None = None,
        *,
        host: str | None = None,
        user: str | None = None,
        password: str | None = None,
        database: str | None = None,
        echo: bool = False,
    ) -> None:
        self._defaults = defaults or ConnectionSettings()
        self._echo = echo
        self._engine: Engine | None = None
        self._connection: Connection | None = None
        self._transaction: Transaction | None = None
        self._last_insert_id = "0"
        self._descriptor = self._build_descriptor(host, user, password, database)

    @property
    def descriptor(self) -> ConnectionDescriptor:
        """Parameters the next connection will be opened with."""

        return self._descriptor

    @property
    def database(self) -> str:
        return self._descriptor.database

    @property
    def connected(self) -> bool:
        """Whether a handle is currently held (not whether it is healthy)."""

        return self._connection is not None

    def configure(
        self,
        host: str | None = None,
        user: str | None = None,
        password: str | None = None,
        database: str | None = None,
    ) -> None:
        """Replace every connection field at once; blanks fall back to defaults."""

        self.close()
        self._descriptor = self._build_descriptor(host, user, password, database)

    def set_host(self, host: str | None = None) -> None:
        self._replace(host=self._resolve("host", host))

    def set_user(self, user: str | None = None) -> None:
        self._replace(user=self._resolve("user", user))

    def set_password(self, password: str | None = None) -> None:
        self._replace(password=self._resolve("password", password))

    def set_database(self, database: str | None = None) -> None:
        self._replace(database=self._resolve("database", database))

    def connect(self) -> bool:
        """Open a connection unless a healthy one is already held."""

        if self.check_connection():
            return True
        descriptor = self._descriptor
        url = URL.create(
            self._defaults.driver,
            username=descriptor.user,
            password=descriptor.password,
            host=descriptor.host,
            port=descriptor.port,
            database=descriptor.database,
            query={"charset": self._defaults.charset},
        )
        try:
            # PyMySQL interpolates parameters client side and returns native
            # Python types; SQLAlchemy raises on every driver error.
            self._engine = create_engine(
                url,
                echo=self._echo,
                connect_args={"connect_timeout": self._defaults.connect_timeout},
            )
            self._connection = self._engine.connect()
        except SQLAlchemyError as exc:
            self.close()
            raise ConnectionError(
                f"Failed to connect to '{descriptor.database}' on '{descriptor.host}': {exc}"
            ) from exc
        LOG.info("Connected to %s@%s/%s", descriptor.user, descriptor.host, descriptor.database)
        return True

    def check_connection(self) -> bool:
        """Probe the held connection; drop it if it no longer answers."""

        if self._connection is None:
            return False
        try:
            outcome = self.run(text(self._PROBE_QUERY))
        except SQLAlchemyError as exc:
            LOG.warning("Connection probe failed, reconnecting: %s", exc)
            self.close()
            return False
        value = next(iter(outcome.rows[0].values()), None) if outcome.rows else None
        if value != 1:
            LOG.warning("Connection probe returned %r, reconnecting", value)
            self.close()
            return False
        return True

    def close(self) -> bool:
        """Release the handle and its engine. Safe to call repeatedly."""

        connection, engine = self._connection, self._engine
        self._connection = None
        self._engine = None
        self._transaction = None
        if connection is not None:
            try:
                connection.close()
            except SQLAlchemyError as exc:  # pragma: no cover - best effort cleanup
                LOG.warning("Error while closing connection: %s", exc)
            LOG.info("Closed connection to %s", self._descriptor.host)
        if engine is not None:
            engine.dispose()
        return self._connection is None

    def run(self, clause: TextClause) -> ExecutionResult:
        """Execute ``clause`` on the held connection and materialize its result."""

        connection = self._require_connection()
        try:
            result = connection.execute(clause)
            row_count = result.rowcount
            last_row_id = result.lastrowid
            if result.returns_rows:
                columns = tuple(result.keys())
                rows = [dict(row) for row in result.mappings().all()]
            else:
                columns, rows = (), []
        except SQLAlchemyError:
            if self._transaction is None and connection.in_transaction():
                connection.rollback()
            raise
        if self._transaction is None:
            connection.commit()
        if last_row_id:
            self._last_insert_id = str(last_row_id)
        return ExecutionResult(
            columns=columns,
            rows=rows,
            row_count=row_count,
            last_row_id=last_row_id,
        )

    def last_insert_id(self) -> str:
        """Id generated by the most recent insert on this connection."""

        return self._last_insert_id

    def in_transaction(self) -> bool:
        return self._transaction is not None

    def begin(self) -> bool:
        """Start an explicit transaction; returns whether one is now open."""

        connection = self._require_connection()
        self._transaction = connection.begin()
        return self.in_transaction()

    def commit(self) -> bool:
        if self._transaction is None:
            return False
        self._transaction.commit()
        self._transaction = None
        return True

    def rollback(self) -> bool:
        if self._transaction is None:
            return False
        transaction, self._transaction = self._transaction, None
        transaction.rollback()
        return True

    def _require_connection(self) -> Connection:
        if self._connection is None:
            raise ConnectionError("No open database connection; call connect() first.")
        return self._connection

    def _replace(self, **changes: str) -> None:
        self.close()
        self._descriptor = dataclasses.replace(self._descriptor, **changes)

    def _build_descriptor(
        self,
        host: str | None,
        user: str | None,
        password: str | None,
        database: str | None,
    ) -> ConnectionDescriptor:
        return ConnectionDescriptor(
            host=self._resolve("host", host),
            user=self._resolve("user", user),
            password=self._resolve("password", password),
            database=self._resolve("database", database),
            port=self._defaults.port,
        )

    def _resolve(self, field: str, value: str | None) -> str:
        if value:
            return value
        default = getattr(self._defaults, field)
        if default:
            return default
        raise MissingConfig(field)


__all__ = ["ConnectionManager"]
