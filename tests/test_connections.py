"""Tests for the connection manager."""

from __future__ import annotations

import dataclasses
from typing import Any

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from conftest import FakeDatabase, FakeEngine, FakeResult
from nestbox.config import ConnectionSettings
from nestbox.connections import ConnectionManager
from nestbox.errors import ConnectionError, MissingConfig


def test_missing_field_without_default_raises() -> None:
    with pytest.raises(MissingConfig) as excinfo:
        ConnectionManager(ConnectionSettings(host="localhost", user="app", password="secret"))

    assert excinfo.value.field == "database"


def test_explicit_values_override_defaults(settings: ConnectionSettings) -> None:
    manager = ConnectionManager(settings, host="db.internal")

    assert manager.descriptor.host == "db.internal"
    assert manager.descriptor.user == "app"
    assert manager.database == "shop"


def test_descriptor_is_immutable(settings: ConnectionSettings) -> None:
    manager = ConnectionManager(settings)

    with pytest.raises(dataclasses.FrozenInstanceError):
        manager.descriptor.host = "elsewhere"  # type: ignore[misc]


def test_connect_builds_mysql_url(engines: list[FakeEngine], settings: ConnectionSettings) -> None:
    manager = ConnectionManager(settings)

    assert manager.connect() is True

    url = engines[0].url
    assert url.drivername == "mysql+pymysql"
    assert url.host == "localhost"
    assert url.username == "app"
    assert url.database == "shop"
    assert url.query["charset"] == "utf8mb4"
    assert engines[0].kwargs["connect_args"] == {"connect_timeout": 5.0}


def test_connect_reuses_healthy_connection(
    engines: list[FakeEngine], database: FakeDatabase, settings: ConnectionSettings
) -> None:
    manager = ConnectionManager(settings)

    manager.connect()
    manager.connect()

    assert len(engines) == 1
    assert database.executed[-1][0] == "SELECT 1"


def test_connect_replaces_dropped_connection(
    engines: list[FakeEngine], database: FakeDatabase, settings: ConnectionSettings
) -> None:
    manager = ConnectionManager(settings)
    manager.connect()
    database.connections[0].closed = True

    manager.connect()

    assert len(engines) == 2
    assert engines[0].disposed is True
    assert manager.check_connection() is True


def test_check_connection_without_handle_is_false(settings: ConnectionSettings) -> None:
    assert ConnectionManager(settings).check_connection() is False


def test_check_connection_drops_unexpected_probe_value(
    engines: list[FakeEngine], database: FakeDatabase, settings: ConnectionSettings
) -> None:
    manager = ConnectionManager(settings)
    manager.connect()
    database.probe_value = 0

    assert manager.check_connection() is False
    assert manager.connected is False
    assert database.connections[0].closed is True


def test_connect_wraps_driver_failure(monkeypatch: pytest.MonkeyPatch, settings: ConnectionSettings) -> None:
    def _broken(url: Any, **kwargs: Any) -> None:
        raise OperationalError("connect", {}, Exception(2003, "Can't connect to MySQL server"))

    monkeypatch.setattr("nestbox.connections.create_engine", _broken)
    manager = ConnectionManager(settings)

    with pytest.raises(ConnectionError) as excinfo:
        manager.connect()

    assert isinstance(excinfo.value.__cause__, OperationalError)
    assert manager.connected is False


def test_close_is_idempotent(engines: list[FakeEngine], database: FakeDatabase, settings: ConnectionSettings) -> None:
    manager = ConnectionManager(settings)
    manager.connect()

    assert manager.close() is True
    assert manager.close() is True
    assert database.connections[0].closed is True
    assert engines[0].disposed is True


def test_setters_close_connection_and_fall_back_to_defaults(
    engines: list[FakeEngine], settings: ConnectionSettings
) -> None:
    manager = ConnectionManager(settings, host="primary")
    manager.connect()

    manager.set_host()

    assert manager.connected is False
    assert manager.descriptor.host == "localhost"

    manager.set_database("archive")
    manager.set_user("reporter")
    manager.set_password("hunter2")

    assert manager.descriptor.user == "reporter"
    assert manager.descriptor.password == "hunter2"
    assert manager.database == "archive"


def test_setter_without_default_raises() -> None:
    manager = ConnectionManager(host="localhost", user="app", password="secret", database="shop")

    with pytest.raises(MissingConfig) as excinfo:
        manager.set_user("")

    assert excinfo.value.field == "user"


def test_configure_resets_every_field(settings: ConnectionSettings) -> None:
    manager = ConnectionManager(settings, host="primary", database="archive")

    manager.configure(user="reporter")

    assert manager.descriptor.host == "localhost"
    assert manager.descriptor.database == "shop"
    assert manager.descriptor.user == "reporter"


def test_statements_commit_immediately_outside_transactions(
    engines: list[FakeEngine], database: FakeDatabase, settings: ConnectionSettings
) -> None:
    manager = ConnectionManager(settings)
    manager.connect()

    manager.run(text("DELETE FROM `tags`"))

    assert database.committed == ["DELETE FROM `tags`"]
    assert manager.in_transaction() is False


def test_statements_inside_transaction_wait_for_commit(
    engines: list[FakeEngine], database: FakeDatabase, settings: ConnectionSettings
) -> None:
    manager = ConnectionManager(settings)
    manager.connect()

    assert manager.begin() is True
    manager.run(text("DELETE FROM `tags`"))

    assert database.committed == []
    assert manager.in_transaction() is True
    assert manager.commit() is True
    assert database.committed == ["DELETE FROM `tags`"]
    assert manager.in_transaction() is False


def test_rollback_only_when_transaction_open(
    engines: list[FakeEngine], database: FakeDatabase, settings: ConnectionSettings
) -> None:
    manager = ConnectionManager(settings)
    manager.connect()

    assert manager.rollback() is False

    manager.begin()
    manager.run(text("DELETE FROM `tags`"))

    assert manager.rollback() is True
    assert database.committed == []
    assert manager.commit() is False


def test_run_returns_rows_and_counters(
    engines: list[FakeEngine], database: FakeDatabase, settings: ConnectionSettings
) -> None:
    database.on("FROM `users`", FakeResult([{"id": 1, "name": "ada"}, {"id": 2, "name": "bob"}]))
    manager = ConnectionManager(settings)
    manager.connect()

    outcome = manager.run(text("SELECT `id`, `name` FROM `users`"))

    assert outcome.columns == ("id", "name")
    assert outcome.rows == [{"id": 1, "name": "ada"}, {"id": 2, "name": "bob"}]
    assert outcome.row_count == 2


def test_last_insert_id_survives_later_statements(
    engines: list[FakeEngine], database: FakeDatabase, settings: ConnectionSettings
) -> None:
    database.on("INSERT", FakeResult(rowcount=1, lastrowid=42))
    manager = ConnectionManager(settings)
    manager.connect()

    assert manager.last_insert_id() == "0"
    manager.run(text("INSERT INTO `tags` (`name`) VALUES ('sql')"))
    manager.run(text("SELECT 1"))

    assert manager.last_insert_id() == "42"
