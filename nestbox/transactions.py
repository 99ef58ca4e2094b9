"""All-or-nothing statement sequences over the single connection."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from .connections import ConnectionManager
from .errors import (
    ConnectionError,
    EmptyQuery,
    TransactionBeginFailed,
    TransactionCommitFailed,
    TransactionFailure,
    TransactionInProgress,
    TransactionRollbackFailed,
)
from .models import StatementResult
from .query import StatementExecutor, filter_parameters

LOG = logging.getLogger(__name__)

Params = Mapping[str, Any] | None
Queries = Mapping[str, Params] | Iterable[tuple[str, Params]]


class TransactionCoordinator:
    """Runs statements inside begin/commit with rollback on any failure."""

    def __init__(self, connections: ConnectionManager, executor: StatementExecutor) -> None:
        self._connections = connections
        self._executor = executor

    def transaction_execute(self, queries: Queries) -> list[StatementResult]:
        """Run every statement in one transaction and return what each produced.

        ``queries`` maps SQL text to its parameters. A sequence of
        ``(sql, params)`` pairs is accepted too, for batches that repeat the
        same SQL. A connection failure is raised as ``TransactionFailure`` too.
        """

        try:
            self._connections.connect()
        except ConnectionError as exc:
            raise TransactionFailure(str(exc), exc) from exc
        if self._connections.in_transaction():
            raise TransactionInProgress(
                "Unable to start new transaction while one is already in progress."
            )
        try:
            self._begin()
            results = [self._run(query, params) for query, params in _statements(queries)]
            self._commit()
        except Exception as exc:
            try:
                self._connections.rollback()
            except SQLAlchemyError as rollback_error:
                LOG.warning("Rollback after failed transaction also failed: %s", rollback_error)
            if isinstance(exc, TransactionFailure):
                raise
            raise TransactionFailure(str(exc), exc) from exc
        return results

    def transaction(
        self,
        query: str,
        params: Params = None,
        commit: bool = False,
        close: bool = False,
    ) -> StatementResult:
        """Run one statement of an incremental transaction, opening it if needed.

        The transaction stays open until a call with ``commit=True``. ``close``
        releases the connection after that commit.
        """

        try:
            if not self._connections.in_transaction():
                self._connections.connect()
                self._begin()
            result = self._run(query, params)
            if commit:
                self._commit()
        except Exception as exc:
            try:
                self._connections.rollback()
            except SQLAlchemyError as rollback_error:
                raise TransactionRollbackFailed(exc, rollback_error) from rollback_error
            if isinstance(exc, TransactionFailure):
                raise
            raise TransactionFailure(str(exc), exc) from exc
        if commit and close:
            self._connections.close()
        return result

    def rollback(self) -> bool:
        """Roll back the open transaction; False when none was open."""

        return self._connections.rollback()

    def _begin(self) -> None:
        try:
            began = self._connections.begin()
        except SQLAlchemyError as exc:
            raise TransactionBeginFailed(f"Failed to begin new transaction: {exc}", exc) from exc
        if not began:
            raise TransactionBeginFailed("Failed to begin new transaction.")

    def _commit(self) -> None:
        try:
            committed = self._connections.commit()
        except SQLAlchemyError as exc:
            raise TransactionCommitFailed(f"Failed to commit transaction: {exc}", exc) from exc
        if not committed:
            raise TransactionCommitFailed("Failed to commit transaction.")

    def _run(self, query: str, params: Params) -> StatementResult:
        if not query or not query.strip():
            raise EmptyQuery("Empty query provided.")
        self._executor.prep(query, filter_parameters(query, params) if params else None)
        self._executor.execute()
        rows = self._executor.results()
        return StatementResult(
            rows=rows if isinstance(rows, list) else [rows],
            row_count=self._executor.row_count(),
            last_insert_id=self._executor.last_insert_id(),
        )


def _statements(queries: Queries) -> Iterable[tuple[str, Params]]:
    if isinstance(queries, Mapping):
        return queries.items()
    return queries


__all__ = ["TransactionCoordinator"]
