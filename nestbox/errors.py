"""Exception hierarchy raised by nestbox."""

from __future__ import annotations


class NestboxError(RuntimeError):
    """Base class for every error raised by nestbox."""


class MissingConfig(NestboxError):
    """Raised when a required connection field has no value and no default."""

    def __init__(self, field: str) -> None:
        super().__init__(f"Missing database {field}.")
        self.field = field


class ConnectionError(NestboxError):
    """Raised when the driver cannot open a connection."""


class EmptyQuery(NestboxError):
    """Raised when an empty or whitespace-only query is submitted."""


class InvalidTable(NestboxError):
    """Raised when a table is not present in the schema cache."""

    def __init__(self, table: str, message: str | None = None) -> None:
        super().__init__(message or f"Invalid table: {table}")
        self.table = table


class InvalidColumn(NestboxError):
    """Raised when a column is not present in its table."""

    def __init__(self, table: str, column: str, message: str | None = None) -> None:
        super().__init__(message or f"Invalid column: {table}.{column}")
        self.table = table
        self.column = column


class InvalidParameters(NestboxError, ValueError):
    """Raised when builder input has the wrong shape."""


class UnrestrictedQuery(NestboxError):
    """Raised when an update/delete would touch every row without opting in."""


class CannotBindArray(NestboxError):
    """Raised when a sequence or mapping is bound to a single placeholder."""


class BindFailure(NestboxError):
    """Raised when the driver rejects a parameter binding."""

    def __init__(self, name: str, value: object, reason: str = "") -> None:
        message = f"Failed to bind {value!r} to :{name}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.name = name
        self.value = value


class QueryError(NestboxError):
    """Raised when a statement fails to execute."""

    def __init__(self, message: str, *, sqlstate: str | None = None, code: int | None = None) -> None:
        prefix = f"MySQL error {code}" if code is not None else "Query error"
        suffix = f" ({sqlstate})" if sqlstate else ""
        super().__init__(f"{prefix}: {message}{suffix}")
        self.message = message
        self.sqlstate = sqlstate
        self.code = code


class TransactionInProgress(NestboxError):
    """Raised when a transaction is opened while another is still open."""


class TransactionFailure(NestboxError):
    """Raised when any step of a transaction fails; wraps the original error."""

    def __init__(self, message: str, original: BaseException | None = None) -> None:
        super().__init__(message)
        self.original = original


class TransactionBeginFailed(TransactionFailure):
    """Raised when a transaction could not be started."""


class TransactionCommitFailed(TransactionFailure):
    """Raised when a transaction could not be committed."""


class TransactionRollbackFailed(TransactionFailure):
    """Raised when rolling back after a failure fails as well."""

    def __init__(self, original: BaseException, rollback_error: BaseException) -> None:
        super().__init__(
            f"{original} -- AND -- Failed to rollback database transaction: {rollback_error}",
            original,
        )
        self.rollback_error = rollback_error


__all__ = [
    "BindFailure",
    "CannotBindArray",
    "ConnectionError",
    "EmptyQuery",
    "InvalidColumn",
    "InvalidParameters",
    "InvalidTable",
    "MissingConfig",
    "NestboxError",
    "QueryError",
    "TransactionBeginFailed",
    "TransactionCommitFailed",
    "TransactionFailure",
    "TransactionInProgress",
    "TransactionRollbackFailed",
    "UnrestrictedQuery",
]
