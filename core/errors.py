"""Error taxonomy of the picture datasource.

All failures raised by the datasource derive from `DatasourceError`, so
callers can handle the whole family with one `except` clause. Operating
system errors are wrapped into a `DatasourceError` carrying the original
exception as `cause`.
"""

from __future__ import annotations


class DatasourceError(Exception):
    """Base error; also used for wrapped I/O failures."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class ConfigurationError(DatasourceError):
    """The datafile header or the datasource settings cannot be used."""


class PreconditionError(DatasourceError, ValueError):
    """An argument was rejected before any I/O took place."""


class RecordNotFoundError(DatasourceError):
    """No record with the requested identifier exists."""

    def __init__(self, record_id: int | None) -> None:
        super().__init__(f"Record not found: id={record_id}")
        self.record_id = record_id


class RecordParseError(DatasourceError, ValueError):
    """A raw field could not be converted to its typed value."""

    def __init__(self, column: str, value: str | None, cause: BaseException | None = None) -> None:
        super().__init__(f"Invalid value for column '{column}': {value!r}", cause)
        self.column = column
        self.value = value


class ProjectionStateError(DatasourceError):
    """A projection selector was used before a row was bound."""


class ConsistencyError(DatasourceError):
    """The datafile vanished while being replaced; manual recovery required."""
