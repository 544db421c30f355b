"""Core service interfaces and shared data structures.

This module defines the datasource contract and the explicit outcome of
mutating operations used by the infrastructure layer and the CLI.
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass
from enum import Enum

from core.errors import RecordNotFoundError, RecordParseError
from core.models import Picture


class MutationStatus(Enum):
    """Tag of a `MutationResult`."""

    UPDATED = "updated"
    DELETED = "deleted"
    NOT_FOUND = "not_found"
    PARSE_ERROR = "parse_error"


@dataclass
class MutationResult:
    """Outcome of an update or delete.

    Attributes:
        status: What happened to the targeted record.
        record_id: Identifier the operation targeted.
        error: Parse failure of the matched row, for `PARSE_ERROR` results.
    """

    status: MutationStatus
    record_id: int | None
    error: RecordParseError | None = None

    @property
    def ok(self) -> bool:
        """True if the datafile was rewritten."""
        return self.status in (MutationStatus.UPDATED, MutationStatus.DELETED)

    def raise_for_status(self) -> None:
        """Raise the matching datasource error for failed outcomes."""
        if self.status is MutationStatus.NOT_FOUND:
            raise RecordNotFoundError(self.record_id)
        if self.status is MutationStatus.PARSE_ERROR and self.error is not None:
            raise self.error


class PictureDatasource:
    """Interface for picture persistence backends."""

    def insert(self, picture: Picture) -> Picture:
        """Store `picture` under a newly assigned id and return it."""
        raise NotImplementedError

    def update(self, picture: Picture) -> MutationResult:
        """Overwrite the stored record carrying `picture.id`."""
        raise NotImplementedError

    def delete(self, picture: Picture) -> MutationResult:
        """Remove the stored record carrying `picture.id`."""
        raise NotImplementedError

    def count(self) -> int:
        """Return the number of stored records."""
        raise NotImplementedError

    def find_by_id(self, record_id: int) -> Picture | None:
        """Return the record with `record_id`, or None."""
        raise NotImplementedError

    def find_all(self) -> Collection[Picture]:
        """Return all readable records in storage order."""
        raise NotImplementedError

    def find_by_position(
        self, longitude: float, latitude: float, deviation: float
    ) -> Collection[Picture]:
        """Return records inside the square of half-width `deviation` around a point."""
        raise NotImplementedError
