"""Typed view over raw datafile rows.

A `PictureProjection` maps the required column names to their positions in
the header and reads or writes typed picture fields through that mapping.
Projections are immutable: `bind` returns a new projection that shares the
column mapping and holds one row.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime
import math
from typing import TypeVar

from core.errors import (
    ConfigurationError,
    PreconditionError,
    ProjectionStateError,
    RecordParseError,
)
from core.models import Picture
from infrastructure.utils import (
    CSV_DT_FMT,
    format_coordinate,
    format_csv_datetime,
    parse_coordinate,
    parse_csv_datetime,
    parse_record_id,
    parse_url,
)

COL_ID = "id"
COL_DATE = "date"
COL_LONGITUDE = "longitude"
COL_LATITUDE = "latitude"
COL_TITLE = "title"
COL_URL = "url"

HEADER_COLUMNS = (COL_ID, COL_DATE, COL_LONGITUDE, COL_LATITUDE, COL_TITLE, COL_URL)

Row = tuple[str, ...]
T = TypeVar("T")


class PictureProjection:
    """Column mapping plus typed accessors for one bound row."""

    def __init__(
        self,
        header: Sequence[str],
        indexes: dict[str, int],
        date_format: str = CSV_DT_FMT,
        row: Row | None = None,
    ) -> None:
        self._header = tuple(header)
        self._indexes = indexes
        self._date_format = date_format
        self._row = row

    @classmethod
    def create(cls, date_format: str, header: Sequence[str]) -> PictureProjection:
        """Build an unbound projection for `header`.

        Raises:
            ConfigurationError: If a required column is missing.
        """
        missing = [c for c in HEADER_COLUMNS if c not in header]
        if missing:
            raise ConfigurationError(f"Header missing required columns: {missing}")
        indexes = {c: list(header).index(c) for c in HEADER_COLUMNS}
        return cls(header, indexes, date_format)

    @property
    def header(self) -> Row:
        return self._header

    @property
    def row(self) -> Row:
        if self._row is None:
            raise ProjectionStateError("Raw data not set")
        return self._row

    def bind(self, row: Sequence[str]) -> PictureProjection:
        """Return a projection over the same header bound to `row`."""
        if row is None:
            raise PreconditionError("row must not be None")
        return PictureProjection(self._header, self._indexes, self._date_format, tuple(row))

    def blank_row(self) -> Row:
        """Row with every column empty, for records not yet in the file."""
        return ("",) * len(self._header)

    # selectors

    def _select(self, column: str, parse: Callable[[str], T]) -> T:
        row = self.row
        idx = self._indexes[column]
        raw = row[idx] if idx < len(row) else None
        if raw is None:
            raise RecordParseError(column, raw)
        try:
            return parse(raw)
        except ValueError as ex:
            raise RecordParseError(column, raw, ex) from ex

    def select_id(self) -> int:
        return self._select(COL_ID, parse_record_id)

    def select_title(self) -> str:
        return self._select(COL_TITLE, str)

    def select_url(self) -> str:
        return self._select(COL_URL, parse_url)

    def select_longitude(self) -> float:
        return self._select(COL_LONGITUDE, parse_coordinate)

    def select_latitude(self) -> float:
        return self._select(COL_LATITUDE, parse_coordinate)

    def select_date(self) -> datetime:
        return self._select(COL_DATE, lambda v: parse_csv_datetime(v, self._date_format))

    def to_picture(self) -> Picture:
        """Parse every field of the bound row into a `Picture`.

        Raises:
            RecordParseError: On the first field that does not parse.
        """
        return Picture(
            id=self.select_id(),
            url=self.select_url(),
            date=self.select_date(),
            title=self.select_title(),
            longitude=self.select_longitude(),
            latitude=self.select_latitude(),
        )

    # mutators

    def apply_picture(self, picture: Picture, delimiter: str) -> Row:
        """Return the bound row with the picture's fields written in.

        The id column is left as is; the datasource assigns identifiers.
        Columns outside the required set keep their current text.
        """
        try:
            url = parse_url(picture.url)
        except ValueError as ex:
            raise PreconditionError(f"Malformed URL: {picture.url!r}", ex) from ex
        if url != picture.url:
            raise PreconditionError(f"URL has surrounding whitespace: {picture.url!r}")
        values = {
            COL_URL: url,
            COL_TITLE: picture.title,
            COL_LONGITUDE: format_coordinate(picture.longitude),
            COL_LATITUDE: format_coordinate(picture.latitude),
            COL_DATE: format_csv_datetime(picture.date, self._date_format),
        }
        if not (math.isfinite(picture.longitude) and math.isfinite(picture.latitude)):
            raise PreconditionError(
                f"Coordinates must be finite: {picture.longitude}, {picture.latitude}"
            )
        row = self._padded_row()
        for column, text in values.items():
            _check_field(column, text, delimiter)
            row[self._indexes[column]] = text
        return tuple(row)

    def with_id(self, record_id: int) -> Row:
        """Return the bound row with the id column set to `record_id`."""
        if record_id < 0:
            raise PreconditionError(f"Identifier must not be negative: {record_id}")
        row = self._padded_row()
        row[self._indexes[COL_ID]] = str(record_id)
        return tuple(row)

    def _padded_row(self) -> list[str]:
        row = list(self.row)
        if len(row) < len(self._header):
            row.extend([""] * (len(self._header) - len(row)))
        return row


def _check_field(column: str, text: str, delimiter: str) -> None:
    # fields are not escaped; these characters would break the line layout
    if delimiter in text or "\n" in text or "\r" in text:
        raise PreconditionError(
            f"Column '{column}' must not contain the delimiter or a line break: {text!r}"
        )


def split_line(line: str, delimiter: str) -> Row:
    """Split one datafile line (without its terminator) into fields."""
    return tuple(line.rstrip("\r\n").split(delimiter))


def format_row(row: Sequence[str], delimiter: str) -> str:
    """Join fields into one datafile line (without terminator)."""
    return delimiter.join(row)
