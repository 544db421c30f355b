"""CSV persistence for picture records.

The datafile is the only source of truth: every call streams it line by line
through a `PictureProjection`. Mutations copy unaffected lines verbatim into a
temporary file in the same directory and swap it over the datafile with a
single `os.replace`, so readers see either the old or the new file.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import closing
import os
from pathlib import Path
import shutil
import tempfile
from typing import TextIO, TypeVar

from loguru import logger

from core.errors import (
    ConfigurationError,
    ConsistencyError,
    DatasourceError,
    PreconditionError,
    RecordParseError,
)
from core.models import Picture
from core.services.interfaces import MutationResult, MutationStatus, PictureDatasource
from infrastructure.picture_projection import (
    HEADER_COLUMNS,
    PictureProjection,
    format_row,
    split_line,
)
from infrastructure.settings import DatasourceConfig

T = TypeVar("T")
RowPredicate = Callable[[PictureProjection], bool]


def _fsync_dir(dir_path: Path) -> None:
    """Flush the directory entry after a rename, where the OS supports it."""
    try:
        dir_fd = os.open(str(dir_path), os.O_RDONLY | getattr(os, "O_DIRECTORY", 0))
        try:
            os.fsync(dir_fd)
        finally:
            os.close(dir_fd)
    except OSError as ex:
        logger.warning("Directory fsync failed for {}: {}", dir_path, ex)


def _default_mode() -> int:
    """Permission bits a plain `open(path, "w")` would create, under the current umask."""
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def _match_mode(temp_path: Path, target: Path) -> None:
    # NamedTemporaryFile creates 0600; the datafile keeps its own mode
    if target.exists():
        shutil.copymode(target, temp_path)
    else:
        os.chmod(temp_path, _default_mode())


def _discard(temp_path: Path) -> None:
    try:
        temp_path.unlink(missing_ok=True)
    except OSError as ex:
        logger.warning("Could not remove temp file {}: {}", temp_path, ex)


def _safe_id(bound: PictureProjection) -> int | None:
    """Identifier of the bound row, or None when it does not parse."""
    try:
        return bound.select_id()
    except RecordParseError as ex:
        logger.warning("Skipping row with unreadable id: {} | row={}", ex, bound.row)
        return None


def _id_matches(record_id: int) -> RowPredicate:
    return lambda bound: _safe_id(bound) == record_id


class CsvPictureDatasource(PictureDatasource):
    """Picture datasource backed by a delimiter-separated text file.

    Args:
        file_path: Datafile location; created with a header line if absent.
        config: Delimiter, date format and encoding (defaults when omitted).

    Raises:
        ConfigurationError: If the existing header lacks a required column.
        DatasourceError: If the datafile cannot be created or read.
    """

    def __init__(
        self, file_path: str | os.PathLike[str], config: DatasourceConfig | None = None
    ) -> None:
        self._path = Path(file_path)
        self._config = config or DatasourceConfig()
        self._ensure_datafile()
        try:
            with self._open_reader() as reader:
                self._projection = self._read_projection(reader)
        except (OSError, UnicodeError) as ex:
            raise DatasourceError(f"Cannot read datafile {self._path}: {ex}", ex) from ex

    @property
    def path(self) -> Path:
        return self._path

    @property
    def config(self) -> DatasourceConfig:
        return self._config

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def insert(self, picture: Picture) -> Picture:
        """Append `picture` under the next free id and return it.

        The id is one above the highest stored id, so gaps left by deleted
        records are not reused. Deleting the record holding the highest id
        makes that id available again: no high-water mark is kept outside the
        datafile. `picture.id` is set on success.
        """
        if picture is None:
            raise PreconditionError("picture must not be None")
        self._validate(picture)

        def body(reader: TextIO, writer: TextIO, projection: PictureProjection) -> tuple[bool, int]:
            highest = 0

            def track(bound: PictureProjection) -> bool:
                nonlocal highest
                rid = _safe_id(bound)
                if rid is not None and rid > highest:
                    highest = rid
                return False

            self._copy_until(reader, writer, projection, track)
            new_id = highest + 1
            blank = projection.bind(projection.blank_row())
            row = blank.apply_picture(picture, self._config.delimiter)
            self._write_row(writer, projection.bind(row).with_id(new_id))
            return True, new_id

        picture.id = self._rewrite(body)
        logger.info("Inserted picture id={} into {}", picture.id, self._path)
        return picture

    def update(self, picture: Picture) -> MutationResult:
        """Overwrite the row whose id equals `picture.id`.

        Returns a `NOT_FOUND` or `PARSE_ERROR` result, leaving the datafile
        untouched, when the row is missing or unreadable.
        """
        record_id = self._target_id(picture)
        self._validate(picture)

        def body(
            reader: TextIO, writer: TextIO, projection: PictureProjection
        ) -> tuple[bool, MutationResult]:
            matched = self._copy_until(reader, writer, projection, _id_matches(record_id))
            failure = self._check_match(matched, record_id)
            if failure is not None:
                return False, failure
            self._write_row(writer, matched.apply_picture(picture, self._config.delimiter))
            self._copy_rest(reader, writer)
            return True, MutationResult(MutationStatus.UPDATED, record_id)

        result = self._rewrite(body)
        if result.ok:
            logger.info("Updated picture id={} in {}", record_id, self._path)
        return result

    def delete(self, picture: Picture) -> MutationResult:
        """Remove the row whose id equals `picture.id`.

        Returns a `NOT_FOUND` or `PARSE_ERROR` result, leaving the datafile
        untouched, when the row is missing or unreadable.
        """
        record_id = self._target_id(picture)

        def body(
            reader: TextIO, writer: TextIO, projection: PictureProjection
        ) -> tuple[bool, MutationResult]:
            matched = self._copy_until(reader, writer, projection, _id_matches(record_id))
            failure = self._check_match(matched, record_id)
            if failure is not None:
                return False, failure
            self._copy_rest(reader, writer)
            return True, MutationResult(MutationStatus.DELETED, record_id)

        result = self._rewrite(body)
        if result.ok:
            logger.info("Deleted picture id={} from {}", record_id, self._path)
        return result

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def count(self) -> int:
        """Number of data lines (blank lines and the header excluded)."""
        with closing(self._scan()) as rows:
            return sum(1 for _ in rows)

    def find_by_id(self, record_id: int) -> Picture | None:
        """Return the first record with `record_id`, or None.

        Raises:
            RecordParseError: If the matching row is corrupt.
        """
        matches = _id_matches(record_id)
        with closing(self._scan()) as rows:
            for bound in rows:
                if matches(bound):
                    return bound.to_picture()
        return None

    def iter_pictures(self) -> Iterator[Picture]:
        """Yield every readable record in file order; corrupt rows are skipped."""
        with closing(self._scan()) as rows:
            for bound in rows:
                try:
                    yield bound.to_picture()
                except RecordParseError as ex:
                    logger.warning("CSV row error: {} | row={}", ex, bound.row)
                    continue

    def find_all(self) -> list[Picture]:
        return list(self.iter_pictures())

    def find_by_position(
        self, longitude: float, latitude: float, deviation: float
    ) -> list[Picture]:
        """Records within `deviation` of the point on both axes (bounds inclusive)."""
        if deviation < 0:
            raise PreconditionError(f"deviation must not be negative: {deviation}")
        min_lon, max_lon = longitude - deviation, longitude + deviation
        min_lat, max_lat = latitude - deviation, latitude + deviation
        return [
            p
            for p in self.iter_pictures()
            if min_lon <= p.longitude <= max_lon and min_lat <= p.latitude <= max_lat
        ]

    # ------------------------------------------------------------------
    # Scanning helpers
    # ------------------------------------------------------------------

    def _open_reader(self) -> TextIO:
        try:
            return self._path.open("r", encoding=self._config.encoding, newline="")
        except OSError as ex:
            raise DatasourceError(f"Cannot open datafile {self._path}: {ex}", ex) from ex

    def _read_projection(self, reader: TextIO) -> PictureProjection:
        """Consume the header line and build the projection for it."""
        line = self._read_header_line(reader)
        header = split_line(line, self._config.delimiter)
        return PictureProjection.create(self._config.date_format, header)

    @staticmethod
    def _read_header_line(reader: TextIO) -> str:
        for line in reader:
            if line.strip():
                return line
        raise ConfigurationError("Datafile has no header line")

    def _scan(self) -> Iterator[PictureProjection]:
        """Yield a bound projection per data line."""
        try:
            with self._open_reader() as reader:
                projection = self._read_projection(reader)
                for line in reader:
                    if not line.strip():
                        continue
                    yield projection.bind(split_line(line, self._config.delimiter))
        except (OSError, UnicodeError) as ex:
            raise DatasourceError(f"Cannot read datafile {self._path}: {ex}", ex) from ex

    def _copy_until(
        self,
        reader: TextIO,
        writer: TextIO,
        projection: PictureProjection,
        predicate: RowPredicate,
    ) -> PictureProjection | None:
        """Copy lines verbatim until `predicate` matches a row.

        Returns the projection bound to the matching row, with `reader`
        positioned just after it, or None once the file is exhausted.
        """
        for line in reader:
            if not line.strip():
                continue
            bound = projection.bind(split_line(line, self._config.delimiter))
            if predicate(bound):
                logger.debug("Scan matched row {}", bound.row)
                return bound
            self._write_line(writer, line)
        return None

    def _copy_rest(self, reader: TextIO, writer: TextIO) -> None:
        for line in reader:
            if line.strip():
                self._write_line(writer, line)

    @staticmethod
    def _write_line(writer: TextIO, line: str) -> None:
        writer.write(line if line.endswith(("\n", "\r")) else line + os.linesep)

    def _write_row(self, writer: TextIO, row: tuple[str, ...]) -> None:
        writer.write(format_row(row, self._config.delimiter) + os.linesep)

    @staticmethod
    def _check_match(matched: PictureProjection | None, record_id: int) -> MutationResult | None:
        if matched is None:
            return MutationResult(MutationStatus.NOT_FOUND, record_id)
        try:
            matched.to_picture()
        except RecordParseError as ex:
            logger.warning("Matched row id={} is corrupt: {}", record_id, ex)
            return MutationResult(MutationStatus.PARSE_ERROR, record_id, ex)
        return None

    @staticmethod
    def _target_id(picture: Picture) -> int:
        if picture is None:
            raise PreconditionError("picture must not be None")
        if picture.id is None:
            raise PreconditionError("picture has no id; insert it first")
        return picture.id

    def _validate(self, picture: Picture) -> None:
        """Reject pictures whose fields cannot be written, before any I/O."""
        projection = self._projection
        projection.bind(projection.blank_row()).apply_picture(picture, self._config.delimiter)

    # ------------------------------------------------------------------
    # Atomic replace
    # ------------------------------------------------------------------

    def _rewrite(self, body: Callable[[TextIO, TextIO, PictureProjection], tuple[bool, T]]) -> T:
        """Run `body` over a reader and a temp-file writer, then commit or discard.

        `body` returns `(commit, value)`. The header line is copied before
        `body` runs. On commit the temp file replaces the datafile; otherwise,
        and on any error, the temp file is removed and the datafile is left
        as it was.
        """
        temp_path: Path | None = None
        try:
            with self._open_reader() as reader, self._open_temp() as writer:
                temp_path = Path(writer.name)
                header = self._read_header_line(reader)
                projection = PictureProjection.create(
                    self._config.date_format, split_line(header, self._config.delimiter)
                )
                self._write_line(writer, header)
                commit, value = body(reader, writer, projection)
                if commit:
                    self._sync(writer)
            if commit:
                committed, temp_path = temp_path, None
                self._replace(committed)
            return value
        except (OSError, UnicodeError) as ex:
            raise DatasourceError(f"Cannot rewrite datafile {self._path}: {ex}", ex) from ex
        finally:
            if temp_path is not None:
                _discard(temp_path)

    def _open_temp(self) -> TextIO:
        # same directory as the datafile so os.replace stays a plain rename
        return tempfile.NamedTemporaryFile(
            mode="w",
            dir=self._path.parent,
            prefix="db-",
            suffix=".tmp",
            delete=False,
            encoding=self._config.encoding,
            newline="",
        )

    def _sync(self, writer: TextIO) -> None:
        writer.flush()
        try:
            os.fsync(writer.fileno())
        except OSError as ex:
            logger.warning("File fsync failed for {}: {}", writer.name, ex)

    def _replace(self, temp_path: Path, target_expected: bool = True) -> None:
        """Move `temp_path` over the datafile.

        The temp file takes over the permission bits of the datafile it
        replaces, or the umask default for a new datafile. On failure the temp
        file is removed, unless the datafile has vanished in the meantime: then
        the temp file is the only copy left and is kept.
        """
        try:
            _match_mode(temp_path, self._path)
            os.replace(temp_path, self._path)
        except OSError as ex:
            if target_expected and not self._path.exists():
                logger.error(
                    "Datafile {} missing after failed replace; data kept in {}",
                    self._path,
                    temp_path,
                )
                raise ConsistencyError(
                    f"Datafile {self._path} is gone; recover it from {temp_path}", ex
                ) from ex
            _discard(temp_path)
            raise
        _fsync_dir(self._path.parent)

    def _has_content(self) -> bool:
        if not self._path.exists():
            return False
        with self._open_reader() as reader:
            return any(line.strip() for line in reader)

    def _ensure_datafile(self) -> None:
        """Create the datafile with a header line if it is absent or blank."""
        temp_path: Path | None = None
        try:
            if self._has_content():
                return
            existed = self._path.exists()
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._open_temp() as writer:
                temp_path = Path(writer.name)
                self._write_row(writer, HEADER_COLUMNS)
                self._sync(writer)
            committed, temp_path = temp_path, None
            self._replace(committed, target_expected=existed)
        except (OSError, UnicodeError) as ex:
            raise DatasourceError(f"Cannot create datafile {self._path}: {ex}", ex) from ex
        finally:
            if temp_path is not None:
                _discard(temp_path)
        logger.info("Created datafile {}", self._path)
