"""Command line front end for a picture datafile."""

from __future__ import annotations

import argparse
from datetime import datetime
from pathlib import Path
import sys

from loguru import logger

from core.errors import DatasourceError
from core.models import Picture
from core.services.interfaces import MutationResult, MutationStatus
from infrastructure.csv_repository import CsvPictureDatasource
from infrastructure.logging import init_logging
from infrastructure.settings import DatasourceConfig, JsonSettings
from infrastructure.utils import format_coordinate, format_csv_datetime, parse_csv_datetime

BASE_DIR = Path(__file__).parent

EXIT_OK = 0
EXIT_NOT_FOUND = 1
EXIT_ERROR = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="picturedb", description="Manage a picture datafile.")
    parser.add_argument("--settings", help="settings.json to read (default: next to main.py)")
    parser.add_argument("--log-dir", help="directory for log files")
    parser.add_argument("-v", "--verbose", action="store_true", help="log to stderr at DEBUG")
    parser.add_argument("datafile", help="picture datafile, created if missing")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("list", help="print all records")
    sub.add_parser("count", help="print the number of records")

    show = sub.add_parser("show", help="print one record")
    show.add_argument("id", type=int)

    near = sub.add_parser("near", help="print records inside a square around a point")
    near.add_argument("longitude", type=float)
    near.add_argument("latitude", type=float)
    near.add_argument("deviation", type=float)

    add = sub.add_parser("add", help="insert a record")
    add.add_argument("--title", required=True)
    add.add_argument("--url", required=True)
    add.add_argument("--lon", type=float, required=True)
    add.add_argument("--lat", type=float, required=True)
    add.add_argument("--date", help="timestamp, defaults to now")

    update = sub.add_parser("update", help="change fields of a record")
    update.add_argument("id", type=int)
    update.add_argument("--title")
    update.add_argument("--url")
    update.add_argument("--lon", type=float)
    update.add_argument("--lat", type=float)
    update.add_argument("--date")

    delete = sub.add_parser("delete", help="remove a record")
    delete.add_argument("id", type=int)
    return parser


def _load_settings(path: str | None) -> JsonSettings | None:
    if path is not None:
        return JsonSettings(path)
    default = BASE_DIR / "settings.json"
    return JsonSettings(default) if default.exists() else None


def format_picture(picture: Picture, config: DatasourceConfig) -> str:
    """One output line per record: id, date, longitude, latitude, title, url."""
    return config.delimiter.join(
        [
            str(picture.id),
            format_csv_datetime(picture.date, config.date_format),
            format_coordinate(picture.longitude),
            format_coordinate(picture.latitude),
            picture.title,
            picture.url,
        ]
    )


def _report(result: MutationResult) -> int:
    if result.ok:
        print(f"{result.status.value} {result.record_id}")
        return EXIT_OK
    if result.status is MutationStatus.NOT_FOUND:
        print(f"not found: {result.record_id}", file=sys.stderr)
        return EXIT_NOT_FOUND
    print(f"corrupt record {result.record_id}: {result.error}", file=sys.stderr)
    return EXIT_ERROR


def _run(args: argparse.Namespace, db: CsvPictureDatasource) -> int:
    config = db.config
    if args.command == "list":
        for picture in db.iter_pictures():
            print(format_picture(picture, config))
        return EXIT_OK
    if args.command == "count":
        print(db.count())
        return EXIT_OK
    if args.command == "show":
        found = db.find_by_id(args.id)
        if found is None:
            print(f"not found: {args.id}", file=sys.stderr)
            return EXIT_NOT_FOUND
        print(format_picture(found, config))
        return EXIT_OK
    if args.command == "near":
        for picture in db.find_by_position(args.longitude, args.latitude, args.deviation):
            print(format_picture(picture, config))
        return EXIT_OK
    if args.command == "add":
        date = (
            parse_csv_datetime(args.date, config.date_format)
            if args.date
            else datetime.now().replace(microsecond=0)
        )
        picture = Picture(
            url=args.url, date=date, title=args.title, longitude=args.lon, latitude=args.lat
        )
        db.insert(picture)
        print(picture.id)
        return EXIT_OK
    if args.command == "update":
        current = db.find_by_id(args.id)
        if current is None:
            print(f"not found: {args.id}", file=sys.stderr)
            return EXIT_NOT_FOUND
        if args.title is not None:
            current.title = args.title
        if args.url is not None:
            current.url = args.url
        if args.lon is not None:
            current.longitude = args.lon
        if args.lat is not None:
            current.latitude = args.lat
        if args.date is not None:
            current.date = parse_csv_datetime(args.date, config.date_format)
        return _report(db.update(current))
    if args.command == "delete":
        target = db.find_by_id(args.id)
        if target is None:
            print(f"not found: {args.id}", file=sys.stderr)
            return EXIT_NOT_FOUND
        return _report(db.delete(target))
    raise AssertionError(f"unhandled command {args.command}")


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        settings = _load_settings(args.settings)
        log_dir = args.log_dir or (settings.get("logging.dir") if settings else None)
        level = settings.get("logging.level", "INFO") if settings else "INFO"
        if args.verbose:
            level = "DEBUG"
        init_logging(log_dir, level=level, console=args.verbose)

        config = DatasourceConfig.from_settings(settings) if settings else DatasourceConfig()
        db = CsvPictureDatasource(args.datafile, config)
        return _run(args, db)
    except (DatasourceError, ValueError, OSError) as ex:
        logger.error("picturedb {} failed: {}", args.command, ex)
        print(f"error: {ex}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
