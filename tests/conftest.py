"""Pytest fixtures for the picture datasource tests."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
import os
from pathlib import Path

import pytest

from core.models import Picture
from infrastructure.csv_repository import CsvPictureDatasource

HEADER_LINE = "id;date;longitude;latitude;title;url"


def lines(*rows: str) -> str:
    """Join datafile lines the way the datasource terminates them."""
    return "".join(row + os.linesep for row in rows)


@pytest.fixture
def datafile(tmp_path: Path) -> Path:
    """Path of a datafile that does not exist yet."""
    return tmp_path / "db" / "picture-data.csv"


@pytest.fixture
def db(datafile: Path) -> CsvPictureDatasource:
    """Datasource over a freshly created, empty datafile."""
    return CsvPictureDatasource(datafile)


@pytest.fixture
def make_picture() -> Callable[..., Picture]:
    """Factory for unsaved pictures with overridable fields."""

    def _make(**overrides) -> Picture:
        values = {
            "url": "https://example.org/pictures/lake.jpg",
            "date": datetime(2024, 5, 17, 14, 30, 5),
            "title": "Lake at dawn",
            "longitude": 8.5417,
            "latitude": 47.3769,
        }
        values.update(overrides)
        return Picture(**values)

    return _make


@pytest.fixture
def seeded_file(tmp_path: Path) -> Path:
    """Datafile with three well-formed rows, written by hand."""
    path = tmp_path / "seeded.csv"
    path.write_text(
        lines(
            HEADER_LINE,
            "1;2023-01-01 10:00:00;10.0;10.0;first;https://example.org/1.jpg",
            "2;2023-01-02 11:00:00;10.5;10.5;second;https://example.org/2.jpg",
            "3;2023-01-03 12:00:00;12.0;12.0;third;https://example.org/3.jpg",
        ),
        encoding="utf-8",
        newline="",
    )
    return path


def temp_files(directory: Path) -> list[Path]:
    return sorted(directory.glob("db-*.tmp"))
