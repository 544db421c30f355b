"""Tests for field conversions."""

from __future__ import annotations

from datetime import datetime

import pytest

from infrastructure.utils import (
    format_coordinate,
    format_csv_datetime,
    parse_coordinate,
    parse_csv_datetime,
    parse_record_id,
    parse_url,
)


def test_datetime_round_trip() -> None:
    dt = datetime(2023, 3, 4, 5, 6, 7)

    assert format_csv_datetime(dt) == "2023-03-04 05:06:07"
    assert parse_csv_datetime(" 2023-03-04 05:06:07 ") == dt


def test_record_id() -> None:
    assert parse_record_id(" 12 ") == 12
    with pytest.raises(ValueError):
        parse_record_id("-1")
    with pytest.raises(ValueError):
        parse_record_id("1.5")


@pytest.mark.parametrize("text", ["1_000", "+", "\u0661", "0x1f", ""])
def test_record_id_rejects(text: str) -> None:
    with pytest.raises(ValueError):
        parse_record_id(text)


@pytest.mark.parametrize("value", [0.1, -33.8688, 151.20929999999998, 1e-7])
def test_coordinate_text_is_lossless(value: float) -> None:
    assert parse_coordinate(format_coordinate(value)) == value


@pytest.mark.parametrize(
    "text", ["inf", "-inf", "nan", "", "north", "1_0.5", "1_000", "0x1p3", "."]
)
def test_coordinate_rejects(text: str) -> None:
    with pytest.raises(ValueError):
        parse_coordinate(text)


@pytest.mark.parametrize(
    "text", ["https://example.org/a.jpg", "http://localhost:8080/p?id=1", "file:///tmp/a.jpg"]
)
def test_url_accepts(text: str) -> None:
    assert parse_url(text) == text


@pytest.mark.parametrize("text", ["", "a.jpg", "/tmp/a.jpg", "https://", "file://"])
def test_url_rejects(text: str) -> None:
    with pytest.raises(ValueError):
        parse_url(text)
