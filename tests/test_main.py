"""Tests for the command line front end."""

from __future__ import annotations

import json
from pathlib import Path

from loguru import logger
import pytest

from main import EXIT_ERROR, EXIT_NOT_FOUND, EXIT_OK, main


@pytest.fixture
def run(tmp_path: Path, datafile: Path, capsys: pytest.CaptureFixture[str]):
    """Invoke `main` against `datafile` and return (exit code, stdout, stderr)."""
    log_dir = tmp_path / "logs"

    def _run(*args: str) -> tuple[int, str, str]:
        code = main(["--log-dir", str(log_dir), str(datafile), *args])
        out, err = capsys.readouterr()
        return code, out, err

    yield _run
    logger.remove()


def test_add_show_and_list(run) -> None:
    code, out, _ = run(
        "add",
        "--title",
        "Harbour",
        "--url",
        "https://example.org/h.jpg",
        "--lon",
        "4.9",
        "--lat",
        "52.37",
        "--date",
        "2024-02-29 12:00:00",
    )
    assert (code, out) == (EXIT_OK, "1\n")

    code, out, _ = run("show", "1")
    assert code == EXIT_OK
    assert out == "1;2024-02-29 12:00:00;4.9;52.37;Harbour;https://example.org/h.jpg\n"

    code, out, _ = run("list")
    assert out.count("\n") == 1


def test_update_near_delete_and_count(run) -> None:
    for lon in ("1.0", "5.0"):
        run(
            "add",
            "--title",
            f"at {lon}",
            "--url",
            "https://example.org/x.jpg",
            "--lon",
            lon,
            "--lat",
            "0.0",
        )

    code, out, _ = run("update", "2", "--lon", "1.5")
    assert (code, out) == (EXIT_OK, "updated 2\n")

    code, out, _ = run("near", "1.0", "0.0", "0.5")
    assert [line.split(";")[0] for line in out.splitlines()] == ["1", "2"]

    code, out, _ = run("delete", "1")
    assert (code, out) == (EXIT_OK, "deleted 1\n")

    code, out, _ = run("count")
    assert out == "1\n"


def test_missing_record(run) -> None:
    assert run("show", "3")[0] == EXIT_NOT_FOUND
    assert run("update", "3", "--title", "x")[0] == EXIT_NOT_FOUND
    assert run("delete", "3")[0] == EXIT_NOT_FOUND


def test_rejected_input_is_an_error(run, datafile: Path) -> None:
    code, _, err = run(
        "add",
        "--title",
        "a;b",
        "--url",
        "https://example.org/a.jpg",
        "--lon",
        "0",
        "--lat",
        "0",
    )

    assert code == EXIT_ERROR
    assert "title" in err
    assert run("count")[1] == "0\n"


def test_bad_header_is_an_error(run, datafile: Path) -> None:
    datafile.parent.mkdir(parents=True)
    datafile.write_text("id;date;title;url\n", encoding="utf-8")

    code, _, err = run("list")

    assert code == EXIT_ERROR
    assert "longitude" in err


def test_settings_file_selects_delimiter(tmp_path: Path, datafile: Path, capsys) -> None:
    settings = tmp_path / "custom.json"
    settings.write_text(json.dumps({"datasource": {"delimiter": "|"}}), encoding="utf-8")

    code = main(
        [
            "--settings",
            str(settings),
            "--log-dir",
            str(tmp_path / "logs"),
            str(datafile),
            "add",
            "--title",
            "t",
            "--url",
            "https://example.org/t.jpg",
            "--lon",
            "1",
            "--lat",
            "2",
            "--date",
            "2020-01-01 00:00:00",
        ]
    )
    logger.remove()

    assert code == EXIT_OK
    assert datafile.read_text(encoding="utf-8").splitlines()[1] == (
        "1|2020-01-01 00:00:00|1.0|2.0|t|https://example.org/t.jpg"
    )
    assert capsys.readouterr().out == "1\n"


def test_unknown_encoding_in_settings_is_an_error(
    tmp_path: Path, datafile: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    settings = tmp_path / "custom.json"
    settings.write_text(json.dumps({"datasource": {"encoding": "nope"}}), encoding="utf-8")

    code = main(
        ["--settings", str(settings), "--log-dir", str(tmp_path / "logs"), str(datafile), "count"]
    )
    logger.remove()

    assert code == EXIT_ERROR
    assert "encoding" in capsys.readouterr().err
    assert not datafile.exists()
