"""Logging initialization utilities using loguru."""

from __future__ import annotations

from pathlib import Path
import sys

from loguru import logger


def get_log_directory() -> str:
    """Get the main log directory path."""
    return str(Path.home() / ".picturedb" / "logs")


def init_logging(log_dir: str | None = None, level: str = "INFO", console: bool = False) -> None:
    """Initialize rotating file logging under the given directory.

    The datasource logs through loguru's module-level logger and works without
    calling this; it only decides where records end up.
    """
    if log_dir is None:
        log_dir = get_log_directory()
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.add(
        str(log_path / "picturedb_{time:YYYYMMDD}.log"),
        rotation="10 MB",
        retention="10 days",
        compression="zip",
        backtrace=False,
        diagnose=False,
        level=level,
    )
    if console:
        logger.add(sys.stderr, level=level, format="{level: <8} | {message}")
