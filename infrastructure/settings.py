"""Settings access helpers for JSON-based configuration."""

from __future__ import annotations

import codecs
from dataclasses import dataclass
import json
from pathlib import Path
from typing import Any

from core.errors import ConfigurationError
from infrastructure.utils import CSV_DT_FMT

DEFAULT_DELIMITER = ";"
DEFAULT_ENCODING = "utf-8"


class JsonSettings:
    """Lightweight JSON settings reader with dotted-key access."""

    def __init__(self, settings_path: str | Path) -> None:
        self._path = Path(settings_path)
        if not self._path.exists():
            raise FileNotFoundError(f"settings.json not found: {self._path}")
        with self._path.open("r", encoding="utf-8") as f:
            self._data = json.load(f)

    def get(self, key: str, default: Any | None = None) -> Any:
        """Return value for dotted `key`, or `default` if not present."""
        parts = key.split(".")
        node: Any = self._data
        for part in parts:
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node


@dataclass(frozen=True)
class DatasourceConfig:
    """Format parameters of a picture datafile."""

    delimiter: str = DEFAULT_DELIMITER
    date_format: str = CSV_DT_FMT
    encoding: str = DEFAULT_ENCODING

    def __post_init__(self) -> None:
        if len(self.delimiter) != 1 or self.delimiter in "\r\n":
            raise ConfigurationError(f"Delimiter must be a single character: {self.delimiter!r}")
        if not self.date_format:
            raise ConfigurationError("Date format must not be empty")
        try:
            codecs.lookup(self.encoding)
        except LookupError as ex:
            raise ConfigurationError(f"Unknown encoding: {self.encoding!r}", ex) from ex

    @classmethod
    def from_settings(cls, settings: JsonSettings) -> DatasourceConfig:
        """Build a config from the `datasource.*` keys of `settings`."""
        return cls(
            delimiter=str(settings.get("datasource.delimiter", DEFAULT_DELIMITER)),
            date_format=str(settings.get("datasource.date_format", CSV_DT_FMT)),
            encoding=str(settings.get("datasource.encoding", DEFAULT_ENCODING)),
        )
