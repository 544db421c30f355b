"""Core domain model for picture records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Picture:
    """A single picture row stored in the picture datafile.

    `id` is assigned by the datasource on insert; a picture that has not been
    stored yet carries `None`.
    """

    url: str
    date: datetime
    title: str
    longitude: float
    latitude: float
    id: int | None = None
