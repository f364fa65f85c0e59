# price_tracker/models/snapshot.py

"""Reference to one Wayback Machine capture."""

from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class SnapshotRef:
    """A capture located through the CDX index."""

    timestamp: str  # YYYYMMDDhhmmss
    archived_date: date
    original_url: str
