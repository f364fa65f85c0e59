# price_tracker/models/source.py

"""Static descriptor for a configured price source."""

from dataclasses import dataclass, field
from typing import Any

RETAILER = "retailer"
MARKETPLACE = "marketplace"


@dataclass(frozen=True)
class SourceDescriptor:
    """Metadata for one retailer or marketplace page."""

    id: str
    name: str
    url: str
    currency: str
    role: str = RETAILER  # "retailer" or "marketplace"
    historical: bool = False
    archive_patterns: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_config(cls, entry: dict[str, Any]) -> "SourceDescriptor":
        """Build a descriptor from a ``Settings.AVAILABLE_SOURCES`` entry."""
        return cls(
            id=str(entry["id"]),
            name=str(entry["name"]),
            url=str(entry["url"]),
            currency=str(entry["currency"]).upper(),
            role=str(entry.get("role", RETAILER)),
            historical=bool(entry.get("historical", False)),
            archive_patterns=tuple(entry.get("archive_patterns", ())),
        )

    @property
    def search_patterns(self) -> list[str]:
        """CDX URL patterns to try in order, canonical URL first."""
        return [self.url, *self.archive_patterns]
