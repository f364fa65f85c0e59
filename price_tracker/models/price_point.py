# price_tracker/models/price_point.py

"""Price observation models shared by every pipeline stage."""

from dataclasses import dataclass
from datetime import date

SALE = "sale"
MSRP = "msrp"
KINDS: frozenset[str] = frozenset({SALE, MSRP})


@dataclass(frozen=True)
class Money:
    """An amount in an explicit ISO-4217 currency."""

    amount: float
    currency: str


@dataclass(frozen=True)
class FxQuote:
    """Conversion metadata attached to a converted price."""

    pair: str  # "USD/CAD"
    rate: float
    source: str
    date: date


@dataclass(frozen=True)
class DisplayPrice:
    """A price normalised into the display currency."""

    amount: float
    currency: str
    fx: FxQuote | None = None


@dataclass(frozen=True)
class PricePoint:
    """One observed price at one date from one source.

    ``price_display`` is ``None`` until the point has been converted;
    supplementary points read from disk start out that way.
    ``wayback`` holds the archive timestamp for snapshot-derived points.
    """

    date: date
    kind: str  # "sale" or "msrp"
    price: Money
    source_id: str
    url: str
    price_display: DisplayPrice | None = None
    wayback: str | None = None

    @property
    def dedup_key(self) -> tuple[date, str, float, str, str]:
        """Identity of a point inside the canonical series."""
        return (
            self.date,
            self.kind,
            self.price.amount,
            self.price.currency,
            self.source_id,
        )
