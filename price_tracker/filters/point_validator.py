# price_tracker/filters/point_validator.py

"""Validation of supplementary entries read from disk."""

import logging
from datetime import date
from typing import Any

from price_tracker.models.price_point import KINDS, Money, PricePoint
from price_tracker.scrapers.price_extractor import parse_amount

logger = logging.getLogger("price_tracker.filters")


class PointValidator:
    """Turn raw supplementary dicts into points, dropping malformed ones."""

    @staticmethod
    def parse_entry(entry: Any) -> PricePoint | None:
        """Return a :class:`PricePoint` for a well-formed entry, else None.

        Required: ``date`` (ISO), ``kind`` (sale/msrp), ``price.amount``
        (> 0), ``price.currency`` (3 letters), ``sourceId`` and ``url``.
        An optional ``wayback.timestamp`` is preserved.
        """
        if not isinstance(entry, dict):
            return None
        price = entry.get("price")
        if not isinstance(price, dict):
            return None

        try:
            observed = date.fromisoformat(str(entry.get("date", "")))
        except ValueError:
            return None

        kind = entry.get("kind")
        amount = parse_amount(price.get("amount"))
        currency = price.get("currency")
        source_id = entry.get("sourceId")
        url = entry.get("url")
        if (
            kind not in KINDS
            or amount is None
            or not isinstance(currency, str)
            or len(currency.strip()) != 3
            or not isinstance(source_id, str)
            or not source_id
            or not isinstance(url, str)
            or not url
        ):
            return None

        wayback = entry.get("wayback")
        timestamp = (
            str(wayback["timestamp"])
            if isinstance(wayback, dict) and wayback.get("timestamp")
            else None
        )
        return PricePoint(
            date=observed,
            kind=str(kind),
            price=Money(amount=amount, currency=currency.strip().upper()),
            source_id=source_id,
            url=url,
            wayback=timestamp,
        )

    @staticmethod
    def validate(entries: list[Any]) -> tuple[list[PricePoint], int]:
        """Parse every entry, skipping malformed ones.

        Returns the valid points and the count of dropped entries.
        """
        valid: list[PricePoint] = []
        dropped = 0

        for entry in entries:
            point = PointValidator.parse_entry(entry)
            if point is None:
                logger.debug("Dropped malformed supplementary entry: %r", entry)
                dropped += 1
                continue
            valid.append(point)

        if dropped:
            logger.info(
                "Validation dropped %d malformed supplementary entries",
                dropped,
            )

        return valid, dropped
