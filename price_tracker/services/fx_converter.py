# price_tracker/services/fx_converter.py

"""Historical currency conversion backed by frankfurter.app (ECB rates)."""

import dataclasses
import logging
from datetime import date

from price_tracker.config.settings import Settings
from price_tracker.models.price_point import DisplayPrice, FxQuote, PricePoint
from price_tracker.scrapers.page_fetcher import FetchError, PageFetcher

logger = logging.getLogger("price_tracker.fx")


class FxRateError(Exception):
    """Raised when no rate can be resolved for a (date, pair)."""


class FxConverter:
    """Resolve date-specific FX rates and convert price points.

    Weekend and holiday requests return the provider's last business
    day rate, which is accepted unchanged.  Lookups (including failed
    ones) are cached per instance, so one run never repeats a request
    for the same ``(date, from, to)``.
    """

    def __init__(self, fetcher: PageFetcher | None = None) -> None:
        self.settings = Settings()
        self.fetcher = fetcher or PageFetcher("fx")
        self._cache: dict[tuple[date, str, str], float | FxRateError] = {}

    def _lookup(self, day: date, base: str, target: str) -> float:
        """Query the rate service once."""
        url = self.settings.FX_API_URL.format(date=day.isoformat())
        try:
            payload = self.fetcher.fetch_json(
                url, {"from": base, "to": target}
            )
        except FetchError as exc:
            raise FxRateError(
                f"FX lookup failed for {base}->{target} on {day}: {exc}"
            ) from exc

        rates = payload.get("rates") if isinstance(payload, dict) else None
        raw = rates.get(target) if isinstance(rates, dict) else None
        try:
            rate = float(raw) if raw is not None else 0.0
        except (TypeError, ValueError):
            rate = 0.0
        if rate <= 0:
            raise FxRateError(f"No FX rate for {base}->{target} on {day}")
        return rate

    def rate_for(
        self, day: date, from_currency: str, to_currency: str,
    ) -> float:
        """Return the rate converting *from_currency* into *to_currency*.

        Raises:
            FxRateError: When the provider has no usable rate.
        """
        base = from_currency.upper()
        target = to_currency.upper()
        if base == target:
            return 1.0

        key = (day, base, target)
        cached = self._cache.get(key)
        if isinstance(cached, FxRateError):
            raise cached
        if cached is not None:
            return cached

        try:
            rate = self._lookup(day, base, target)
        except FxRateError as exc:
            self._cache[key] = exc
            raise
        self._cache[key] = rate
        logger.debug("FX %s/%s on %s = %s", base, target, day, rate)
        return rate

    def convert(self, point: PricePoint, display_currency: str) -> PricePoint:
        """Return *point* with ``price_display`` filled in.

        Same-currency points copy the amount and carry no FX metadata.

        Raises:
            FxRateError: Propagated from :meth:`rate_for`.
        """
        target = display_currency.upper()
        if point.price.currency.upper() == target:
            display = DisplayPrice(amount=point.price.amount, currency=target)
        else:
            rate = self.rate_for(point.date, point.price.currency, target)
            display = DisplayPrice(
                amount=round(point.price.amount * rate, 2),
                currency=target,
                fx=FxQuote(
                    pair=f"{point.price.currency.upper()}/{target}",
                    rate=rate,
                    source=self.settings.FX_PROVIDER,
                    date=point.date,
                ),
            )
        return dataclasses.replace(point, price_display=display)
