# price_tracker/scrapers/price_extractor.py

"""Heuristic price extraction from raw product and search-page HTML.

Three strategies run in a fixed priority order:

1. ``structured`` -- OpenGraph / ``product:price`` meta tags, JSON-LD
   ``Product.offers`` and ``itemprop="price"`` microdata.  Highest
   confidence; produces *sale* prices.
2. ``labeled`` -- a label such as "Regular price" followed by a
   currency amount within a bounded window.  Produces *msrp* prices.
3. ``generic`` -- currency-symbol / JSON ``"price"`` regexes anywhere in
   the document.  Lowest confidence; produces *sale* prices and is
   always subject to the source's plausible range.

A lower-priority strategy only contributes a kind (sale / msrp) that
no higher-priority strategy already produced.  Nothing here raises on
malformed markup: a page without prices yields an empty list.
"""

import json
import logging
import math
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from bs4 import BeautifulSoup

from price_tracker.config.settings import Settings
from price_tracker.models.price_point import MSRP, SALE

logger = logging.getLogger("price_tracker.extractor")

STRUCTURED = "structured"
LABELED = "labeled"
GENERIC = "generic"
STRATEGIES: tuple[str, ...] = (STRUCTURED, LABELED, GENERIC)

DEFAULT_GENERIC_PATTERNS: tuple[str, ...] = (
    r'"price"\s*:\s*"?(\d+(?:\.\d+)?)"?',
    r"\$\s*(\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?)",
)

# Symbol -> currency; a bare "$" resolves to the page / source currency
_SYMBOL_CURRENCY: dict[str, str] = {
    "US$": "USD",
    "CA$": "CAD",
    "C$": "CAD",
    "€": "EUR",
    "£": "GBP",
}

_META_AMOUNT_RE = re.compile(r"^(?:og|product):price:amount$", re.I)
_META_CURRENCY_RE = re.compile(r"^(?:og|product):price:currency$", re.I)
_CURRENCY_CODE_RE = re.compile(r"^[A-Z]{3}$")


@dataclass(frozen=True)
class ExtractedPrice:
    """One price candidate found on a page."""

    amount: float
    currency: str
    kind: str  # "sale" or "msrp"
    method: str  # "structured", "labeled" or "generic"


@dataclass(frozen=True)
class ExtractionRules:
    """Per-source extraction configuration."""

    currency: str
    strategies: tuple[str, ...] = STRATEGIES
    labels: tuple[str, ...] = ("Regular price",)
    label_window: int = 200
    generic_patterns: tuple[str, ...] = DEFAULT_GENERIC_PATTERNS
    min_amount: float | None = None
    max_amount: float | None = None
    filter_all: bool = False
    _compiled: dict[str, re.Pattern[str]] = field(
        default_factory=dict, compare=False, repr=False,
    )

    @classmethod
    def for_source(
        cls,
        source_id: str,
        currency: str,
        rules_path: Path | None = None,
    ) -> "ExtractionRules":
        """Load the rules for *source_id* from ``extraction_rules.json``.

        Sources without an entry get the default strategy list.
        """
        path = rules_path or Settings.RULES_PATH
        with open(path, encoding="utf-8") as f:
            all_rules: dict[str, Any] = json.load(f)
        entry: dict[str, Any] = all_rules.get(source_id, {})
        return cls(
            currency=currency,
            strategies=tuple(entry.get("strategies", STRATEGIES)),
            labels=tuple(entry.get("labels", ("Regular price",))),
            label_window=int(entry.get("label_window", 200)),
            generic_patterns=tuple(
                entry.get("generic_patterns", DEFAULT_GENERIC_PATTERNS)
            ),
            min_amount=entry.get("min_amount"),
            max_amount=entry.get("max_amount"),
            filter_all=bool(entry.get("filter_all", False)),
        )

    def is_plausible(self, amount: float) -> bool:
        """Return True when *amount* lies inside the configured range."""
        if self.min_amount is not None and amount < self.min_amount:
            return False
        if self.max_amount is not None and amount > self.max_amount:
            return False
        return True

    def pattern(self, raw: str) -> re.Pattern[str]:
        """Compile (and memoise) one regex from the rules."""
        compiled = self._compiled.get(raw)
        if compiled is None:
            compiled = re.compile(raw, re.I)
            self._compiled[raw] = compiled
        return compiled


def parse_amount(raw: object) -> float | None:
    """Convert ``"1,299.00"`` / ``225`` to a positive float, else None."""
    if raw is None or isinstance(raw, bool):
        return None
    cleaned = str(raw).replace(",", "").strip()
    try:
        amount = float(cleaned)
    except ValueError:
        return None
    if not math.isfinite(amount) or amount <= 0:
        return None
    return amount


def _clean_currency(raw: object) -> str | None:
    """Return an upper-case ISO code or None."""
    if not isinstance(raw, str):
        return None
    code = raw.strip().upper()
    return code if _CURRENCY_CODE_RE.match(code) else None


class PriceExtractor:
    """Run the prioritised extraction strategies for one source."""

    def __init__(self, rules: ExtractionRules) -> None:
        self.rules = rules

    # ── Structured data ──────────────────────────────────

    @staticmethod
    def _meta_prices(
        soup: BeautifulSoup,
    ) -> tuple[list[float], str | None]:
        """Read OpenGraph / product meta price tags."""
        amounts: list[float] = []
        currency: str | None = None
        for meta in soup.find_all("meta"):
            key = str(meta.get("property") or meta.get("name") or "")
            content = meta.get("content")
            if _META_AMOUNT_RE.match(key):
                amount = parse_amount(content)
                if amount is not None:
                    amounts.append(amount)
            elif _META_CURRENCY_RE.match(key) and currency is None:
                currency = _clean_currency(content)
        return amounts, currency

    @staticmethod
    def _iter_offers(node: Any) -> Iterator[dict[str, Any]]:
        """Yield every offer-like dict inside a JSON-LD document.

        Offers nested in an ``AggregateOffer`` inherit its
        ``priceCurrency`` when they declare none.
        """
        if isinstance(node, list):
            for item in node:
                if isinstance(item, dict) and (
                    "price" in item or "lowPrice" in item
                ):
                    yield item
                yield from PriceExtractor._iter_offers(item)
            return
        if not isinstance(node, dict):
            return
        if "@graph" in node:
            yield from PriceExtractor._iter_offers(node["@graph"])
        offers = node.get("offers")
        if isinstance(offers, dict):
            yield offers
            currency = offers.get("priceCurrency")
            for nested in PriceExtractor._iter_offers(offers.get("offers")):
                if currency and not nested.get("priceCurrency"):
                    nested = {**nested, "priceCurrency": currency}
                yield nested
        elif isinstance(offers, list):
            yield from PriceExtractor._iter_offers(offers)
        for key in ("itemListElement", "item"):
            if key in node:
                yield from PriceExtractor._iter_offers(node[key])

    @staticmethod
    def _json_ld_prices(
        soup: BeautifulSoup,
    ) -> list[tuple[float, str | None]]:
        """Read ``offers`` from every JSON-LD block on the page."""
        found: list[tuple[float, str | None]] = []
        for script in soup.find_all(
            "script", attrs={"type": "application/ld+json"}
        ):
            raw = script.string or script.get_text()
            if not raw:
                continue
            try:
                data: Any = json.loads(raw)
            except (json.JSONDecodeError, TypeError):
                logger.debug("Skipping unparsable JSON-LD block")
                continue
            for offer in PriceExtractor._iter_offers(data):
                amount = parse_amount(
                    offer.get("price", offer.get("lowPrice"))
                )
                if amount is not None:
                    found.append(
                        (amount, _clean_currency(offer.get("priceCurrency")))
                    )
        return found

    @staticmethod
    def _microdata_prices(
        soup: BeautifulSoup,
    ) -> list[tuple[float, str | None]]:
        """Read ``itemprop="price"`` microdata."""
        currency_el = soup.find(attrs={"itemprop": "priceCurrency"})
        currency = None
        if currency_el is not None:
            currency = _clean_currency(
                currency_el.get("content") or currency_el.get_text()
            )
        found: list[tuple[float, str | None]] = []
        for el in soup.find_all(attrs={"itemprop": "price"}):
            amount = parse_amount(el.get("content") or el.get_text())
            if amount is not None:
                found.append((amount, currency))
        return found

    def _structured(
        self, soup: BeautifulSoup,
    ) -> tuple[list[ExtractedPrice], str | None]:
        """Structured-data candidates plus the page-declared currency."""
        meta_amounts, page_currency = self._meta_prices(soup)
        pairs: list[tuple[float, str | None]] = [
            (a, page_currency) for a in meta_amounts
        ]
        if not pairs:
            pairs = self._json_ld_prices(soup)
        if not pairs:
            pairs = self._microdata_prices(soup)
        if page_currency is None:
            page_currency = next((c for _a, c in pairs if c), None)

        fallback = page_currency or self.rules.currency
        return [
            ExtractedPrice(
                amount=amount,
                currency=currency or fallback,
                kind=SALE,
                method=STRUCTURED,
            )
            for amount, currency in pairs
        ], page_currency

    # ── Labeled text ─────────────────────────────────────

    def _labeled(self, html: str, currency: str) -> list[ExtractedPrice]:
        """Find "<label> ... $ 225.00" style list prices."""
        found: list[ExtractedPrice] = []
        for label in self.rules.labels:
            regex = self.rules.pattern(
                re.escape(label)
                + r"[\s\S]{0,%d}?" % self.rules.label_window
                + r"(US\$|CA\$|C\$|\$|€|£)\s*([0-9][0-9,]*(?:\.\d+)?)"
            )
            match = regex.search(html)
            if not match:
                continue
            amount = parse_amount(match.group(2))
            if amount is None:
                continue
            found.append(
                ExtractedPrice(
                    amount=amount,
                    currency=_SYMBOL_CURRENCY.get(match.group(1), currency),
                    kind=MSRP,
                    method=LABELED,
                )
            )
        return found

    # ── Generic symbol + number ──────────────────────────

    def _generic(self, html: str, currency: str) -> list[ExtractedPrice]:
        """Collect every symbol/number match from the configured patterns."""
        found: list[ExtractedPrice] = []
        for raw_pattern in self.rules.generic_patterns:
            for match in self.rules.pattern(raw_pattern).finditer(html):
                amount = parse_amount(match.group(1))
                if amount is None:
                    continue
                found.append(
                    ExtractedPrice(
                        amount=amount,
                        currency=currency,
                        kind=SALE,
                        method=GENERIC,
                    )
                )
        return found

    # ── Public entry point ───────────────────────────────

    def extract(self, html: str | None) -> list[ExtractedPrice]:
        """Return de-duplicated price candidates found in *html*."""
        if not html:
            return []

        soup = BeautifulSoup(html, "lxml")
        structured, page_currency = self._structured(soup)
        currency = page_currency or self.rules.currency

        produced_kinds: set[str] = set()
        seen: set[tuple[str, float]] = set()
        results: list[ExtractedPrice] = []

        for strategy in self.rules.strategies:
            if strategy == STRUCTURED:
                candidates = structured
            elif strategy == LABELED:
                candidates = self._labeled(html, currency)
            elif strategy == GENERIC:
                candidates = self._generic(html, currency)
            else:
                logger.warning("Unknown extraction strategy '%s'", strategy)
                continue

            new_kinds: set[str] = set()
            for candidate in candidates:
                if candidate.kind in produced_kinds:
                    continue
                needs_range = (
                    strategy == GENERIC or self.rules.filter_all
                )
                if needs_range and not self.rules.is_plausible(
                    candidate.amount
                ):
                    continue
                key = (candidate.kind, candidate.amount)
                if key in seen:
                    continue
                seen.add(key)
                new_kinds.add(candidate.kind)
                results.append(candidate)
            produced_kinds |= new_kinds

        logger.debug(
            "Extracted %d price candidate(s) via %s",
            len(results),
            sorted({r.method for r in results}) or "none",
        )
        return results
