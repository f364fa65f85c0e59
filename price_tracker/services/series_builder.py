# price_tracker/services/series_builder.py

"""Orchestrates one end-to-end price series run."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from operator import methodcaller
from pathlib import Path
from typing import Any

from price_tracker.config.settings import Settings
from price_tracker.filters.point_merger import PointMerger
from price_tracker.models.price_point import PricePoint
from price_tracker.models.snapshot import SnapshotRef
from price_tracker.models.source import MARKETPLACE, SourceDescriptor
from price_tracker.scrapers.page_fetcher import FetchError
from price_tracker.scrapers.price_extractor import ExtractionRules
from price_tracker.scrapers.source_scraper import SourceScraper
from price_tracker.services.fx_converter import FxConverter
from price_tracker.services.snapshot_locator import (
    COLLAPSE_DAILY,
    COLLAPSE_DIGEST,
    SnapshotIndexError,
    SnapshotLocator,
    first_per_month,
    sample_evenly,
)
from price_tracker.storage.series_store import SeriesStore

logger = logging.getLogger("price_tracker.builder")

ScraperFactory = Callable[[SourceDescriptor], Any]


@dataclass
class BuildResult:
    """Container for a completed series build."""

    product: dict[str, Any]
    sources: list[SourceDescriptor]
    series: list[PricePoint] = field(
        default_factory=lambda: list[PricePoint]()
    )
    primary_count: int = 0
    historical_count: int = 0
    supplementary_count: int = 0
    marketplace_count: int = 0
    deduplicated_count: int = 0
    skipped_count: int = 0
    errors: list[str] = field(
        default_factory=lambda: list[str]()
    )


def load_sources(
    entries: list[dict[str, Any]] | None = None,
) -> dict[str, SourceDescriptor]:
    """Build the source registry, keyed by id, in configuration order."""
    raw = entries if entries is not None else Settings.AVAILABLE_SOURCES
    registry: dict[str, SourceDescriptor] = {}
    for entry in raw:
        source = SourceDescriptor.from_config(entry)
        registry[source.id] = source
    return registry


class SeriesBuilder:
    """Fetch, convert, merge and emit the canonical price series.

    Only a failure to fetch the primary source's live page aborts a
    run.  Every other fetch (snapshot index, snapshot pages,
    marketplace pages, FX rates) degrades to "no point" with a warning.
    """

    def __init__(
        self,
        primary_source_id: str | None = None,
        display_currency: str | None = None,
        sources: dict[str, SourceDescriptor] | None = None,
        store: SeriesStore | None = None,
        locator: SnapshotLocator | None = None,
        converter: FxConverter | None = None,
        scraper_factory: ScraperFactory | None = None,
        today: date | None = None,
    ) -> None:
        self.settings = Settings()
        self.sources = sources if sources is not None else load_sources()
        source_id = primary_source_id or self.settings.PRIMARY_SOURCE_ID
        if source_id not in self.sources:
            valid = ", ".join(self.sources)
            msg = f"Unknown primary source '{source_id}' (available: {valid})"
            raise ValueError(msg)
        self.primary = self.sources[source_id]
        self.display_currency = (
            display_currency or self.settings.DISPLAY_CURRENCY
        ).upper()
        self.store = store or SeriesStore()
        self.locator = locator or SnapshotLocator()
        self.converter = converter or FxConverter()
        self.merger = PointMerger()
        self._rules: dict[str, ExtractionRules] = {}
        if scraper_factory is None:
            self._rules = {
                s.id: ExtractionRules.for_source(s.id, s.currency)
                for s in self.sources.values()
            }
        self._scraper_factory: ScraperFactory = (
            scraper_factory or self._make_scraper
        )
        self._today = today

    @property
    def today(self) -> date:
        """UTC date attributed to live observations."""
        return self._today or datetime.now(timezone.utc).date()

    def product_metadata(self) -> dict[str, Any]:
        """Static descriptive block of the artifact."""
        name = self.settings.PRODUCT["name"]
        color = self.settings.PRODUCT["color"]
        return {
            **self.settings.PRODUCT,
            "currencyDisplay": self.display_currency,
            "notes": [
                f"This tracker focuses on the {name} in the {color} colour.",
                "Historical points may be sourced from Web Archive "
                "snapshots when available; their dates are capture dates.",
                "Prices are converted to "
                f"{self.display_currency} using historical FX rates "
                "for the capture date.",
            ],
        }

    def ordered_sources(self) -> list[SourceDescriptor]:
        """Primary source first, then the rest in configuration order."""
        return [self.primary] + [
            s for s in self.sources.values() if s.id != self.primary.id
        ]

    # ── Private helpers ──────────────────────────────────

    def _convert(self, point: PricePoint) -> PricePoint:
        """Converter bound to this run's display currency."""
        return self.converter.convert(point, self.display_currency)

    def _make_scraper(self, source: SourceDescriptor) -> SourceScraper:
        """Default factory reusing the rules loaded at construction."""
        return SourceScraper(source, rules=self._rules.get(source.id))

    def _scrape(
        self,
        source: SourceDescriptor,
        fetch: Callable[[Any], list[PricePoint]],
    ) -> list[PricePoint]:
        """Run *fetch* on a fresh scraper and close it afterwards.

        Called in a worker thread; each call owns its HTTP session.
        """
        scraper = self._scraper_factory(source)
        try:
            return fetch(scraper)
        finally:
            scraper.close()

    async def _fetch_primary(self) -> list[PricePoint]:
        """Fetch the live primary page; failures are fatal."""
        try:
            points: list[PricePoint] = await asyncio.to_thread(
                self._scrape,
                self.primary,
                methodcaller("fetch_live", self.today),
            )
        except FetchError:
            logger.error(
                "Primary source '%s' could not be fetched",
                self.primary.id,
                exc_info=True,
            )
            raise
        if not points:
            logger.warning(
                "No price found on the primary page %s", self.primary.url,
            )
        return points

    async def _locate(
        self,
        source: SourceDescriptor,
        collapse: str,
        limit: int | None,
        errors: list[str],
    ) -> list[SnapshotRef]:
        """Locate captures of *source*; an index failure yields none."""
        try:
            refs: list[SnapshotRef] = await asyncio.to_thread(
                self.locator.locate_any,
                source.search_patterns,
                collapse,
                limit,
            )
        except SnapshotIndexError as exc:
            errors.append(str(exc))
            logger.warning(
                "No historical data for '%s': %s", source.id, exc,
            )
            return []
        return refs

    async def _fetch_snapshots(
        self,
        source: SourceDescriptor,
        refs: list[SnapshotRef],
        errors: list[str],
    ) -> list[PricePoint]:
        """Fetch sampled captures concurrently; failures skip one date."""
        semaphore = asyncio.Semaphore(self.settings.MAX_CONCURRENT_FETCHES)

        async def fetch_one(ref: SnapshotRef) -> list[PricePoint]:
            async with semaphore:
                points: list[PricePoint] = await asyncio.to_thread(
                    self._scrape,
                    source,
                    methodcaller("fetch_snapshot", ref),
                )
                return points

        batches = await asyncio.gather(
            *(fetch_one(ref) for ref in refs), return_exceptions=True
        )

        points: list[PricePoint] = []
        for ref, batch in zip(refs, batches):
            if isinstance(batch, list):
                points.extend(batch)
            elif isinstance(batch, Exception):
                errors.append(f"{source.id}@{ref.timestamp}: {batch}")
                logger.warning(
                    "Skipping snapshot %s of '%s': %s",
                    ref.timestamp,
                    source.id,
                    batch,
                )
            else:
                raise batch
        return points

    async def _fetch_history(self, errors: list[str]) -> list[PricePoint]:
        """Monthly, evenly sampled archive history of the primary page."""
        if not self.primary.historical:
            logger.info(
                "Primary source '%s' has no archive history; skipping",
                self.primary.id,
            )
            return []
        refs = await self._locate(self.primary, COLLAPSE_DIGEST, None, errors)
        sampled = sample_evenly(
            first_per_month(refs), self.settings.WAYBACK_MAX_SNAPSHOTS,
        )
        logger.info(
            "Fetching %d of %d archived capture(s) for '%s'",
            len(sampled),
            len(refs),
            self.primary.id,
        )
        return await self._fetch_snapshots(self.primary, sampled, errors)

    async def _scrape_marketplace(
        self,
        source: SourceDescriptor,
        errors: list[str],
    ) -> list[PricePoint]:
        """Live listings plus sampled daily captures of one marketplace."""
        points: list[PricePoint] = []
        try:
            live: list[PricePoint] = await asyncio.to_thread(
                self._scrape, source, methodcaller("fetch_live", self.today)
            )
            points.extend(live)
        except FetchError as exc:
            errors.append(f"{source.id}: {exc}")
            logger.warning("Marketplace '%s' failed: %s", source.id, exc)

        if source.historical:
            refs = await self._locate(
                source,
                COLLAPSE_DAILY,
                self.settings.MARKETPLACE_CDX_LIMIT,
                errors,
            )
            sampled = sample_evenly(
                refs, self.settings.MARKETPLACE_MAX_SNAPSHOTS,
            )
            points.extend(
                await self._fetch_snapshots(source, sampled, errors)
            )

        logger.info(
            "Marketplace '%s' yielded %d point(s)", source.id, len(points),
        )
        return points

    async def _refresh_marketplaces(
        self,
        stored: list[PricePoint],
        errors: list[str],
    ) -> tuple[list[PricePoint], int]:
        """Re-scrape marketplaces and persist the refreshed store.

        A marketplace chosen as the primary source is already fetched
        live and is not scraped again.
        """
        marketplaces = [
            s
            for s in self.sources.values()
            if s.role == MARKETPLACE and s.id != self.primary.id
        ]
        batches = await asyncio.gather(
            *(self._scrape_marketplace(s, errors) for s in marketplaces)
        )
        fresh = [p for batch in batches for p in batch]
        if not fresh:
            logger.info("No marketplace points found; store unchanged")
            return stored, 0

        refreshed = self.merger.refresh_sources(stored, fresh)
        await asyncio.to_thread(self.store.save_supplementary, refreshed)
        return refreshed, len(fresh)

    # ── Public entry points ──────────────────────────────

    async def build(
        self,
        include_historical: bool = False,
        refresh_marketplace: bool = False,
    ) -> BuildResult:
        """Run the pipeline and return the canonical series.

        Raises:
            FetchError: When the primary live page cannot be fetched.
        """
        result = BuildResult(
            product=self.product_metadata(),
            sources=self.ordered_sources(),
        )

        primary = await self._fetch_primary()
        result.primary_count = len(primary)

        historical: list[PricePoint] = []
        if include_historical:
            historical = await self._fetch_history(result.errors)
        result.historical_count = len(historical)

        supplementary: list[PricePoint] = await asyncio.to_thread(
            self.store.load_supplementary
        )
        if refresh_marketplace:
            supplementary, result.marketplace_count = (
                await self._refresh_marketplaces(
                    supplementary, result.errors
                )
            )
        result.supplementary_count = len(supplementary)

        merged = await asyncio.to_thread(
            self.merger.merge,
            primary,
            historical,
            supplementary,
            self._convert,
        )
        result.series = merged.series
        result.deduplicated_count = merged.deduplicated_count
        result.skipped_count = merged.skipped_count

        logger.info(
            "Built series of %d point(s) (%d primary, %d archived, "
            "%d supplementary, %d skipped, %d duplicates)",
            len(result.series),
            result.primary_count,
            result.historical_count,
            result.supplementary_count,
            result.skipped_count,
            result.deduplicated_count,
        )
        return result

    async def run(
        self,
        include_historical: bool = False,
        refresh_marketplace: bool = False,
    ) -> tuple[BuildResult, Path]:
        """Build the series and write the canonical artifact."""
        result = await self.build(include_historical, refresh_marketplace)
        path = await asyncio.to_thread(
            self.store.write_series,
            result.product,
            result.sources,
            result.series,
        )
        return result, path
