# price_tracker/scrapers/source_scraper.py

"""Turn a source's live page or archived snapshot into price points."""

import logging
from datetime import date

from price_tracker.config.settings import Settings
from price_tracker.models.price_point import Money, PricePoint
from price_tracker.models.snapshot import SnapshotRef
from price_tracker.models.source import SourceDescriptor
from price_tracker.scrapers.page_fetcher import PageFetcher
from price_tracker.scrapers.price_extractor import (
    ExtractionRules,
    PriceExtractor,
)


def snapshot_page_url(ref: SnapshotRef, url: str | None = None) -> str:
    """Return the Wayback URL replaying *url* at the capture of *ref*.

    *url* defaults to the captured URL.  The archive redirects to the
    nearest capture when *url* was not captured at that exact second.
    """
    return Settings.WAYBACK_WEB_URL.format(
        timestamp=ref.timestamp, url=url or ref.original_url,
    )


class SourceScraper:
    """Fetch and parse pages belonging to one configured source.

    Fetch failures propagate as :class:`FetchError`; deciding whether
    that is fatal is left to the caller.  A page without recognisable
    prices simply yields no points.
    """

    def __init__(
        self,
        source: SourceDescriptor,
        rules: ExtractionRules | None = None,
        fetcher: PageFetcher | None = None,
    ) -> None:
        self.source = source
        self.logger = logging.getLogger(f"price_tracker.{source.id}")
        self.rules = rules or ExtractionRules.for_source(
            source.id, source.currency
        )
        self.extractor = PriceExtractor(self.rules)
        self.fetcher = fetcher or PageFetcher(source.id)

    def points_from_html(
        self,
        html: str,
        observed_on: date,
        url: str,
        wayback: str | None = None,
    ) -> list[PricePoint]:
        """Build unconverted points from every candidate on the page."""
        candidates = self.extractor.extract(html)
        return [
            PricePoint(
                date=observed_on,
                kind=c.kind,
                price=Money(amount=c.amount, currency=c.currency),
                source_id=self.source.id,
                url=url,
                wayback=wayback,
            )
            for c in candidates
        ]

    def fetch_live(self, today: date) -> list[PricePoint]:
        """Fetch the source's canonical URL and date the points *today*."""
        html = self.fetcher.fetch_text(self.source.url)
        points = self.points_from_html(html, today, self.source.url)
        self.logger.info(
            "[%s] Live page yielded %d point(s)",
            self.source.id,
            len(points),
        )
        return points

    def fetch_snapshot(self, ref: SnapshotRef) -> list[PricePoint]:
        """Fetch the source page as archived at *ref*, dated by its archive date.

        Refs located through a wildcard pattern may point at another
        URL; the canonical source URL is always the one replayed.
        """
        page_url = snapshot_page_url(ref, self.source.url)
        html = self.fetcher.fetch_text(page_url)
        points = self.points_from_html(
            html, ref.archived_date, page_url, wayback=ref.timestamp,
        )
        self.logger.debug(
            "[%s] Snapshot %s yielded %d point(s)",
            self.source.id,
            ref.timestamp,
            len(points),
        )
        return points

    def close(self) -> None:
        """Close the fetcher's HTTP session."""
        self.fetcher.close()
