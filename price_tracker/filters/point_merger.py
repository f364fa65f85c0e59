# price_tracker/filters/point_merger.py

"""Merge, convert, de-duplicate and order price points."""

import dataclasses
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, timedelta

from price_tracker.models.price_point import PricePoint
from price_tracker.services.fx_converter import FxRateError

logger = logging.getLogger("price_tracker.filters")

Converter = Callable[[PricePoint], PricePoint]


@dataclass
class MergeResult:
    """Canonical series plus bookkeeping from one merge."""

    series: list[PricePoint] = field(
        default_factory=lambda: list[PricePoint]()
    )
    deduplicated_count: int = 0
    skipped_count: int = 0
    spread_count: int = 0


class PointMerger:
    """Build the canonical series from primary, archive and supplementary points.

    The merger never touches the network or the filesystem: currency
    conversion is injected as a callable that returns a converted point
    or raises :class:`FxRateError`.
    """

    @staticmethod
    def deduplicate(
        points: list[PricePoint],
    ) -> tuple[list[PricePoint], int]:
        """Drop later points sharing a ``(date, kind, amount, currency, source)`` key.

        Returns the kept points (first occurrence wins) and the number removed.
        """
        seen: set[tuple[date, str, float, str, str]] = set()
        kept: list[PricePoint] = []
        for point in points:
            key = point.dedup_key
            if key in seen:
                continue
            seen.add(key)
            kept.append(point)

        removed = len(points) - len(kept)
        if removed:
            logger.info("Deduplication removed %d duplicate points", removed)
        return kept, removed

    @staticmethod
    def spread_same_day(
        points: list[PricePoint],
    ) -> tuple[list[PricePoint], int]:
        """Spread same-day points of one source across preceding days.

        Points are grouped on ``(source_id, date)``.  A group of N > 1,
        ordered by ascending amount, is re-dated onto the N consecutive
        days ending on the shared date, cheapest first.  Singletons and
        the input order are left untouched.

        Returns the re-dated list and the number of points moved.
        """
        groups: dict[tuple[str, date], list[int]] = {}
        for idx, point in enumerate(points):
            groups.setdefault((point.source_id, point.date), []).append(idx)

        spread = list(points)
        moved = 0
        for (_source, shared_date), indices in groups.items():
            if len(indices) < 2:
                continue
            ordered = sorted(
                indices,
                key=lambda i: (
                    points[i].price.amount,
                    points[i].kind,
                    points[i].price.currency,
                ),
            )
            last = len(ordered) - 1
            for rank, idx in enumerate(ordered):
                new_date = shared_date - timedelta(days=last - rank)
                if new_date != shared_date:
                    moved += 1
                spread[idx] = dataclasses.replace(points[idx], date=new_date)

        if moved:
            logger.info("Spread %d same-day supplementary points", moved)
        return spread, moved

    @staticmethod
    def refresh_sources(
        stored: list[PricePoint],
        fresh: list[PricePoint],
    ) -> list[PricePoint]:
        """Replace stored points of every source that produced fresh ones.

        Marketplace listings are transient inventory: once a source has
        been re-scraped, its previously stored points are discarded.
        Sources without fresh points keep their stored points.  Fresh
        points repeating a dedup key are added once.  The result is
        ordered by date, then amount.
        """
        refreshed = {p.source_id for p in fresh}
        kept = [p for p in stored if p.source_id not in refreshed]
        discarded = len(stored) - len(kept)
        if discarded:
            logger.info(
                "Discarded %d stale point(s) for refreshed source(s) %s",
                discarded,
                ", ".join(sorted(refreshed)),
            )

        seen = {p.dedup_key for p in kept}
        for point in fresh:
            key = point.dedup_key
            if key in seen:
                continue
            seen.add(key)
            kept.append(point)

        return sorted(kept, key=lambda p: (p.date, p.price.amount))

    @staticmethod
    def sort_series(points: list[PricePoint]) -> list[PricePoint]:
        """Order by date, breaking ties deterministically by amount."""
        return sorted(
            points,
            key=lambda p: (
                p.date,
                p.price.amount,
                p.kind,
                p.source_id,
                p.price.currency,
            ),
        )

    def merge(
        self,
        primary: list[PricePoint],
        historical: list[PricePoint],
        supplementary: list[PricePoint],
        convert: Converter,
    ) -> MergeResult:
        """Produce the canonical, converted, de-duplicated series.

        Points whose conversion fails are skipped with a warning.
        """
        result = MergeResult()

        unique_supp, _ = self.deduplicate(supplementary)
        spread_supp, result.spread_count = self.spread_same_day(unique_supp)

        converted: list[PricePoint] = []
        for point in [*primary, *historical, *spread_supp]:
            try:
                converted.append(convert(point))
            except FxRateError as exc:
                result.skipped_count += 1
                logger.warning(
                    "Skipping %s %s point from %s on %s: %s",
                    point.kind,
                    point.price.currency,
                    point.source_id,
                    point.date,
                    exc,
                )

        kept, result.deduplicated_count = self.deduplicate(converted)
        result.series = self.sort_series(kept)
        return result
