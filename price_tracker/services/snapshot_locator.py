# price_tracker/services/snapshot_locator.py

"""Locate and sample Wayback Machine captures through the CDX index."""

import logging
from datetime import date
from typing import Any

from price_tracker.config.settings import Settings
from price_tracker.models.snapshot import SnapshotRef
from price_tracker.scrapers.page_fetcher import FetchError, PageFetcher

logger = logging.getLogger("price_tracker.wayback")

COLLAPSE_DIGEST = "digest"
COLLAPSE_DAILY = "timestamp:8"


class SnapshotIndexError(Exception):
    """Raised when the CDX index is unreachable or returns garbage."""


def timestamp_to_date(timestamp: str) -> date | None:
    """Convert ``YYYYMMDDhhmmss`` to a date, or None if malformed."""
    if len(timestamp) < 8 or not timestamp[:8].isdigit():
        return None
    try:
        return date(
            int(timestamp[0:4]), int(timestamp[4:6]), int(timestamp[6:8])
        )
    except ValueError:
        return None


def parse_cdx_rows(payload: Any, original_url: str) -> list[SnapshotRef]:
    """Turn a CDX ``output=json`` payload into one ref per calendar day.

    The payload is a header row followed by ``[timestamp, original]``
    rows.  The first capture encountered for a date wins; the result is
    ordered oldest first.

    Raises:
        SnapshotIndexError: If *payload* is not a list.
    """
    if not isinstance(payload, list):
        raise SnapshotIndexError(
            f"CDX payload is {type(payload).__name__}, expected list"
        )

    rows = payload
    if rows and isinstance(rows[0], list) and rows[0][:1] == ["timestamp"]:
        rows = rows[1:]

    by_date: dict[date, SnapshotRef] = {}
    for row in rows:
        if not isinstance(row, list) or not row or not row[0]:
            continue
        timestamp = str(row[0])
        archived = timestamp_to_date(timestamp)
        if archived is None or archived in by_date:
            continue
        original = (
            str(row[1]) if len(row) > 1 and row[1] else original_url
        )
        by_date[archived] = SnapshotRef(
            timestamp=timestamp,
            archived_date=archived,
            original_url=original,
        )

    return sorted(by_date.values(), key=lambda r: r.archived_date)


def first_per_month(refs: list[SnapshotRef]) -> list[SnapshotRef]:
    """Keep the earliest capture of each calendar month."""
    by_month: dict[tuple[int, int], SnapshotRef] = {}
    for ref in sorted(refs, key=lambda r: r.timestamp):
        key = (ref.archived_date.year, ref.archived_date.month)
        by_month.setdefault(key, ref)
    return [by_month[k] for k in sorted(by_month)]


def sample_evenly(
    refs: list[SnapshotRef], cap: int,
) -> list[SnapshotRef]:
    """Pick at most *cap* refs spread evenly over the whole range.

    The earliest and latest captures are always kept when ``cap >= 2``;
    with ``cap == 1`` only the latest is returned.
    """
    if cap <= 0:
        return []
    if len(refs) <= cap:
        return list(refs)
    if cap == 1:
        return [refs[-1]]

    last = len(refs) - 1
    span = cap - 1
    # Integer round-half-up of i * last / span
    indices = sorted({
        (2 * i * last + span) // (2 * span) for i in range(cap)
    })
    return [refs[i] for i in indices]


class SnapshotLocator:
    """Query the Wayback CDX index for successful captures of a URL."""

    def __init__(self, fetcher: PageFetcher | None = None) -> None:
        self.settings = Settings()
        self.fetcher = fetcher or PageFetcher("wayback")

    def list_snapshots(
        self,
        url_pattern: str,
        from_date: date | None = None,
        to_date: date | None = None,
        collapse: str = COLLAPSE_DIGEST,
        limit: int | None = None,
    ) -> list[SnapshotRef]:
        """Return one capture per day for *url_pattern*, oldest first.

        *url_pattern* may end in ``*`` for a prefix match.

        Raises:
            SnapshotIndexError: When the index cannot be queried or
                returns a malformed payload.
        """
        params: dict[str, str] = {
            "url": url_pattern,
            "output": "json",
            "fl": "timestamp,original",
            "filter": "statuscode:200",
            "collapse": collapse,
        }
        if from_date is not None:
            params["from"] = from_date.strftime("%Y%m%d")
        if to_date is not None:
            params["to"] = to_date.strftime("%Y%m%d")
        if limit is not None:
            params["limit"] = str(limit)

        try:
            payload = self.fetcher.fetch_json(
                self.settings.CDX_API_URL, params
            )
        except FetchError as exc:
            raise SnapshotIndexError(
                f"CDX query failed for {url_pattern}: {exc}"
            ) from exc

        refs = parse_cdx_rows(payload, url_pattern)
        logger.info(
            "CDX index returned %d daily capture(s) for %s",
            len(refs),
            url_pattern,
        )
        return refs

    def locate_any(
        self,
        patterns: list[str],
        collapse: str = COLLAPSE_DIGEST,
        limit: int | None = None,
    ) -> list[SnapshotRef]:
        """Try *patterns* in order and return the first non-empty result.

        Raises:
            SnapshotIndexError: Only when every pattern failed.
        """
        last_error: SnapshotIndexError | None = None
        any_succeeded = False
        for pattern in patterns:
            try:
                refs = self.list_snapshots(
                    pattern, collapse=collapse, limit=limit
                )
            except SnapshotIndexError as exc:
                logger.warning("%s", exc)
                last_error = exc
                continue
            any_succeeded = True
            if refs:
                return refs

        if not any_succeeded and last_error is not None:
            raise last_error
        return []
