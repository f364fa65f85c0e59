# tests/test_snapshot_locator.py

"""Tests for CDX parsing, collapsing, sampling and pattern fallback."""

import unittest
from datetime import date
from typing import Any

from price_tracker.models.snapshot import SnapshotRef
from price_tracker.scrapers.page_fetcher import FetchError
from price_tracker.services.snapshot_locator import (
    COLLAPSE_DAILY,
    SnapshotIndexError,
    SnapshotLocator,
    first_per_month,
    parse_cdx_rows,
    sample_evenly,
    timestamp_to_date,
)

URL = "https://shop.example.com/products/hat"


class _FakeFetcher:
    """Returns canned CDX payloads keyed by the ``url`` parameter."""

    def __init__(self, payloads: dict[str, Any]) -> None:
        self.payloads = payloads
        self.calls: list[dict[str, str]] = []

    def fetch_json(
        self, url: str, params: dict[str, str] | None = None,
    ) -> Any:
        """Return the payload or raise the stored exception."""
        assert params is not None
        self.calls.append(params)
        payload = self.payloads[params["url"]]
        if isinstance(payload, Exception):
            raise payload
        return payload


def _monthly_refs(count: int) -> list[SnapshotRef]:
    """One ref on the first of each month starting January 2021."""
    refs = []
    for i in range(count):
        year, month = 2021 + i // 12, i % 12 + 1
        refs.append(SnapshotRef(
            timestamp=f"{year}{month:02d}01120000",
            archived_date=date(year, month, 1),
            original_url=URL,
        ))
    return refs


class TestParseCdxRows(unittest.TestCase):
    """parse_cdx_rows behaviour."""

    def test_skips_header_and_collapses_same_day(self) -> None:
        """Only the first capture of a day is kept, oldest first."""
        payload = [
            ["timestamp", "original"],
            ["20240610083000", URL],
            ["20240610170000", URL],
            ["20230101000000", URL],
        ]
        refs = parse_cdx_rows(payload, URL)
        self.assertEqual(
            [r.timestamp for r in refs],
            ["20230101000000", "20240610083000"],
        )
        self.assertEqual(refs[1].archived_date, date(2024, 6, 10))

    def test_empty_index(self) -> None:
        """An empty list means no captures."""
        self.assertEqual(parse_cdx_rows([], URL), [])

    def test_non_list_payload_raises(self) -> None:
        """A dict payload is a malformed index response."""
        with self.assertRaises(SnapshotIndexError):
            parse_cdx_rows({"error": "rate limited"}, URL)

    def test_malformed_rows_ignored(self) -> None:
        """Rows with bad timestamps are dropped."""
        payload = [["timestamp"], ["garbage"], [], ["20241301000000"], ["20240102030405"]]
        refs = parse_cdx_rows(payload, URL)
        self.assertEqual(len(refs), 1)
        self.assertEqual(refs[0].original_url, URL)

    def test_timestamp_to_date(self) -> None:
        """Timestamps convert to calendar dates."""
        self.assertEqual(timestamp_to_date("20200229235959"), date(2020, 2, 29))
        self.assertIsNone(timestamp_to_date("2020"))


class TestSampling(unittest.TestCase):
    """first_per_month and sample_evenly."""

    def test_sample_spreads_across_range(self) -> None:
        """30 monthly refs sampled to 10 keep both ends and spread evenly."""
        refs = _monthly_refs(30)
        sampled = sample_evenly(refs, 10)

        self.assertEqual(len(sampled), 10)
        self.assertEqual(sampled[0], refs[0])
        self.assertEqual(sampled[-1], refs[-1])
        indices = [refs.index(r) for r in sampled]
        self.assertNotEqual(indices, list(range(10)))
        gaps = [b - a for a, b in zip(indices, indices[1:])]
        self.assertTrue(all(3 <= g <= 4 for g in gaps))

    def test_sample_smaller_than_cap_unchanged(self) -> None:
        """Short histories are returned whole."""
        refs = _monthly_refs(4)
        self.assertEqual(sample_evenly(refs, 10), refs)

    def test_sample_degenerate_caps(self) -> None:
        """cap 0 yields nothing, cap 1 the latest capture."""
        refs = _monthly_refs(5)
        self.assertEqual(sample_evenly(refs, 0), [])
        self.assertEqual(sample_evenly(refs, 1), [refs[-1]])

    def test_first_per_month(self) -> None:
        """Only the earliest capture of each month survives."""
        refs = [
            SnapshotRef("20240115000000", date(2024, 1, 15), URL),
            SnapshotRef("20240103000000", date(2024, 1, 3), URL),
            SnapshotRef("20240220000000", date(2024, 2, 20), URL),
        ]
        kept = first_per_month(refs)
        self.assertEqual(
            [r.timestamp for r in kept],
            ["20240103000000", "20240220000000"],
        )


class TestSnapshotLocator(unittest.TestCase):
    """SnapshotLocator queries and fallbacks."""

    def test_query_parameters(self) -> None:
        """Only successful captures are requested with index collapsing."""
        fetcher = _FakeFetcher({URL: [["timestamp", "original"]]})
        locator = SnapshotLocator(fetcher)  # type: ignore[arg-type]
        locator.list_snapshots(
            URL, from_date=date(2023, 1, 1), limit=50,
        )
        params = fetcher.calls[0]
        self.assertEqual(params["filter"], "statuscode:200")
        self.assertEqual(params["collapse"], "digest")
        self.assertEqual(params["output"], "json")
        self.assertEqual(params["from"], "20230101")
        self.assertEqual(params["limit"], "50")

    def test_fetch_error_becomes_index_error(self) -> None:
        """An unreachable index surfaces as SnapshotIndexError."""
        fetcher = _FakeFetcher({URL: FetchError("HTTP 503")})
        locator = SnapshotLocator(fetcher)  # type: ignore[arg-type]
        with self.assertRaises(SnapshotIndexError):
            locator.list_snapshots(URL)

    def test_locate_any_falls_back_to_wildcard(self) -> None:
        """An empty exact-URL result moves on to the next pattern."""
        wildcard = "https://www.ebay.com/sch/i.html*"
        fetcher = _FakeFetcher({
            URL: [["timestamp", "original"]],
            wildcard: [
                ["timestamp", "original"],
                ["20240301000000", "https://www.ebay.com/sch/i.html?_nkw=x"],
            ],
        })
        locator = SnapshotLocator(fetcher)  # type: ignore[arg-type]
        refs = locator.locate_any([URL, wildcard], collapse=COLLAPSE_DAILY)
        self.assertEqual(len(refs), 1)
        self.assertEqual(fetcher.calls[1]["collapse"], "timestamp:8")

    def test_locate_any_all_failed_raises(self) -> None:
        """Every pattern failing is reported to the caller."""
        fetcher = _FakeFetcher({URL: ["not", "rows"], "b*": FetchError("down")})
        fetcher.payloads[URL] = {"bad": True}
        locator = SnapshotLocator(fetcher)  # type: ignore[arg-type]
        with self.assertRaises(SnapshotIndexError):
            locator.locate_any([URL, "b*"])

    def test_locate_any_empty_but_reachable(self) -> None:
        """A reachable index with no captures yields an empty list."""
        fetcher = _FakeFetcher({URL: [], "b*": FetchError("down")})
        locator = SnapshotLocator(fetcher)  # type: ignore[arg-type]
        self.assertEqual(locator.locate_any([URL, "b*"]), [])


if __name__ == "__main__":
    unittest.main()
