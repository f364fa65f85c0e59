# tests/test_point_validator.py

"""Tests for supplementary entry validation."""

import unittest
from datetime import date

from price_tracker.filters.point_validator import PointValidator


def _entry(**overrides: object) -> dict[str, object]:
    """A well-formed supplementary entry with optional overrides."""
    data: dict[str, object] = {
        "date": "2024-06-10",
        "kind": "sale",
        "price": {"amount": 199.0, "currency": "usd"},
        "sourceId": "grailed",
        "url": "https://www.grailed.com/listings/1",
    }
    data.update(overrides)
    return data


class TestParseEntry(unittest.TestCase):
    """PointValidator.parse_entry behaviour."""

    def test_valid_entry(self) -> None:
        """A complete entry becomes a point with normalised currency."""
        point = PointValidator.parse_entry(
            _entry(wayback={"timestamp": "20240610000000"})
        )
        assert point is not None
        self.assertEqual(point.date, date(2024, 6, 10))
        self.assertEqual(point.price.currency, "USD")
        self.assertEqual(point.wayback, "20240610000000")
        self.assertIsNone(point.price_display)

    def test_malformed_entries_rejected(self) -> None:
        """Each broken field invalidates the entry."""
        cases = {
            "bad date": _entry(date="10/06/2024"),
            "bad kind": _entry(kind="retail"),
            "zero amount": _entry(price={"amount": 0, "currency": "USD"}),
            "text amount": _entry(price={"amount": "cheap", "currency": "USD"}),
            "bad currency": _entry(price={"amount": 10, "currency": "DOLLAR"}),
            "no price": _entry(price=None),
            "no source": _entry(sourceId=""),
            "no url": _entry(url=None),
        }
        for label, entry in cases.items():
            with self.subTest(label=label):
                self.assertIsNone(PointValidator.parse_entry(entry))
        self.assertIsNone(PointValidator.parse_entry("not a dict"))


class TestValidate(unittest.TestCase):
    """PointValidator.validate behaviour."""

    def test_counts_dropped(self) -> None:
        """Valid entries are kept and the rest counted."""
        points, dropped = PointValidator.validate(
            [_entry(), _entry(kind="bogus"), 42]
        )
        self.assertEqual(len(points), 1)
        self.assertEqual(dropped, 2)


if __name__ == "__main__":
    unittest.main()
