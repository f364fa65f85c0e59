# price_tracker/storage/series_store.py

"""Reads and writes the canonical series and the supplementary points file."""

import json
import logging
from pathlib import Path
from typing import Any

from price_tracker.config.settings import Settings
from price_tracker.filters.point_validator import PointValidator
from price_tracker.models.price_point import PricePoint
from price_tracker.models.source import SourceDescriptor

logger = logging.getLogger("price_tracker.storage")


def display_key(display_currency: str) -> str:
    """JSON key of the converted price, e.g. ``priceCad`` for CAD."""
    return "price" + display_currency.strip().capitalize()


def point_to_dict(
    point: PricePoint,
    display_currency: str | None = None,
) -> dict[str, Any]:
    """Serialise a point in the artifact's camelCase shape."""
    data: dict[str, Any] = {
        "date": point.date.isoformat(),
        "kind": point.kind,
        "price": {
            "amount": point.price.amount,
            "currency": point.price.currency,
        },
    }
    display = point.price_display
    if display is not None:
        converted: dict[str, Any] = {
            "amount": display.amount,
            "currency": display.currency,
        }
        if display.fx is not None:
            converted["fx"] = {
                "pair": display.fx.pair,
                "rate": display.fx.rate,
                "source": display.fx.source,
                "date": display.fx.date.isoformat(),
            }
        data[display_key(display_currency or display.currency)] = converted
    data["sourceId"] = point.source_id
    data["url"] = point.url
    if point.wayback:
        data["wayback"] = {"timestamp": point.wayback}
    return data


def source_to_dict(source: SourceDescriptor) -> dict[str, str]:
    """Serialise the public part of a source descriptor."""
    return {
        "id": source.id,
        "name": source.name,
        "url": source.url,
        "currency": source.currency,
    }


def _write_json(path: Path, data: Any) -> None:
    """Write pretty-printed UTF-8 JSON with a trailing newline."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
        f.write("\n")


class SeriesStore:
    """Flat-file storage for the pipeline's input and output documents."""

    def __init__(self, data_dir: Path | None = None) -> None:
        self.data_dir: Path = data_dir or Settings.DATA_DIR
        self.series_path: Path = self.data_dir / Settings.SERIES_FILENAME
        self.supplementary_path: Path = (
            self.data_dir / Settings.SUPPLEMENTARY_FILENAME
        )
        logger.debug("SeriesStore initialised, data_dir=%s", self.data_dir)

    # ── Canonical artifact ───────────────────────────────

    def write_series(
        self,
        product: dict[str, Any],
        sources: list[SourceDescriptor],
        series: list[PricePoint],
    ) -> Path:
        """Write ``{product, sources, series}`` and return its path."""
        display_currency = str(product.get("currencyDisplay", ""))
        document = {
            "product": product,
            "sources": [source_to_dict(s) for s in sources],
            "series": [
                point_to_dict(p, display_currency or None) for p in series
            ],
        }
        _write_json(self.series_path, document)
        logger.info(
            "Wrote %d points to %s", len(series), self.series_path,
        )
        return self.series_path

    def load_series(self) -> dict[str, Any] | None:
        """Return the last written artifact, or None if absent."""
        if not self.series_path.exists():
            return None
        with open(self.series_path, encoding="utf-8") as f:
            document: dict[str, Any] = json.load(f)
        return document

    # ── Supplementary points ─────────────────────────────

    def load_supplementary(self) -> list[PricePoint]:
        """Read supplementary points, skipping malformed entries.

        A missing file or a non-list document yields no points.
        """
        if not self.supplementary_path.exists():
            logger.info(
                "No supplementary file at %s", self.supplementary_path,
            )
            return []

        with open(self.supplementary_path, encoding="utf-8") as f:
            try:
                raw: Any = json.load(f)
            except json.JSONDecodeError as exc:
                logger.warning(
                    "Ignoring unreadable supplementary file %s: %s",
                    self.supplementary_path,
                    exc,
                )
                return []

        if not isinstance(raw, list):
            logger.warning(
                "Supplementary file %s is not a list; ignoring it",
                self.supplementary_path,
            )
            return []

        points, _dropped = PointValidator.validate(raw)
        logger.info(
            "Loaded %d supplementary point(s) from %s",
            len(points),
            self.supplementary_path,
        )
        return points

    def save_supplementary(self, points: list[PricePoint]) -> Path:
        """Persist *points* (unconverted) as the supplementary file."""
        _write_json(
            self.supplementary_path,
            [point_to_dict(p) for p in points],
        )
        logger.info(
            "Saved %d supplementary point(s) to %s",
            len(points),
            self.supplementary_path,
        )
        return self.supplementary_path
