# price_tracker/config/settings.py

"""Central configuration for the price_tracker pipeline."""

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Central configuration for the price_tracker pipeline."""

    # --- HTTP ---
    REQUEST_DELAY: float = 1.0          # Base backoff between retries
    REQUEST_TIMEOUT: int = 30           # Seconds before a request times out
    MAX_RETRIES: int = 3                # Retry count on transient failures
    MAX_CONCURRENT_FETCHES: int = 4     # Parallel snapshot fetches
    USER_AGENT: str = (
        "price-tracker/1.0 "
        "(+https://github.com/snugglepilot/vbh-tracker)"
    )
    DEFAULT_HEADERS: dict[str, str] = {
        "User-Agent": USER_AGENT,
        "Accept": "text/html,application/xhtml+xml,application/json",
        "Accept-Language": "en-US,en;q=0.9",
    }

    # --- External services ---
    FX_API_URL: str = "https://api.frankfurter.app/{date}"
    FX_PROVIDER: str = "frankfurter.app"
    CDX_API_URL: str = "https://web.archive.org/cdx/search/cdx"
    WAYBACK_WEB_URL: str = (
        "https://web.archive.org/web/{timestamp}/{url}"
    )

    # --- Sampling ---
    WAYBACK_MAX_SNAPSHOTS: int = 48     # Monthly snapshots of the retailer
    MARKETPLACE_MAX_SNAPSHOTS: int = 15  # Daily snapshots per marketplace
    MARKETPLACE_CDX_LIMIT: int = 100    # Index rows requested per pattern

    # --- Pipeline ---
    PRIMARY_SOURCE_ID: str = os.getenv(
        "PRICE_TRACKER_PRIMARY_SOURCE", "chcm"
    )
    DISPLAY_CURRENCY: str = os.getenv(
        "PRICE_TRACKER_DISPLAY_CURRENCY", "CAD"
    ).upper()

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    RULES_PATH: Path = (
        BASE_DIR / "price_tracker" / "config" / "extraction_rules.json"
    )
    DATA_DIR: Path = Path(
        os.getenv("PRICE_TRACKER_DATA_DIR", str(BASE_DIR / "data"))
    )
    SERIES_FILENAME: str = "price-series.json"
    SUPPLEMENTARY_FILENAME: str = "supplementary-points.json"
    LOGS_DIR: Path = BASE_DIR / "logs"

    # --- Product ---
    PRODUCT: dict[str, str] = {
        "name": "Veilance Bucket Hat",
        "brand": "Arc'teryx",
        "line": "Veilance",
        "color": "Carmine",
    }

    # --- Sources ---
    AVAILABLE_SOURCES: list[dict[str, Any]] = [
        {
            "id": "chcm",
            "name": "C'H'C'M'",
            "url": (
                "https://chcmshop.com/collections/hats/products/"
                "veilance-bucket-hat-carmine"
            ),
            "currency": "USD",
            "role": "retailer",
            "historical": True,
        },
        {
            "id": "grailed",
            "name": "Grailed",
            "url": "https://www.grailed.com/search?q=veilance+bucket+hat",
            "currency": "USD",
            "role": "marketplace",
            "historical": False,
        },
        {
            "id": "ebay",
            "name": "eBay (sold)",
            "url": (
                "https://www.ebay.com/sch/i.html?_nkw=veilance+bucket+hat"
                "+carmine&_sacat=0&LH_Sold=1&LH_Complete=1"
            ),
            "currency": "USD",
            "role": "marketplace",
            "historical": True,
            "archive_patterns": [
                "https://www.ebay.com/sch/i.html*",
            ],
        },
    ]
