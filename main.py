# main.py

"""Entry point for the price_tracker pipeline."""

import argparse
import asyncio
import logging
import sys

from price_tracker.config.logging_config import setup_logging
from price_tracker.config.settings import Settings

logger = logging.getLogger("price_tracker.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    valid_ids = ", ".join(s["id"] for s in Settings.AVAILABLE_SOURCES)

    parser = argparse.ArgumentParser(
        prog="price_tracker",
        description=(
            "Track a product's price across retailers, marketplaces and "
            "web archive snapshots."
        ),
        epilog=f"Available sources: {valid_ids}",
    )
    parser.add_argument(
        "--historical",
        "--wayback",
        action="store_true",
        default=False,
        dest="include_historical",
        help="Also build points from Wayback Machine snapshots.",
    )
    parser.add_argument(
        "--marketplace",
        action="store_true",
        default=False,
        dest="refresh_marketplace",
        help="Re-scrape marketplaces into the supplementary points file.",
    )
    parser.add_argument(
        "-s",
        "--source",
        default=None,
        dest="primary_source",
        help=(
            "Primary source ID "
            f"(default: {Settings.PRIMARY_SOURCE_ID})."
        ),
    )
    parser.add_argument(
        "-o",
        "--output",
        default=None,
        dest="output_dir",
        help="Data directory (default: data/).",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="json",
        dest="output_format",
        help="Run summary format (default: json).",
    )
    parser.add_argument(
        "--chart",
        action="store_true",
        default=False,
        help="Export the last written series as an animated HTML chart.",
    )
    parser.add_argument(
        "--no-browser",
        action="store_false",
        default=True,
        dest="open_browser",
        help="Do not open the exported chart in a browser.",
    )
    parser.add_argument(
        "--list-sources",
        action="store_true",
        default=False,
        help="Print the configured sources and exit.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Show INFO-level progress on the console.",
    )
    return parser


def main() -> None:
    """Route to the update, chart or source-listing runner."""
    parser = _build_parser()
    args = parser.parse_args()

    log_file = setup_logging(verbose=args.verbose)
    logger.info("price_tracker starting, log file: %s", log_file)

    from price_tracker.cli.runner import (
        run_chart,
        run_list_sources,
        run_update,
    )

    if args.list_sources:
        exit_code = run_list_sources()
    elif args.chart:
        exit_code = run_chart(args.output_dir, args.open_browser)
    else:
        exit_code = asyncio.run(
            run_update(
                include_historical=args.include_historical,
                refresh_marketplace=args.refresh_marketplace,
                primary_source=args.primary_source,
                output_dir=args.output_dir,
                output_format=args.output_format,
            )
        )
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
