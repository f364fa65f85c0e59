# price_tracker/config/logging_config.py

"""Per-run logging for the price_tracker pipeline.

Every run writes a dedicated file ``logs/run_YYYYMMDD_HHMMSS.log`` at
DEBUG level.  Snapshot pages are fetched in worker threads, so the
file format records the thread name next to the logger name.  The
operator console (stderr) only shows warnings unless ``verbose`` is
set, which is where degraded-continue events (a failed snapshot, a
missing FX rate) surface during a run.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from price_tracker.config.settings import Settings

ROOT_LOGGER_NAME = "price_tracker"

_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(threadName)s | %(name)s | "
    "%(module)s:%(funcName)s:%(lineno)d | %(message)s"
)

_CONSOLE_FORMAT = "%(levelname)-8s | %(message)s"

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    verbose: bool = False,
    logs_dir: Path | None = None,
) -> Path:
    """Attach the file and console handlers to ``price_tracker``.

    Args:
        verbose: Lower the console threshold from WARNING to INFO.
        logs_dir: Override for :attr:`Settings.LOGS_DIR`.

    Returns:
        Path of the log file for this run.  Repeated calls reuse the
        handlers installed by the first call.
    """
    target_dir = logs_dir or Settings.LOGS_DIR
    target_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = target_dir / f"run_{stamp}.log"

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(logging.DEBUG)

    if root_logger.handlers:
        return log_file

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT)
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(
        logging.INFO if verbose else logging.WARNING
    )
    console_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT))

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)
    root_logger.debug("Logging to %s", log_file)

    return log_file
