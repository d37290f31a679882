# src/fill_ledger/settings.py
"""Environment-driven settings."""

import logging
import os

import pytz

DEFAULT_REPORT_TIMEZONE = "UTC"


def get_report_timezone() -> str:
    """Timezone used to bucket positions by day (REPORT_TIMEZONE, default UTC)."""
    name = os.getenv("REPORT_TIMEZONE", DEFAULT_REPORT_TIMEZONE).strip() or DEFAULT_REPORT_TIMEZONE
    # raises pytz.UnknownTimeZoneError on a typo instead of silently using UTC
    pytz.timezone(name)
    return name


def configure_logging(level: str = None) -> None:
    """Set up root logging from LOG_LEVEL (default INFO)."""
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
