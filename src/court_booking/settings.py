from __future__ import annotations

import logging
import os

logger = logging.getLogger(__name__)

__version__ = "0.1.0"


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring malformed %s=%r, using %s", name, raw, default)
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring malformed %s=%r, using %s", name, raw, default)
        return default


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in {"1", "true", "yes", "on"}


API_BASE_URL = os.environ.get("COURT_BOOKING_API_URL", "http://localhost:8000/api").rstrip("/")
DEFAULT_TIMEOUT = _env_int("COURT_BOOKING_TIMEOUT", 30)
DEFAULT_TIMEZONE = os.environ.get("COURT_BOOKING_TIMEZONE", "Asia/Jakarta")
USER_AGENT = f"court-booking-client/{__version__}"

# Fixed 10% unless the deployment overrides it.
TAX_RATE = _env_float("COURT_BOOKING_TAX_RATE", 0.10)

POLL_INTERVAL = _env_float("COURT_BOOKING_POLL_INTERVAL", 3.0)
USE_CLOUDSCRAPER = _env_flag("COURT_BOOKING_USE_CLOUDSCRAPER")

GRID_FIRST_HOUR = 6
GRID_LAST_HOUR = 23
BOOKING_HORIZON_DAYS = 90
