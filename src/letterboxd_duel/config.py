"""
Configuration constants for the Letterboxd diary comparison.

This module centralizes all magic numbers and configurable parameters.
Values can be overridden via environment variables.
"""
import os
import logging

logger = logging.getLogger(__name__)


def _get_number_env(key: str, default, min_val, cast):
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        val = cast(raw)
    except ValueError:
        logger.warning(f"Invalid {key}='{raw}', using default {default}")
        return default
    if val < min_val:
        logger.warning(f"{key}={val} is below minimum {min_val}, using {min_val}")
        return min_val
    return val


def _get_float_env(key: str, default: float, min_val: float = 0) -> float:
    """Read a float setting, clamped to min_val; bad values fall back to default."""
    return _get_number_env(key, default, min_val, float)


def _get_int_env(key: str, default: int, min_val: int = 1) -> int:
    return _get_number_env(key, default, min_val, int)


def _get_bool_env(key: str, default: bool = False) -> bool:
    raw = os.environ.get(key)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# Site
LETTERBOXD_BASE = "https://letterboxd.com"
POSTER_BASE = "https://a.ltrbxd.com/resized/film-poster"
POSTER_CROP = "0-300-0-450-crop"
AVATAR_SMALL_CROP = "-0-48-0-48-crop"
AVATAR_LARGE_CROP = "-0-220-0-220-crop"

# Fetch Configuration
HTTP_TIMEOUT = _get_float_env("LETTERBOXD_HTTP_TIMEOUT", 30.0, min_val=1.0)
DEFAULT_MAX_CONCURRENT = _get_int_env("LETTERBOXD_MAX_CONCURRENT", 5, min_val=1)
DEFAULT_ASYNC_DELAY = _get_float_env("LETTERBOXD_ASYNC_DELAY", 0.1, min_val=0.0)
FETCH_HTTP2 = _get_bool_env("LETTERBOXD_HTTP2", False)
COMPARE_TIMEOUT = _get_float_env("LETTERBOXD_COMPARE_TIMEOUT", 0.0, min_val=0.0)  # 0 disables the deadline

# Browser-like headers; the site serves a reduced page to obvious bots
FETCH_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Referer": "https://letterboxd.com/",
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/129.0.0.0 Safari/537.36"
    ),
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
}

# Disagreement Analysis
# Ratings are stored 1-10 and displayed as 0.5-5 stars
DISAGREEMENT_THRESHOLD = 3  # 1.5 stars
MAX_DISAGREEMENTS = 10
LIKED_EQUIVALENT_RATING = 10  # A like with no rating counts as 5 stars
LIKED_OPPOSING_MAX_RATING = 5  # A like only disagrees with ratings at or below 2.5 stars
LIKED_DISPLAY_RATING = "5.0"

# Quip Generation
OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY")
QUIP_MODEL = os.environ.get("LETTERBOXD_QUIP_MODEL", "gpt-4o-mini")
QUIP_API_BASE = os.environ.get("LETTERBOXD_QUIP_API_BASE", "https://api.openai.com/v1")
QUIP_TIMEOUT = _get_float_env("LETTERBOXD_QUIP_TIMEOUT", 60.0, min_val=1.0)
