from __future__ import annotations

from datetime import datetime
from urllib.parse import urlsplit
from zoneinfo import ZoneInfo

from dateutil import parser as dateparser

"""Helpers that turn optional cells into typed values.

None of these raise on bad input: an unusable cell is treated as absent.
"""

__all__ = [
    "FUTURE_STATUS",
    "PUBLISH_STATUS",
    "VALID_STATUSES",
    "is_valid_image_url",
    "normalize_status",
    "parse_row_date",
    "parse_tags",
]

FUTURE_STATUS = "future"
PUBLISH_STATUS = "publish"
VALID_STATUSES = frozenset({"draft", PUBLISH_STATUS, "private", "pending", FUTURE_STATUS})


def parse_tags(raw: str) -> tuple[str, ...]:
    """Split a comma separated cell; trims parts, drops empties, keeps order.

    >>> parse_tags("a, b ,,c")
    ('a', 'b', 'c')
    """
    raw = (raw or "").strip()
    if not raw:
        return ()
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def normalize_status(raw: str) -> str | None:
    """Lower-case and trim; anything outside VALID_STATUSES means "not specified"."""
    status = (raw or "").strip().lower()
    return status if status in VALID_STATUSES else None


def is_valid_image_url(url: str) -> bool:
    """True for absolute http(s) URLs with a host."""
    url = (url or "").strip()
    if not url or any(c.isspace() for c in url):
        return False
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    return parts.scheme.lower() in ("http", "https") and bool(parts.netloc)


def parse_row_date(raw: str, timezone: str = "UTC") -> datetime | None:
    """Permissive date/time parsing; naive values are placed in ``timezone``.

    Returns None for empty or unparseable input.
    """
    raw = (raw or "").strip()
    if not raw:
        return None
    try:
        dt = dateparser.parse(raw)
    except (ValueError, OverflowError):
        return None
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=ZoneInfo(timezone))
    return dt
