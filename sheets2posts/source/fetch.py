from __future__ import annotations

import logging
import re
from typing import Any

import requests

from ..errors import SourceFetchError
from ..models.config_models import SheetConfig
from .reader import SheetData, parse_csv_text, require_columns, split_sheet

"""Spreadsheet fetching.

A sheet link as pasted by a user (``.../spreadsheets/d/<id>/edit#gid=0``) is
turned into the CSV export URL of the same document, fetched with requests and
handed to the reader. Every failure surfaces as SourceFetchError so that the
orchestrator can fail just that one sheet.
"""

__all__ = [
    "DEFAULT_TIMEOUT",
    "fetch_csv_text",
    "load_sheet",
    "to_csv_url",
]

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 25.0
_SHEET_ID_RE = re.compile(r"/d/([a-zA-Z0-9_-]+)")
CSV_EXPORT_URL = "https://docs.google.com/spreadsheets/d/{sheet_id}/export?format=csv"


def to_csv_url(sheet_url: str) -> str:
    """Convert a normal spreadsheet link into its CSV export link.

    Returns "" when no document id can be found in the link.
    """
    sheet_url = (sheet_url or "").strip()
    if not sheet_url:
        return ""
    m = _SHEET_ID_RE.search(sheet_url)
    if m is None:
        return ""
    return CSV_EXPORT_URL.format(sheet_id=m.group(1))


def fetch_csv_text(
    csv_url: str,
    timeout: float = DEFAULT_TIMEOUT,
    session: Any = None,
) -> str:
    """GET the CSV export and return its body.

    Args:
        csv_url: Export URL (see to_csv_url)
        timeout: Per-request ceiling in seconds
        session: Optional requests.Session (tests pass a mock)

    Raises:
        SourceFetchError: empty URL, network error, HTTP error or empty body
    """
    if not csv_url:
        raise SourceFetchError("No valid sheet URL found.")
    http = session if session is not None else requests
    try:
        resp = http.get(csv_url, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as e:
        raise SourceFetchError(f"Failed to fetch sheet: {e}") from e
    # requests falls back to ISO-8859-1 for text/* without a charset
    if "charset" not in resp.headers.get("Content-Type", "").lower():
        resp.encoding = "utf-8"
    body = resp.text
    if not body or not body.strip():
        raise SourceFetchError("Sheet returned no data.")
    logger.debug("fetched %d bytes from %s", len(body), csv_url)
    return body


def load_sheet(
    sheet: SheetConfig,
    timeout: float = DEFAULT_TIMEOUT,
    session: Any = None,
) -> SheetData:
    """Fetch, parse and validate one configured sheet.

    Raises:
        SourceFetchError: see fetch_csv_text
        SourceFormatError: fewer than 2 rows, or required columns missing
    """
    text = fetch_csv_text(to_csv_url(sheet.source_url), timeout=timeout, session=session)
    data = split_sheet(parse_csv_text(text))
    require_columns(data.header_map, sheet.mode)
    return data
