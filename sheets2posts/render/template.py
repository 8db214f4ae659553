from __future__ import annotations

import html
import re
from collections.abc import Sequence

from .sanitize import sanitize_html

"""Developer-mode template rendering.

Every header column ``k`` (lower-cased header name, as in the header map)
replaces the literal token ``{{k}}`` with the HTML-escaped cell value. The
reserved column ``content_html`` is inserted raw; the final sanitize pass is
what bounds that injection point. Tokens without a matching column stay in
the output untouched.
"""

__all__ = [
    "RAW_HTML_COLUMN",
    "apply_template",
]

RAW_HTML_COLUMN = "content_html"
_TOKEN_RE = re.compile(r"\{\{([^{}]+)\}\}")


def _raw_cell(row: Sequence[str], idx: int) -> str:
    return str(row[idx]) if idx < len(row) else ""


def apply_template(template: str, row: Sequence[str], header_map: dict[str, int]) -> str:
    def _substitute(m: re.Match[str]) -> str:
        key = m.group(1)
        idx = header_map.get(key)
        if idx is None:
            return m.group(0)
        value = _raw_cell(row, idx)
        return value if key == RAW_HTML_COLUMN else html.escape(value, quote=True)

    # one pass, so tokens inside substituted cell values are never expanded
    return sanitize_html(_TOKEN_RE.sub(_substitute, template or ""))
