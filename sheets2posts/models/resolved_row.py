from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

"""ResolvedRow model: one data row after extraction and rendering.

A ResolvedRow is what the reconciliation engine compares against the content
store and, when something changed, writes to it.
"""

__all__ = [
    "ResolvedRow",
]


@dataclass(frozen=True)
class ResolvedRow:
    """Fully rendered and validated form of a data row.

    ``featured_image_url`` is kept exactly as provided (trimmed) because it
    participates in the fingerprint even when it is not a usable URL.
    ``tags_raw`` is the untouched cell, also fingerprinted as-is.
    """
    row_index: int  # 1-based position among data rows
    title: str
    content_html: str
    target_type: str
    status: str
    publish_at: datetime | None = None
    category_name: str = ""
    tags: tuple[str, ...] = ()
    tags_raw: str = ""
    featured_image_url: str = ""

    @property
    def publish_at_iso(self) -> str:
        return self.publish_at.isoformat() if self.publish_at is not None else ""
