from __future__ import annotations

import hashlib
import json

from ..models.config_models import SheetConfig
from ..models.resolved_row import ResolvedRow

"""Row fingerprints for change detection.

The fingerprint is the MD5 of a canonical JSON document (sorted keys, no
insignificant whitespace) over every field that ends up in the stored post.
MD5 is used for uniqueness under normal operation, not for security.
"""

__all__ = [
    "FINGERPRINT_META_KEY",
    "build_row_fingerprint",
    "fingerprint_resolved_row",
]

FINGERPRINT_META_KEY = "_s2p_row_hash"


def build_row_fingerprint(
    *,
    sheet_id: str,
    mode: str,
    template: str,
    title: str,
    content: str,
    category: str,
    tags: str,
    featured_image: str,
    status: str,
    publish_at: str,
    target_type: str,
) -> str:
    """Hash the fixed-shape field record; ``template`` is "" outside developer mode."""
    payload = {
        "sheet_key": sheet_id,
        "mode": mode,
        "template": template,
        "title": title,
        "content": content,
        "category": category,
        "tags": tags,
        "featured_image": featured_image,
        "status": status,
        "publish_at": publish_at,
        "post_type": target_type,
    }
    canonical = json.dumps(payload, sort_keys=True, ensure_ascii=False, separators=(",", ":"))
    return hashlib.md5(canonical.encode("utf-8")).hexdigest()


def fingerprint_resolved_row(sheet: SheetConfig, row: ResolvedRow) -> str:
    return build_row_fingerprint(
        sheet_id=sheet.id,
        mode=sheet.mode.value,
        template=sheet.effective_template,
        title=row.title,
        content=row.content_html,
        category=row.category_name,
        tags=row.tags_raw,
        featured_image=row.featured_image_url,
        status=row.status,
        publish_at=row.publish_at_iso,
        target_type=row.target_type,
    )
