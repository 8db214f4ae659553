from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

"""Boundary contracts of the sync core.

The reconciliation engine talks to the outside world only through these
three protocols. Implementations live next to this module (memory, postgres,
images); tests substitute their own.
"""

__all__ = [
    "FEATURED_IMAGE_META_KEY",
    "ContentRecord",
    "ContentStore",
    "ImageAttacher",
    "Taxonomy",
]

FEATURED_IMAGE_META_KEY = "_s2p_featured_image_url"


@dataclass(frozen=True)
class ContentRecord:
    """The parts of a stored post the engine needs to resolve a row."""
    record_id: int
    status: str
    date: datetime | None = None


class ContentStore(Protocol):
    def find_by_exact_title(self, title: str, content_type: str) -> int | None:
        """Id of the record with exactly this title, or None.

        When the store holds several, which one is returned is up to the store.
        """
        ...

    def create(
        self,
        title: str,
        content_html: str,
        status: str,
        content_type: str,
        date: datetime | None = None,
    ) -> int:
        """Create a record; raises StoreWriteError when rejected."""
        ...

    def update(
        self,
        record_id: int,
        title: str,
        content_html: str,
        status: str,
        content_type: str,
        date: datetime | None = None,
    ) -> None:
        """Update a record; raises StoreWriteError when rejected.

        ``date`` None leaves the stored date untouched.
        """
        ...

    def get_metadata(self, record_id: int, key: str) -> str: ...

    def set_metadata(self, record_id: int, key: str, value: str) -> None: ...

    def get_record(self, record_id: int) -> ContentRecord: ...


class Taxonomy(Protocol):
    def ensure_category(self, name: str) -> int: ...

    def assign_category(self, record_id: int, category_id: int) -> None:
        """Replace the record's categories with this one."""
        ...

    def assign_tags(self, record_id: int, tag_names: Sequence[str]) -> None:
        """Replace the record's tags."""
        ...


class ImageAttacher(Protocol):
    def attach_featured_image(self, record_id: int, image_url: str) -> None:
        """Attach ``image_url`` as featured image; raises ImageAttachError.

        Must be a no-op when the same URL is already attached.
        """
        ...
