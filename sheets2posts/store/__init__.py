"""Content store boundary and its implementations.

The PostgreSQL store and the HTTP image attacher are imported from their
own modules (store.postgres, store.images).
"""

from .base import FEATURED_IMAGE_META_KEY, ContentRecord, ContentStore, ImageAttacher, Taxonomy
from .memory import MemoryContentStore, StoredPost

__all__ = [
    "FEATURED_IMAGE_META_KEY",
    "ContentRecord",
    "ContentStore",
    "ImageAttacher",
    "MemoryContentStore",
    "StoredPost",
    "Taxonomy",
]
