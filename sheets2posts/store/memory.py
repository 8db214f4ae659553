from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime

from ..errors import ImageAttachError, StoreWriteError
from .base import FEATURED_IMAGE_META_KEY, ContentRecord

"""In-memory collaborators.

Used by the CLI when no database is reachable (mock mode) and by the tests.
One MemoryContentStore instance also serves as taxonomy and image attacher
so that everything written during a run can be inspected in one place.
"""

__all__ = [
    "MemoryContentStore",
    "StoredPost",
]


@dataclass
class StoredPost:
    record_id: int
    title: str
    content_html: str
    status: str
    content_type: str
    date: datetime | None = None
    meta: dict[str, str] = field(default_factory=dict)
    category_ids: list[int] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    thumbnail_url: str | None = None


class MemoryContentStore:
    """Content store, taxonomy and image attacher backed by dicts.

    ``reject_titles`` makes create/update fail for those titles and
    ``broken_images`` makes image attachment fail for those URLs, which is how
    tests exercise the failure paths.
    """

    def __init__(
        self,
        reject_titles: Sequence[str] = (),
        broken_images: Sequence[str] = (),
    ) -> None:
        self.posts: dict[int, StoredPost] = {}
        self.categories: dict[str, int] = {}
        self.writes = 0
        self.image_downloads = 0
        self._next_id = 1
        self._reject_titles = set(reject_titles)
        self._broken_images = set(broken_images)

    def _new_id(self) -> int:
        new_id = self._next_id
        self._next_id += 1
        return new_id

    def _post(self, record_id: int) -> StoredPost:
        try:
            return self.posts[record_id]
        except KeyError:
            raise StoreWriteError(f"record {record_id} does not exist") from None

    # ContentStore

    def find_by_exact_title(self, title: str, content_type: str) -> int | None:
        for post in self.posts.values():
            if post.title == title and post.content_type == content_type:
                return post.record_id
        return None

    def create(
        self,
        title: str,
        content_html: str,
        status: str,
        content_type: str,
        date: datetime | None = None,
    ) -> int:
        if title in self._reject_titles:
            raise StoreWriteError(f"create rejected for '{title}'")
        post = StoredPost(
            record_id=self._new_id(),
            title=title,
            content_html=content_html,
            status=status,
            content_type=content_type,
            date=date,
        )
        self.posts[post.record_id] = post
        self.writes += 1
        return post.record_id

    def update(
        self,
        record_id: int,
        title: str,
        content_html: str,
        status: str,
        content_type: str,
        date: datetime | None = None,
    ) -> None:
        if title in self._reject_titles:
            raise StoreWriteError(f"update rejected for '{title}'")
        post = self._post(record_id)
        post.title = title
        post.content_html = content_html
        post.status = status
        post.content_type = content_type
        if date is not None:
            post.date = date
        self.writes += 1

    def get_metadata(self, record_id: int, key: str) -> str:
        post = self.posts.get(record_id)
        return post.meta.get(key, "") if post is not None else ""

    def set_metadata(self, record_id: int, key: str, value: str) -> None:
        self._post(record_id).meta[key] = value

    def get_record(self, record_id: int) -> ContentRecord:
        post = self._post(record_id)
        return ContentRecord(record_id=post.record_id, status=post.status, date=post.date)

    # Taxonomy

    def ensure_category(self, name: str) -> int:
        if name not in self.categories:
            self.categories[name] = len(self.categories) + 1
        return self.categories[name]

    def assign_category(self, record_id: int, category_id: int) -> None:
        self._post(record_id).category_ids = [category_id]

    def assign_tags(self, record_id: int, tag_names: Sequence[str]) -> None:
        self._post(record_id).tags = list(tag_names)

    # ImageAttacher

    def attach_featured_image(self, record_id: int, image_url: str) -> None:
        post = self._post(record_id)
        if post.meta.get(FEATURED_IMAGE_META_KEY) == image_url and post.thumbnail_url:
            return
        if image_url in self._broken_images:
            raise ImageAttachError(f"could not download {image_url}")
        self.image_downloads += 1
        post.thumbnail_url = image_url
        post.meta[FEATURED_IMAGE_META_KEY] = image_url
