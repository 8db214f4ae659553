from __future__ import annotations

import logging
import posixpath
import re
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse

import requests

from ..errors import ImageAttachError, StoreWriteError
from .base import FEATURED_IMAGE_META_KEY, ContentStore

"""Featured image attachment over HTTP.

The image is downloaded into the media directory and its local path stored as
record metadata next to the source URL. Re-attaching the same URL is a no-op
as long as the downloaded file is still there.
"""

__all__ = [
    "THUMBNAIL_PATH_META_KEY",
    "HttpImageAttacher",
]

logger = logging.getLogger(__name__)

THUMBNAIL_PATH_META_KEY = "_s2p_thumbnail_path"
FALLBACK_FILENAME = "featured-image.jpg"
_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]")


def image_filename(image_url: str) -> str:
    """File name for a downloaded image, derived from the URL path.

    >>> image_filename("https://example.com/img/a%20b.png?x=1")
    'a_b.png'
    >>> image_filename("https://example.com/")
    'featured-image.jpg'
    """
    name = posixpath.basename(unquote(urlparse(image_url).path))
    name = _UNSAFE_CHARS_RE.sub("_", name).strip("._")
    return name or FALLBACK_FILENAME


class HttpImageAttacher:
    def __init__(
        self,
        store: ContentStore,
        media_dir: Path,
        timeout: float = 25.0,
        session: Any = None,
    ) -> None:
        self.store = store
        self.media_dir = Path(media_dir)
        self.timeout = timeout
        self.session = session

    def _already_attached(self, record_id: int, image_url: str) -> bool:
        if self.store.get_metadata(record_id, FEATURED_IMAGE_META_KEY) != image_url:
            return False
        path = self.store.get_metadata(record_id, THUMBNAIL_PATH_META_KEY)
        return bool(path) and Path(path).exists()

    def attach_featured_image(self, record_id: int, image_url: str) -> None:
        """Download ``image_url`` and record it as the record's featured image.

        Raises:
            ImageAttachError: download failed, empty body, file not writable
                or the image metadata could not be read or written
        """
        try:
            if self._already_attached(record_id, image_url):
                logger.debug("record %d: featured image unchanged", record_id)
                return
        except StoreWriteError as e:
            raise ImageAttachError(f"could not read image metadata: {e}") from e

        http = self.session if self.session is not None else requests
        try:
            resp = http.get(image_url, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise ImageAttachError(f"could not download {image_url}: {e}") from e
        if not resp.content:
            raise ImageAttachError(f"empty image body from {image_url}")

        target = self.media_dir / f"{record_id}-{image_filename(image_url)}"
        try:
            self.media_dir.mkdir(parents=True, exist_ok=True)
            target.write_bytes(resp.content)
        except OSError as e:
            raise ImageAttachError(f"could not store image {target}: {e}") from e

        try:
            self.store.set_metadata(record_id, THUMBNAIL_PATH_META_KEY, str(target))
            self.store.set_metadata(record_id, FEATURED_IMAGE_META_KEY, image_url)
        except StoreWriteError as e:
            raise ImageAttachError(f"could not record image metadata: {e}") from e
        logger.debug("record %d: featured image saved to %s", record_id, target)
