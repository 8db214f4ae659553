from __future__ import annotations

"""Exception taxonomy for the sheet -> post sync.

Sheet-level errors (SourceFetchError, SourceFormatError) abort one sheet and are
reported once for it. Row-level errors (RowInvalidError, StoreWriteError) are
counted per row and never interrupt a batch. ImageAttachError is only a
statistic: it never changes the outcome of the row that triggered it.
"""

__all__ = [
    "SyncError",
    "SourceFetchError",
    "SourceFormatError",
    "RowInvalidError",
    "StoreWriteError",
    "ImageAttachError",
]


class SyncError(Exception):
    """Base class for every error raised by the sync core."""

    error_type = "SYNC_ERROR"


class SourceFetchError(SyncError):
    """Network failure, timeout, missing/invalid link or empty body."""

    error_type = "SOURCE_FETCH_FAILED"


class SourceFormatError(SyncError):
    """Insufficient rows or required header columns missing."""

    error_type = "SOURCE_FORMAT_INVALID"


class RowInvalidError(SyncError):
    """Row cannot be turned into a post (empty title, empty content)."""

    error_type = "ROW_INVALID"


class StoreWriteError(SyncError):
    """Content store rejected a create or update."""

    error_type = "STORE_WRITE_REJECTED"


class ImageAttachError(SyncError):
    """Featured image could not be downloaded or attached."""

    error_type = "IMAGE_ATTACH_FAILED"
