from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

from ..errors import ImageAttachError, RowInvalidError, StoreWriteError, SyncError
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import SheetConfig, SheetMode, SyncSettings
from ..models.resolved_row import ResolvedRow
from ..models.sync_result import RowOutcome, RowPreview, RowResult, SheetSyncResult
from ..render.markdown import markdown_to_html
from ..render.sanitize import sanitize_html, sanitize_text
from ..render.template import apply_template
from ..source.reader import SheetData, get_cell
from ..store.base import ContentRecord, ContentStore, ImageAttacher, Taxonomy
from .fields import (
    FUTURE_STATUS,
    PUBLISH_STATUS,
    is_valid_image_url,
    normalize_status,
    parse_row_date,
    parse_tags,
)
from .fingerprint import FINGERPRINT_META_KEY, fingerprint_resolved_row

"""Reconciliation engine: decides CREATE / UPDATE / UNCHANGED / SKIPPED per row.

A row goes through two phases:

1. resolve_row(): extract cells, render content, look up the record with the
   same title, settle status and date, compute the fingerprint. No writes.
2. apply(): write to the content store according to the decision, then set
   category, tags and featured image.

The dry-run preview runs phase 1 only, so a preview and a real sync can never
disagree about what a row means.
"""

__all__ = [
    "ReconciliationEngine",
    "RowResolution",
]

logger = logging.getLogger(__name__)

ACTION_LABELS = {
    RowOutcome.CREATED: "CREATE",
    RowOutcome.UPDATED: "UPDATE",
    RowOutcome.UNCHANGED: "UNCHANGED",
}


@dataclass(frozen=True)
class RowResolution:
    """Outcome of phase 1 for one row."""
    resolved: ResolvedRow
    fingerprint: str
    existing_id: int | None = None
    stored_fingerprint: str = ""

    @property
    def action(self) -> RowOutcome:
        if self.existing_id is None:
            return RowOutcome.CREATED
        if self.stored_fingerprint and self.stored_fingerprint == self.fingerprint:
            return RowOutcome.UNCHANGED
        return RowOutcome.UPDATED

    def describe(self) -> str:
        action = self.action
        if action is RowOutcome.CREATED:
            return "No existing item found with this exact title."
        if action is RowOutcome.UNCHANGED:
            return f"Matched existing ID {self.existing_id} and hash is unchanged."
        return f"Matched existing ID {self.existing_id} (changes detected)."


def _utc_now() -> datetime:
    return datetime.now(UTC)


class ReconciliationEngine:
    """Sync the data rows of one sheet into a content store.

    Args:
        sheet: The sheet configuration (identity, mode, template, target type)
        settings: Global sync policy
        store: Content store (find/create/update/metadata)
        taxonomy: Category and tag assignment (None skips it)
        images: Featured image attachment (None skips it)
        error_log: Optional buffer receiving one record per failed row
        clock: Returns "now" as an aware datetime (tests pin it)
    """

    def __init__(
        self,
        sheet: SheetConfig,
        settings: SyncSettings,
        store: ContentStore,
        taxonomy: Taxonomy | None = None,
        images: ImageAttacher | None = None,
        error_log: ErrorLogBuffer | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.sheet = sheet
        self.settings = settings
        self.store = store
        self.taxonomy = taxonomy
        self.images = images
        self.error_log = error_log
        self.clock = clock
        self._tz = ZoneInfo(settings.timezone)

    # Phase 1 -----------------------------------------------------------------

    def render_content(self, row: Sequence[str], header_map: dict[str, int]) -> str:
        if self.sheet.mode is SheetMode.DEVELOPER:
            return apply_template(self.sheet.template, row, header_map)
        content_raw = get_cell(row, header_map, "content")
        if not content_raw:
            raise RowInvalidError("row has empty content")
        return sanitize_html(markdown_to_html(content_raw))

    def resolve_row(
        self, row: Sequence[str], header_map: dict[str, int], row_index: int
    ) -> RowResolution:
        """Resolve one data row without writing anything.

        Raises:
            RowInvalidError: empty title, or empty content in simple mode
        """
        title = sanitize_text(get_cell(row, header_map, "title"))
        if not title:
            raise RowInvalidError("row has empty title")
        content_html = self.render_content(row, header_map)

        tags_raw = get_cell(row, header_map, "tags")
        row_status = normalize_status(get_cell(row, header_map, "status"))
        date_raw = get_cell(row, header_map, "post_date") or get_cell(row, header_map, "date")
        row_date = parse_row_date(date_raw, self.settings.timezone)

        target_type = self.sheet.target_type
        existing_id = self.store.find_by_exact_title(title, target_type)
        existing = self.store.get_record(existing_id) if existing_id is not None else None
        status, publish_at = self._resolve_status(row_status, row_date, existing)

        resolved = ResolvedRow(
            row_index=row_index,
            title=title,
            content_html=content_html,
            target_type=target_type,
            status=status,
            publish_at=publish_at,
            category_name=sanitize_text(get_cell(row, header_map, "category")),
            tags=parse_tags(tags_raw),
            tags_raw=tags_raw,
            featured_image_url=get_cell(row, header_map, "featured_image"),
        )
        stored = ""
        if existing_id is not None:
            stored = self.store.get_metadata(existing_id, FINGERPRINT_META_KEY) or ""
        return RowResolution(
            resolved=resolved,
            fingerprint=fingerprint_resolved_row(self.sheet, resolved),
            existing_id=existing_id,
            stored_fingerprint=stored,
        )

    def _aware(self, dt: datetime | None) -> datetime | None:
        if dt is not None and dt.tzinfo is None:
            return dt.replace(tzinfo=self._tz)
        return dt

    def _is_schedulable(self, dt: datetime | None) -> bool:
        earliest = self.clock() + timedelta(seconds=self.settings.schedule_buffer_seconds)
        return dt is not None and dt >= earliest

    def _resolve_status(
        self,
        row_status: str | None,
        row_date: datetime | None,
        existing: ContentRecord | None,
    ) -> tuple[str, datetime | None]:
        """Settle the status and date a write would use.

        - existing record, force policy off: keep the stored status
        - existing record, force policy on: row status when it is valid
        - new record: row status when valid, else the configured default
        - "future" needs a date at least schedule_buffer_seconds ahead;
          otherwise a new record gets the default status and loses the date,
          and an existing record keeps its status and date (a lapsed
          schedule reads as publish)
        """
        default_status = self.settings.default_status
        if existing is None:
            status = row_status or default_status
        elif self.settings.force_status_from_sheet and row_status is not None:
            status = row_status
        else:
            status = existing.status

        if status != FUTURE_STATUS:
            return status, row_date

        if self._is_schedulable(row_date):
            return FUTURE_STATUS, row_date
        if existing is None:
            logger.debug("no schedulable date for new record, falling back to %s", default_status)
            return default_status, None

        stored_date = self._aware(existing.date)
        if row_date is None and self._is_schedulable(stored_date):
            return FUTURE_STATUS, stored_date
        date = row_date if row_date is not None else stored_date
        if existing.status == FUTURE_STATUS:
            return PUBLISH_STATUS, date
        return existing.status, date

    # Phase 2 -----------------------------------------------------------------

    def apply(self, resolution: RowResolution) -> RowResult:
        """Write a resolved row.

        Raises:
            StoreWriteError: the store rejected the create or update
        """
        row = resolution.resolved
        action = resolution.action
        if action is RowOutcome.UNCHANGED:
            return RowResult(row.row_index, RowOutcome.UNCHANGED, record_id=resolution.existing_id)

        if action is RowOutcome.UPDATED:
            record_id = resolution.existing_id
            try:
                self.store.update(
                    record_id, row.title, row.content_html, row.status, row.target_type,
                    row.publish_at,
                )
            except StoreWriteError as e:
                raise StoreWriteError(f"store rejected update: {e}") from e
        else:
            try:
                record_id = self.store.create(
                    row.title, row.content_html, row.status, row.target_type, row.publish_at
                )
            except StoreWriteError as e:
                raise StoreWriteError(f"store rejected create: {e}") from e

        self.store.set_metadata(record_id, FINGERPRINT_META_KEY, resolution.fingerprint)
        self._apply_taxonomy(record_id, row)

        image_set = image_failed = False
        if self.images is not None and is_valid_image_url(row.featured_image_url):
            try:
                self.images.attach_featured_image(record_id, row.featured_image_url)
                image_set = True
            except ImageAttachError as e:
                image_failed = True
                logger.warning("row %d: featured image failed: %s", row.row_index, e)
                self._record_error(row.row_index, e)

        return RowResult(
            row.row_index, action, record_id=record_id,
            image_set=image_set, image_failed=image_failed,
        )

    def _apply_taxonomy(self, record_id: int, row: ResolvedRow) -> None:
        if self.taxonomy is None:
            return
        try:
            if row.category_name:
                category_id = self.taxonomy.ensure_category(row.category_name)
                self.taxonomy.assign_category(record_id, category_id)
            if row.tags:
                self.taxonomy.assign_tags(record_id, row.tags)
        except StoreWriteError as e:
            # the post itself is written; a missing term does not undo that
            logger.warning("row %d: taxonomy assignment failed: %s", row.row_index, e)
            self._record_error(row.row_index, e)

    def _record_error(self, row_index: int, error: SyncError) -> None:
        if self.error_log is not None:
            self.error_log.record_failure(self.sheet.name, self.sheet.id, row_index, error)

    # Entry points --------------------------------------------------------------

    def sync_row(self, row: Sequence[str], header_map: dict[str, int], row_index: int) -> RowResult:
        """Resolve and apply one row; row-level errors become SKIPPED_INVALID."""
        try:
            return self.apply(self.resolve_row(row, header_map, row_index))
        except (RowInvalidError, StoreWriteError) as e:
            logger.info("row %d skipped: %s", row_index, e)
            self._record_error(row_index, e)
            return RowResult(row_index, RowOutcome.SKIPPED_INVALID, reason=str(e))

    def sync_rows(
        self,
        data: SheetData,
        should_stop: Callable[[], bool] | None = None,
    ) -> SheetSyncResult:
        """Sync every data row of a loaded sheet.

        ``should_stop`` is polled before each row; when it returns True the
        remaining rows are left alone and the partial counts are returned.
        """
        results: list[RowResult] = []
        cancelled = False
        for row_index, row in enumerate(data.data_rows, start=1):
            if should_stop is not None and should_stop():
                cancelled = True
                logger.info("sheet '%s' cancelled before row %d", self.sheet.name, row_index)
                break
            results.append(self.sync_row(row, data.header_map, row_index))
        return SheetSyncResult.from_rows(
            self.sheet.id, self.sheet.name, len(data.data_rows), results, cancelled=cancelled
        )

    def preview_row(self, data: SheetData, row_number: int) -> RowPreview:
        """Dry run for one data row (1-based, clamped to the valid range)."""
        max_rows = len(data.data_rows)
        if max_rows == 0:
            return RowPreview(self.sheet.name, 0, 0, error="Sheet has no data rows.")
        idx = min(max(int(row_number), 1), max_rows)
        try:
            resolution = self.resolve_row(data.data_rows[idx - 1], data.header_map, idx)
        except RowInvalidError as e:
            return RowPreview(self.sheet.name, idx, max_rows, error=f"That {e}.")
        except StoreWriteError as e:
            logger.warning("row %d: preview lookup failed: %s", idx, e)
            return RowPreview(
                self.sheet.name, idx, max_rows, error=f"Could not look up the row: {e}"
            )

        row = resolution.resolved
        return RowPreview(
            sheet_name=self.sheet.name,
            row_index=idx,
            max_rows=max_rows,
            action=ACTION_LABELS[resolution.action],
            reason=resolution.describe(),
            existing_id=resolution.existing_id,
            title=row.title,
            status=row.status,
            publish_at=row.publish_at_iso,
            target_type=row.target_type,
            category=row.category_name,
            tags=row.tags,
            featured_image=row.featured_image_url,
            rendered_content=row.content_html,
            fingerprint=resolution.fingerprint,
        )
