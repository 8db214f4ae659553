from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any

from ..errors import SourceFetchError, SourceFormatError
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import sheet_context
from ..models.config_models import SheetConfig, SyncSettings
from ..models.sync_result import BatchSyncResult, RowPreview, SheetSyncResult
from ..source.fetch import load_sheet
from ..store.base import ContentStore, ImageAttacher, Taxonomy
from ..sync.engine import ReconciliationEngine
from .lock import SyncLock
from .progress import ProgressTracker

"""Service orchestration: batch sync, single-sheet sync and row preview.

The scheduling trigger (cron running the CLI) only ever calls
run_batch_sync(). It is safe to call redundantly: unchanged rows are not
written again, and a run that finds the lock taken does nothing.
"""

__all__ = [
    "preview_sheet_row",
    "run_batch_sync",
    "sync_sheet",
]

logger = logging.getLogger(__name__)


def sync_sheet(
    sheet: SheetConfig,
    settings: SyncSettings,
    store: ContentStore,
    taxonomy: Taxonomy | None = None,
    images: ImageAttacher | None = None,
    *,
    error_log: ErrorLogBuffer | None = None,
    session: Any = None,
    should_stop: Callable[[], bool] | None = None,
    clock: Callable[[], datetime] | None = None,
) -> SheetSyncResult:
    """Fetch one sheet and reconcile all of its rows.

    Fetch and format errors fail this sheet only: they are logged once,
    recorded with row=-1 and returned as a failed SheetSyncResult.
    """
    with sheet_context(sheet.id):
        try:
            data = load_sheet(sheet, timeout=settings.http_timeout, session=session)
        except (SourceFetchError, SourceFormatError) as e:
            logger.error(f"sheet '{sheet.name}': {e}")
            if error_log is not None:
                error_log.record_failure(sheet.name, sheet.id, -1, e)
            return SheetSyncResult.failed(sheet.id, sheet.name, str(e))

        engine_kwargs: dict[str, Any] = {"error_log": error_log}
        if clock is not None:
            engine_kwargs["clock"] = clock
        engine = ReconciliationEngine(sheet, settings, store, taxonomy, images, **engine_kwargs)
        result = engine.sync_rows(data, should_stop=should_stop)
        logger.info(result.describe())
        return result


def preview_sheet_row(
    sheet: SheetConfig,
    settings: SyncSettings,
    store: ContentStore,
    row_number: int,
    *,
    session: Any = None,
    clock: Callable[[], datetime] | None = None,
) -> RowPreview:
    """Dry run for one data row of a sheet (1-based, clamped).

    Raises:
        SourceFetchError, SourceFormatError: the sheet itself cannot be loaded
    """
    data = load_sheet(sheet, timeout=settings.http_timeout, session=session)
    engine = (
        ReconciliationEngine(sheet, settings, store, clock=clock)
        if clock is not None
        else ReconciliationEngine(sheet, settings, store)
    )
    return engine.preview_row(data, row_number)


def run_batch_sync(
    configs: Sequence[SheetConfig],
    settings: SyncSettings,
    store: ContentStore,
    taxonomy: Taxonomy | None = None,
    images: ImageAttacher | None = None,
    *,
    lock: SyncLock | None = None,
    error_log: ErrorLogBuffer | None = None,
    session: Any = None,
    should_stop: Callable[[], bool] | None = None,
    clock: Callable[[], datetime] | None = None,
) -> BatchSyncResult:
    """Sync every configured sheet, one after the other.

    This is the main orchestration function that:
    1. Takes the sync lock (returns at once with locked_out=True if taken)
    2. Syncs each sheet; a failing sheet never stops the others
    3. Flushes the error log once
    4. Returns the aggregated BatchSyncResult

    ``should_stop`` is polled between sheets and between rows; on True the
    counts gathered so far are returned.
    """
    start_time = datetime.now(UTC)
    if error_log is None:
        error_log = ErrorLogBuffer()

    if lock is not None and not lock.acquire():
        logger.info("another sync is already running; nothing to do")
        return BatchSyncResult(start_time=start_time, end_time=datetime.now(UTC), locked_out=True)

    results: list[SheetSyncResult] = []
    try:
        with ProgressTracker(len(configs), description="Syncing sheets") as progress:
            for sheet in configs:
                if should_stop is not None and should_stop():
                    logger.info("batch sync cancelled")
                    break
                progress.start_sheet(sheet.name)
                result = sync_sheet(
                    sheet,
                    settings,
                    store,
                    taxonomy,
                    images,
                    error_log=error_log,
                    session=session,
                    should_stop=should_stop,
                    clock=clock,
                )
                results.append(result)
                progress.set_postfix(
                    created=sum(r.created for r in results),
                    updated=sum(r.updated for r in results),
                    failed=sum(1 for r in results if not r.succeeded),
                )
                progress.finish_sheet(success=result.succeeded)
    finally:
        if lock is not None:
            lock.release()

    counts = error_log.counts_by_type()
    try:
        path = error_log.flush()
        if path is not None:
            breakdown = ", ".join(f"{k}={v}" for k, v in counts.items())
            logger.info(f"errors written to {path} ({breakdown})")
    except OSError as e:
        # Don't fail the entire run if the error log cannot be written
        logger.warning(f"could not write error log: {e}")

    return BatchSyncResult(start_time=start_time, end_time=datetime.now(UTC), sheets=results)
