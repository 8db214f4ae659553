from __future__ import annotations

from ..models.sync_result import BatchSyncResult

"""SUMMARY line rendering.

Format:
SUMMARY sheets={n} success={s} failed={f} rows={r} created={c} updated={u}
unchanged={k} skipped={x} images_set={i} images_failed={j} elapsed_sec={e}
(one line, space separated)
"""

__all__ = [
    "format_seconds",
    "render_summary_line",
]


def format_seconds(value: float) -> str:
    """Integers without decimals, tiny values without scientific notation."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return str(round(value, 3))


def render_summary_line(result: BatchSyncResult) -> str:
    """Render the SUMMARY line for a batch sync.

    >>> from datetime import datetime, timezone
    >>> t = datetime(2024, 1, 1, tzinfo=timezone.utc)
    >>> render_summary_line(BatchSyncResult(start_time=t, end_time=t))
    'SUMMARY sheets=0 success=0 failed=0 rows=0 created=0 updated=0 unchanged=0 skipped=0 images_set=0 images_failed=0 elapsed_sec=0'
    """
    return (
        f"SUMMARY sheets={len(result.sheets)} "
        f"success={result.success_sheets} "
        f"failed={result.failed_sheets} "
        f"rows={result.total('count_rows')} "
        f"created={result.total('created')} "
        f"updated={result.total('updated')} "
        f"unchanged={result.total('unchanged')} "
        f"skipped={result.total('skipped')} "
        f"images_set={result.total('images_set')} "
        f"images_failed={result.total('images_failed')} "
        f"elapsed_sec={format_seconds(result.elapsed_seconds)}"
    )
