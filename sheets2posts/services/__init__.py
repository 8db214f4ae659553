from .lock import SyncLock
from .orchestrator import preview_sheet_row, run_batch_sync, sync_sheet
from .summary import render_summary_line

__all__ = [
    "SyncLock",
    "preview_sheet_row",
    "render_summary_line",
    "run_batch_sync",
    "sync_sheet",
]
