"""Domain models for the sheet -> post sync.

This package contains the dataclasses shared by the reader, the renderers,
the reconciliation engine and the orchestrator.
"""

from .config_models import DatabaseConfig, SheetConfig, SheetMode, SyncConfig, SyncSettings
from .error_record import ErrorRecord
from .resolved_row import ResolvedRow
from .sync_result import BatchSyncResult, RowOutcome, RowPreview, RowResult, SheetSyncResult

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "SheetConfig",
    "SheetMode",
    "SyncConfig",
    "SyncSettings",
    # Processing models
    "ErrorRecord",
    "ResolvedRow",
    # Results
    "BatchSyncResult",
    "RowOutcome",
    "RowPreview",
    "RowResult",
    "SheetSyncResult",
]
