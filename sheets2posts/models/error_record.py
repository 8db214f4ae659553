from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for error logging.

This module defines the ErrorRecord dataclass used for structured error logging
during a sync run. It supports row=-1 as a sentinel value for sheet-level
errors where no specific row is involved (fetch failure, bad header).
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        sheet: Display name of the sheet being synced
        sheet_id: Stable id of the sheet configuration
        row: Data row number (1-based). Use -1 for sheet-level errors
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Human readable description
    """
    timestamp: str  # ISO8601 UTC
    sheet: str
    sheet_id: str
    row: int  # -1 when the error concerns the whole sheet
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(sheet: str, sheet_id: str, row: int, error_type: str, message: str) -> ErrorRecord:
        """Create a new ErrorRecord with current UTC timestamp."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            sheet=sheet,
            sheet_id=sheet_id,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        """Serialize ErrorRecord to JSON Lines format (fixed key set)."""
        return json.dumps(asdict(self), ensure_ascii=False)
