from __future__ import annotations

from collections import Counter
from datetime import UTC, datetime
from pathlib import Path

from ..errors import SyncError
from ..models.error_record import ErrorRecord

"""Error log buffering.

Row-level and sheet-level failures of a run are collected in memory and
written once, as JSON Lines with a fixed key set, to
``logs/errors-YYYYMMDD-HHMMSS.log`` (UTC). Nothing is written for a clean run.
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """In-memory buffer for error records. Flush appends JSON Lines.

    - the file path is decided on first access
    - not thread safe (sync runs are serial)
    """

    def __init__(self, logs_dir: Path | None = None) -> None:
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None
        self._logs_dir = logs_dir if logs_dir is not None else LOGS_DIR

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"errors-{stamp}.log"
        return self._file_path

    @property
    def records(self) -> list[ErrorRecord]:
        return list(self._records)

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def record_failure(self, sheet_name: str, sheet_id: str, row: int, error: SyncError) -> None:
        """Buffer ``error`` for a data row of a sheet (row=-1 for the sheet itself)."""
        self.append(
            ErrorRecord.create(
                sheet=sheet_name,
                sheet_id=sheet_id,
                row=row,
                error_type=error.error_type,
                message=str(error),
            )
        )

    def counts_by_type(self) -> dict[str, int]:
        """Buffered records per error_type, most frequent first."""
        return dict(Counter(r.error_type for r in self._records).most_common())

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._records)

    def flush(self) -> Path | None:
        """Write buffered records; returns the file path, or None if nothing was buffered."""
        if not self._records:
            return None
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
