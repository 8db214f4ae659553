from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

"""Result models for row, sheet and batch sync.

RowResult is the terminal state of one data row, SheetSyncResult aggregates
the rows of one sheet and BatchSyncResult aggregates every sheet of a run.
RowPreview is what a dry run reports for a single row.
"""

__all__ = [
    "BatchSyncResult",
    "RowOutcome",
    "RowPreview",
    "RowResult",
    "SheetSyncResult",
]


class RowOutcome(Enum):
    """Terminal outcome of a data row.

    - CREATED: no record with that title existed, one was created
    - UPDATED: a record existed and its fingerprint differed
    - UNCHANGED: a record existed with the same fingerprint, nothing written
    - SKIPPED_INVALID: row invalid or the store rejected the write
    """
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    SKIPPED_INVALID = "skipped"


@dataclass(frozen=True)
class RowResult:
    row_index: int  # 1-based among data rows
    outcome: RowOutcome
    record_id: int | None = None
    reason: str | None = None  # why a row was skipped
    image_set: bool = False
    image_failed: bool = False


@dataclass(frozen=True)
class SheetSyncResult:
    """Aggregated counts for one sheet.

    ``error`` is set when the whole sheet failed (fetch or format error); the
    counters are then all zero.
    """
    sheet_id: str
    sheet_name: str
    count_rows: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0
    images_set: int = 0
    images_failed: int = 0
    cancelled: bool = False
    error: str | None = None
    rows: list[RowResult] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @classmethod
    def from_rows(
        cls,
        sheet_id: str,
        sheet_name: str,
        count_rows: int,
        rows: list[RowResult],
        cancelled: bool = False,
    ) -> SheetSyncResult:
        counts = {outcome: 0 for outcome in RowOutcome}
        for r in rows:
            counts[r.outcome] += 1
        return cls(
            sheet_id=sheet_id,
            sheet_name=sheet_name,
            count_rows=count_rows,
            created=counts[RowOutcome.CREATED],
            updated=counts[RowOutcome.UPDATED],
            unchanged=counts[RowOutcome.UNCHANGED],
            skipped=counts[RowOutcome.SKIPPED_INVALID],
            images_set=sum(1 for r in rows if r.image_set),
            images_failed=sum(1 for r in rows if r.image_failed),
            cancelled=cancelled,
            rows=rows,
        )

    @classmethod
    def failed(cls, sheet_id: str, sheet_name: str, error: str) -> SheetSyncResult:
        return cls(sheet_id=sheet_id, sheet_name=sheet_name, error=error)

    def describe(self) -> str:
        """One human line, as shown after a manual sync."""
        if self.error is not None:
            return f"{self.sheet_name}: {self.error}"
        return (
            f"{self.sheet_name}: Processed {self.count_rows} rows. "
            f"Created {self.created}, updated {self.updated}, "
            f"unchanged {self.unchanged}, skipped {self.skipped}. "
            f"Images set {self.images_set} (failed {self.images_failed})."
        )


@dataclass(frozen=True)
class BatchSyncResult:
    """Aggregated results of a batch sync over several sheets."""
    start_time: datetime
    end_time: datetime
    sheets: list[SheetSyncResult] = field(default_factory=list)
    locked_out: bool = False  # another sync held the lock, nothing was done

    @property
    def elapsed_seconds(self) -> float:
        return (self.end_time - self.start_time).total_seconds()

    @property
    def success_sheets(self) -> int:
        return sum(1 for s in self.sheets if s.succeeded)

    @property
    def failed_sheets(self) -> int:
        return sum(1 for s in self.sheets if not s.succeeded)

    def total(self, counter: str) -> int:
        """Sum one counter (``created``, ``updated``, ...) over all sheets."""
        return sum(getattr(s, counter) for s in self.sheets)


@dataclass(frozen=True)
class RowPreview:
    """Dry-run report for one row.

    Either ``error`` is set (row cannot be synced, e.g. empty title) or
    ``action`` tells what a real sync would do.
    """
    sheet_name: str
    row_index: int
    max_rows: int
    error: str | None = None
    action: str | None = None  # CREATE / UPDATE / UNCHANGED
    reason: str | None = None
    existing_id: int | None = None
    title: str = ""
    status: str = ""
    publish_at: str = ""
    target_type: str = ""
    category: str = ""
    tags: tuple[str, ...] = ()
    featured_image: str = ""
    rendered_content: str = ""
    fingerprint: str = ""
