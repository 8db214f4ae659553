from __future__ import annotations

import io
import warnings
from collections.abc import Sequence
from dataclasses import dataclass

import pandas as pd

from ..errors import SourceFormatError
from ..models.config_models import SheetMode

"""CSV reader for spreadsheet exports.

The first non-empty row is the header, every following row is a data row.
Cells are always strings; pandas is used only as the CSV tokenizer so that
quoted commas, embedded newlines and doubled quotes follow the usual rules.
"""

__all__ = [
    "SheetData",
    "build_header_map",
    "get_cell",
    "parse_csv_text",
    "require_columns",
    "split_sheet",
]


@dataclass(frozen=True)
class SheetData:
    header: list[str]
    header_map: dict[str, int]  # lower-cased header name -> column index
    data_rows: list[list[str]]


def _normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def parse_csv_text(text: str) -> list[list[str]]:
    """Parse raw CSV text into rows of string cells.

    Steps:
    1. Normalize line endings to ``\\n``
    2. Tokenize with pandas (no header, no NA conversion)
    3. Pad short rows with "" (pandas yields NaN for missing trailing cells)
    4. Drop rows where every cell is empty or whitespace-only

    Rows wider than the first row are cut to its width; the extra cells have no
    header and could never be addressed by name anyway.
    """
    normalized = _normalize_newlines(text or "")
    if not normalized.strip():
        return []

    with warnings.catch_warnings():
        # the python engine warns when on_bad_lines drops surplus cells
        warnings.simplefilter("ignore", pd.errors.ParserWarning)
        try:
            df = pd.read_csv(
                io.StringIO(normalized),
                header=None,
                dtype=str,
                keep_default_na=False,
                na_filter=False,
                skip_blank_lines=True,
                engine="python",
                on_bad_lines=lambda bad_line: bad_line,
            )
        except pd.errors.EmptyDataError:
            return []

    rows: list[list[str]] = []
    for raw in df.fillna("").values.tolist():
        cells = [str(c) for c in raw]
        if all(c.strip() == "" for c in cells):
            continue
        rows.append(cells)
    return rows


def build_header_map(header_row: Sequence[str]) -> dict[str, int]:
    """Map lower-cased, trimmed header names to their zero-based index.

    Empty names are skipped. On duplicate names the last occurrence wins.
    """
    header_map: dict[str, int] = {}
    for idx, name in enumerate(header_row):
        key = str(name).strip().lower()
        if key:
            header_map[key] = idx
    return header_map


def get_cell(row: Sequence[str], header_map: dict[str, int], name: str) -> str:
    """Return the trimmed cell for column ``name`` (case-insensitive).

    Missing columns and rows that are too short both yield "".
    """
    idx = header_map.get(name.strip().lower())
    if idx is None or idx >= len(row):
        return ""
    return str(row[idx]).strip()


def split_sheet(rows: list[list[str]]) -> SheetData:
    """Split parsed rows into header, header map and data rows."""
    if len(rows) < 2:
        raise SourceFormatError("Sheet must have a header row plus at least one data row.")
    header = rows[0]
    return SheetData(header=header, header_map=build_header_map(header), data_rows=rows[1:])


def require_columns(header_map: dict[str, int], mode: SheetMode) -> None:
    """Validate the header has the columns the rendering mode needs."""
    if "title" in header_map and ("content" in header_map or mode is SheetMode.DEVELOPER):
        return
    if mode is SheetMode.SIMPLE:
        raise SourceFormatError("This sheet must have headers: title, content (Simple Mode).")
    raise SourceFormatError(
        "This sheet must have at least: title (Developer Mode uses template tokens)."
    )
