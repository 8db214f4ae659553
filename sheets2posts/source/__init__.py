from .fetch import fetch_csv_text, load_sheet, to_csv_url
from .reader import SheetData, build_header_map, get_cell, parse_csv_text, require_columns, split_sheet

__all__ = [
    "SheetData",
    "build_header_map",
    "fetch_csv_text",
    "get_cell",
    "load_sheet",
    "parse_csv_text",
    "require_columns",
    "split_sheet",
    "to_csv_url",
]
