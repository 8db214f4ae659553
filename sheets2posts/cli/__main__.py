from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

import psycopg2
from dotenv import load_dotenv

from sheets2posts.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from sheets2posts.errors import SourceFetchError, SourceFormatError, StoreWriteError
from sheets2posts.logging.error_log import ErrorLogBuffer
from sheets2posts.logging.init import log_summary, set_debug, setup_logging
from sheets2posts.models.config_models import DatabaseConfig, SheetConfig, SyncConfig
from sheets2posts.models.sync_result import RowPreview
from sheets2posts.services.lock import SyncLock
from sheets2posts.services.orchestrator import preview_sheet_row, run_batch_sync
from sheets2posts.services.summary import render_summary_line
from sheets2posts.source.fetch import fetch_csv_text, to_csv_url
from sheets2posts.source.reader import parse_csv_text, split_sheet
from sheets2posts.store.images import HttpImageAttacher
from sheets2posts.store.memory import MemoryContentStore
from sheets2posts.store.postgres import PostgresContentStore

"""CLI entrypoint.

Flow:
- Load .env, then the YAML config
- Open the content store (PostgreSQL, or the in-memory store in mock mode)
- Sync all sheets (or the one picked with --sheet) under the sync lock
- Print one SUMMARY line and exit with 0 / 1 / 2

--inspect-data and --test-row never write anything.
"""

EXIT_SUCCESS_ALL = 0
EXIT_FATAL = 1
EXIT_SHEET_FAILED = 2

LOCK_NAME = "sheets2posts-sync"


def _resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Build the connection string.

    Precedence (.env is loaded with override, so its values win):
        1. DATABASE_URL / PGDSN, then database.dsn from the config
        2. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
        3. the remaining fields of the database section
    """
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv (override so DB settings from .env win)."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Google Sheets -> posts sync")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Path to the YAML config")
    p.add_argument("--sheet", type=int, default=None, help="Only sync the sheet at this index (0-based)")
    p.add_argument("--test-row", type=int, default=None, help="Dry-run preview of this data row (1-based)")
    p.add_argument("--inspect-data", action="store_true", help="Print sheet headers & first rows then exit")
    p.add_argument("--memory-store", action="store_true", help="Use the in-memory store (no database)")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    return p.parse_args(argv)


def _inspect_data(cfg: SyncConfig, sheets: list[SheetConfig]) -> int:
    if not sheets:
        print("inspect: no sheets configured")
        return EXIT_SUCCESS_ALL
    for sheet in sheets:
        print(f"SHEET: {sheet.name} (id={sheet.id}, mode={sheet.mode.value})")
        try:
            text = fetch_csv_text(to_csv_url(sheet.source_url), timeout=cfg.settings.http_timeout)
            data = split_sheet(parse_csv_text(text))
        except (SourceFetchError, SourceFormatError) as e:
            print(f"  error={e}")
            continue
        print(f"  header_map={data.header_map}")
        print(f"  data_rows={len(data.data_rows)}")
        for row in data.data_rows[:3]:
            print(f"    {row}")
    return EXIT_SUCCESS_ALL


def _print_preview(preview: RowPreview) -> None:
    print(f"PREVIEW: {preview.sheet_name} row {preview.row_index}/{preview.max_rows}")
    if preview.error is not None:
        print(f"  error: {preview.error}")
        return
    print(f"  action: {preview.action}")
    print(f"  reason: {preview.reason}")
    print(f"  title: {preview.title}")
    print(f"  status: {preview.status}")
    print(f"  publish_at: {preview.publish_at}")
    print(f"  target_type: {preview.target_type}")
    print(f"  category: {preview.category}")
    print(f"  tags: {', '.join(preview.tags)}")
    print(f"  featured_image: {preview.featured_image}")
    print(f"  fingerprint: {preview.fingerprint}")
    print("  content:")
    for line in preview.rendered_content.splitlines():
        print(f"    {line}")


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None only: an explicit [] must not pick up pytest's own argv
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.debug:
        set_debug(True)
        logger.debug("debug mode enabled")

    sheets = list(cfg.sheets)
    if args.sheet is not None:
        if not 0 <= args.sheet < len(sheets):
            logger.error(f"sheet index out of range: {args.sheet} (configured: {len(sheets)})")
            return EXIT_FATAL
        sheets = [sheets[args.sheet]]

    if args.inspect_data:
        return _inspect_data(cfg, sheets)

    # DISABLE_DB_CONNECT=1 (tests) or --memory-store skip the database entirely
    use_memory = args.memory_store or os.getenv("DISABLE_DB_CONNECT") == "1"
    conn = None
    store: MemoryContentStore | PostgresContentStore | None = None
    db_mode = "mock"
    if not use_memory:
        try:
            conn = psycopg2.connect(_resolve_dsn(cfg.database))
            store = PostgresContentStore(conn)
            store.ensure_schema()
            db_mode = "live"
        except (psycopg2.Error, StoreWriteError) as db_e:
            logger.info(f"DB connection failed -> fallback to mock mode: {db_e}")
            if conn is not None:
                conn.close()
                conn = None
            store = None
    else:
        logger.debug("DB connect disabled -> mock mode")

    try:
        if store is None:
            store = MemoryContentStore()
            images = store
        else:
            images = HttpImageAttacher(
                store, Path(cfg.media_directory), timeout=cfg.settings.http_timeout
            )

        if args.test_row is not None:
            if not sheets:
                logger.error("no sheets configured")
                return EXIT_FATAL
            try:
                preview = preview_sheet_row(sheets[0], cfg.settings, store, args.test_row)
            except (SourceFetchError, SourceFormatError) as e:
                logger.error(f"sheet '{sheets[0].name}': {e}")
                return EXIT_SHEET_FAILED
            _print_preview(preview)
            return EXIT_SUCCESS_ALL

        logger.info(f"mode={db_mode} sheets={len(sheets)}")
        lock = SyncLock(Path(cfg.lock_directory), LOCK_NAME, ttl_seconds=cfg.settings.lock_ttl_seconds)
        result = run_batch_sync(
            sheets,
            cfg.settings,
            store,
            store,
            images,
            lock=lock,
            error_log=ErrorLogBuffer(),
        )
    finally:
        if conn is not None:
            conn.close()

    # log_summary adds the label itself
    log_summary(render_summary_line(result)[len("SUMMARY "):])

    if result.locked_out:
        return EXIT_SUCCESS_ALL
    if result.failed_sheets > 0:
        return EXIT_SHEET_FAILED
    return EXIT_SUCCESS_ALL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
