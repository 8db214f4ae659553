from __future__ import annotations

import json
from pathlib import Path

from conftest import FakeResponse, sheet_link
from sheets2posts.config.loader import load_config
from sheets2posts.logging.error_log import ErrorLogBuffer
from sheets2posts.services.lock import SyncLock
from sheets2posts.services.orchestrator import run_batch_sync
from sheets2posts.store.memory import MemoryContentStore

"""End-to-end batch sync: YAML config -> fetch (mocked) -> memory store."""

NEWS_V1 = (
    "title,content,category,tags,status,featured_image\n"
    'Launch,"# Launch\nWe are live.",News,"release, product",publish,https://img.example.com/launch.png\n'
    'Roadmap,"- one\n- two",News,,,\n'
    ",orphan content,,,,\n"
)


def _run(cfg, store, session, tmp_path: Path):
    return run_batch_sync(
        cfg.sheets,
        cfg.settings,
        store,
        store,
        store,
        lock=SyncLock(tmp_path / "lock", "sync"),
        error_log=ErrorLogBuffer(tmp_path / "logs"),
        session=session,
    )


def test_repeated_runs_are_idempotent(write_config, make_session, events_csv, tmp_path):
    cfg = load_config(write_config)
    store = MemoryContentStore()
    session = make_session({"DOC_NEWS": NEWS_V1, "DOC_EVENTS": events_csv})

    first = _run(cfg, store, session, tmp_path)
    assert (first.total("created"), first.total("skipped")) == (3, 1)
    assert first.total("images_set") == 1
    writes = store.writes

    second = _run(cfg, store, session, tmp_path)
    assert (second.total("created"), second.total("updated"), second.total("unchanged")) == (0, 0, 3)
    assert second.total("images_set") == 0
    assert store.writes == writes
    assert store.image_downloads == 1


def test_edit_in_sheet_updates_only_that_post(write_config, make_session, events_csv, tmp_path):
    cfg = load_config(write_config)
    store = MemoryContentStore()
    _run(cfg, store, make_session({"DOC_NEWS": NEWS_V1, "DOC_EVENTS": events_csv}), tmp_path)

    edited = NEWS_V1.replace("We are live.", "We are live!")
    result = _run(cfg, store, make_session({"DOC_NEWS": edited, "DOC_EVENTS": events_csv}), tmp_path)
    assert (result.total("updated"), result.total("unchanged")) == (1, 2)

    launch_id = store.find_by_exact_title("Launch", "post")
    assert "We are live!" in store.posts[launch_id].content_html
    assert store.posts[launch_id].tags == ["release", "product"]


def test_partial_failure_keeps_other_sheets(write_config, make_session, tmp_path):
    cfg = load_config(write_config)
    store = MemoryContentStore()
    session = make_session({"DOC_NEWS": NEWS_V1, "DOC_EVENTS": FakeResponse("oops", status_code=500)})

    result = _run(cfg, store, session, tmp_path)
    assert (result.success_sheets, result.failed_sheets) == (1, 1)
    assert [p.title for p in store.posts.values()] == ["Launch", "Roadmap"]

    [log_file] = (tmp_path / "logs").glob("errors-*.log")
    records = [json.loads(x) for x in log_file.read_text(encoding="utf-8").splitlines()]
    assert {(r["sheet_id"], r["row"], r["error_type"]) for r in records} == {
        ("news", 3, "ROW_INVALID"),
        ("events", -1, "SOURCE_FETCH_FAILED"),
    }


def test_event_sheet_uses_its_target_type(write_config, make_session, events_csv, tmp_path):
    cfg = load_config(write_config)
    store = MemoryContentStore()
    _run(cfg, store, make_session({"DOC_NEWS": NEWS_V1, "DOC_EVENTS": events_csv}), tmp_path)
    gala_id = store.find_by_exact_title("Gala", "event")
    assert gala_id is not None
    assert store.posts[gala_id].content_html == "<h2>Gala</h2><p>Town Hall</p>"
    assert store.find_by_exact_title("Gala", "post") is None


def test_same_title_in_two_sheets_of_one_type(temp_workdir, make_session, tmp_path):
    cfg_path = temp_workdir / "config" / "sync.yml"
    cfg_path.write_text(
        "sheets:\n"
        f"  - {{id: a, name: A, source_url: '{sheet_link('DOC_A')}'}}\n"
        f"  - {{id: b, name: B, source_url: '{sheet_link('DOC_B')}'}}\n",
        encoding="utf-8",
    )
    cfg = load_config(cfg_path)
    store = MemoryContentStore()
    session = make_session({"DOC_A": "title,content\nShared,from a\n",
                            "DOC_B": "title,content\nShared,from b\n"})
    result = _run(cfg, store, session, tmp_path)
    # title is the identity: the second sheet updates the post of the first
    assert (result.total("created"), result.total("updated")) == (1, 1)
    assert len(store.posts) == 1
