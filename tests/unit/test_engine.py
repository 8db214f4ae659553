from __future__ import annotations

from datetime import timedelta
from unittest.mock import patch

import pytest

from conftest import FIXED_NOW, FakeResponse, FakeSession
from sheets2posts.errors import StoreWriteError
from sheets2posts.logging.error_log import ErrorLogBuffer
from sheets2posts.models.config_models import SheetConfig, SheetMode, SyncSettings
from sheets2posts.models.sync_result import RowOutcome
from sheets2posts.source.reader import SheetData, split_sheet
from sheets2posts.store.images import THUMBNAIL_PATH_META_KEY, HttpImageAttacher
from sheets2posts.store.memory import MemoryContentStore
from sheets2posts.sync.engine import ReconciliationEngine
from sheets2posts.sync.fingerprint import FINGERPRINT_META_KEY

HEADER = ["title", "content", "category", "tags", "featured_image", "status", "post_date"]
IMAGE_URL = "https://img.example.com/a.jpg"


def sheet_data(*rows: list[str]) -> SheetData:
    return split_sheet([HEADER, *[list(r) + [""] * (len(HEADER) - len(r)) for r in rows]])


@pytest.fixture()
def store() -> MemoryContentStore:
    return MemoryContentStore()


@pytest.fixture()
def error_log(tmp_path) -> ErrorLogBuffer:
    return ErrorLogBuffer(tmp_path / "logs")


@pytest.fixture()
def make_engine(store, error_log, fixed_clock):
    def _make(settings: SyncSettings | None = None, sheet: SheetConfig | None = None,
              target: MemoryContentStore | None = None) -> ReconciliationEngine:
        s = target or store
        return ReconciliationEngine(
            sheet or SheetConfig(id="s1", name="News", source_url=""),
            settings or SyncSettings(),
            s,
            s,
            s,
            error_log=error_log,
            clock=fixed_clock,
        )
    return _make


class TestSyncRows:
    def test_first_run_creates_second_run_is_unchanged(self, make_engine, store):
        data = sheet_data(["A", "# H\nBody", "News", "a, b ,,c"], ["B", "**x** and *y*"])
        first = make_engine().sync_rows(data)
        assert (first.created, first.updated, first.unchanged, first.skipped) == (2, 0, 0, 0)
        writes = store.writes

        second = make_engine().sync_rows(data)
        assert (second.created, second.updated, second.unchanged) == (0, 0, 2)
        assert store.writes == writes

    def test_created_post_content_and_taxonomy(self, make_engine, store):
        make_engine().sync_rows(sheet_data(["A", "# H\nBody", "News", "a, b ,,c"]))
        post = store.posts[1]
        assert post.title == "A"
        assert post.content_html == "<h1>H</h1>\n<p>Body</p>\n"
        assert post.status == "draft"
        assert post.category_ids == [store.categories["News"]]
        assert post.tags == ["a", "b", "c"]
        assert len(post.meta[FINGERPRINT_META_KEY]) == 32

    def test_changed_content_updates(self, make_engine, store):
        make_engine().sync_rows(sheet_data(["A", "Body"]))
        result = make_engine().sync_rows(sheet_data(["A", "Body changed"]))
        assert result.updated == 1
        assert store.posts[1].content_html == "<p>Body changed</p>\n"
        assert len(store.posts) == 1

    def test_empty_title_never_writes(self, make_engine, store, error_log):
        result = make_engine().sync_rows(sheet_data(["  ", "Body"]))
        assert result.skipped == 1
        assert result.rows[0].reason == "row has empty title"
        assert store.writes == 0
        [record] = error_log.records
        assert (record.row, record.error_type) == (1, "ROW_INVALID")

    def test_empty_content_in_simple_mode_skipped(self, make_engine, store):
        result = make_engine().sync_rows(sheet_data(["A", "   "]))
        assert result.skipped == 1
        assert result.rows[0].reason == "row has empty content"
        assert store.writes == 0

    def test_failing_row_does_not_stop_the_batch(self, make_engine):
        store = MemoryContentStore(reject_titles=["Bad"])
        result = make_engine(target=store).sync_rows(
            sheet_data(["Good", "x"], ["Bad", "y"], ["", "z"], ["Also good", "w"])
        )
        assert (result.created, result.skipped, result.count_rows) == (2, 2, 4)
        assert result.rows[1].reason.startswith("store rejected create:")

    def test_cancel_returns_partial_counts(self, make_engine, store):
        data = sheet_data(["A", "x"], ["B", "y"], ["C", "z"])
        result = make_engine().sync_rows(data, should_stop=lambda: len(store.posts) >= 1)
        assert result.cancelled is True
        assert result.created == 1
        assert result.count_rows == 3
        assert len(result.rows) == 1

    def test_developer_mode_uses_template(self, make_engine, store):
        sheet = SheetConfig(id="dev", name="Events", source_url="", mode=SheetMode.DEVELOPER,
                            template="<h2>{{title}}</h2><p>{{venue}}</p>", target_type="event")
        data = split_sheet([["Title", "Venue"], ["Gala", "Town <Hall>"]])
        result = make_engine(sheet=sheet).sync_rows(data)
        assert result.created == 1
        post = store.posts[1]
        assert post.content_type == "event"
        assert post.content_html == "<h2>Gala</h2><p>Town &lt;Hall&gt;</p>"


class TestStatus:
    def test_new_record_uses_row_status(self, make_engine, store):
        make_engine().sync_rows(sheet_data(["A", "x", "", "", "", "Publish"]))
        assert store.posts[1].status == "publish"

    def test_new_record_invalid_status_uses_default(self, make_engine, store):
        make_engine(SyncSettings(default_status="pending")).sync_rows(
            sheet_data(["A", "x", "", "", "", "bogus"])
        )
        assert store.posts[1].status == "pending"

    def test_force_status_off_keeps_stored_status(self, make_engine, store):
        store.create("A", "<p>old</p>\n", "publish", "post")
        result = make_engine().sync_rows(sheet_data(["A", "new", "", "", "", "draft"]))
        assert result.updated == 1
        assert store.posts[1].status == "publish"

    def test_force_status_on_uses_row_status(self, make_engine, store):
        store.create("A", "<p>old</p>\n", "publish", "post")
        make_engine(SyncSettings(force_status_from_sheet=True)).sync_rows(
            sheet_data(["A", "new", "", "", "", "draft"])
        )
        assert store.posts[1].status == "draft"

    def test_future_with_bad_date_on_new_record_falls_back(self, make_engine, store):
        make_engine().sync_rows(sheet_data(["A", "x", "", "", "", "future", "not a date"]))
        post = store.posts[1]
        assert post.status == "draft"
        assert post.date is None

    def test_future_too_soon_falls_back(self, make_engine, store):
        soon = (FIXED_NOW + timedelta(seconds=30)).strftime("%Y-%m-%d %H:%M:%S")
        make_engine().sync_rows(sheet_data(["A", "x", "", "", "", "future", soon]))
        assert store.posts[1].status == "draft"

    def test_future_with_valid_date(self, make_engine, store):
        make_engine().sync_rows(sheet_data(["A", "x", "", "", "", "future", "2025-01-03 12:00"]))
        post = store.posts[1]
        assert post.status == "future"
        assert post.date == FIXED_NOW + timedelta(days=2)

    def test_existing_future_keeps_stored_date(self, make_engine, store):
        scheduled = FIXED_NOW + timedelta(days=1)
        store.create("A", "<p>old</p>\n", "future", "post", scheduled)
        make_engine().sync_rows(sheet_data(["A", "new"]))
        post = store.posts[1]
        assert post.status == "future"
        assert post.date == scheduled

    def test_lapsed_schedule_resolves_to_publish(self, make_engine, store):
        scheduled = FIXED_NOW - timedelta(minutes=5)
        store.create("A", "<p>old</p>\n", "future", "post", scheduled)
        result = make_engine().sync_rows(sheet_data(["A", "old"]))
        assert result.rows[0].outcome is RowOutcome.UPDATED
        post = store.posts[1]
        assert post.status == "publish"
        assert post.date == scheduled

    def test_forced_future_without_date_keeps_existing_status(self, make_engine, store):
        store.create("A", "<p>old</p>\n", "publish", "post")
        make_engine(SyncSettings(force_status_from_sheet=True)).sync_rows(
            sheet_data(["A", "new", "", "", "", "future"])
        )
        assert store.posts[1].status == "publish"


class TestImages:
    def test_image_attached_once(self, make_engine, store):
        data = sheet_data(["A", "x", "", "", IMAGE_URL])
        first = make_engine().sync_rows(data)
        second = make_engine().sync_rows(data)
        assert first.images_set == 1
        assert second.images_set == 0
        assert store.image_downloads == 1
        assert store.posts[1].thumbnail_url == IMAGE_URL

    def test_image_failure_does_not_change_outcome(self, make_engine, error_log):
        store = MemoryContentStore(broken_images=[IMAGE_URL])
        result = make_engine(target=store).sync_rows(sheet_data(["A", "x", "", "", IMAGE_URL]))
        assert result.created == 1
        assert (result.images_set, result.images_failed) == (0, 1)
        assert [r.error_type for r in error_log.records] == ["IMAGE_ATTACH_FAILED"]

    def test_image_metadata_failure_keeps_created_outcome(self, error_log, fixed_clock, tmp_path):
        class ThumbnailRejectingStore(MemoryContentStore):
            def set_metadata(self, record_id, key, value):
                if key == THUMBNAIL_PATH_META_KEY:
                    raise StoreWriteError("meta write rejected")
                super().set_metadata(record_id, key, value)

        target = ThumbnailRejectingStore()
        session = FakeSession({IMAGE_URL: FakeResponse(content=b"img")})
        engine = ReconciliationEngine(
            SheetConfig(id="s1", name="News", source_url=""),
            SyncSettings(),
            target,
            target,
            HttpImageAttacher(target, tmp_path / "media", session=session),
            error_log=error_log,
            clock=fixed_clock,
        )
        result = engine.sync_rows(sheet_data(["A", "x", "", "", IMAGE_URL]))
        assert result.rows[0].outcome is RowOutcome.CREATED
        assert result.rows[0].record_id == 1
        assert (result.created, result.skipped, result.images_failed) == (1, 0, 1)
        assert [r.error_type for r in error_log.records] == ["IMAGE_ATTACH_FAILED"]

    def test_invalid_image_url_counts_nowhere(self, make_engine, store):
        result = make_engine().sync_rows(sheet_data(["A", "x", "", "", "not a url"]))
        assert (result.images_set, result.images_failed) == (0, 0)
        assert store.image_downloads == 0


class TestPreview:
    def test_preview_does_not_write(self, make_engine, store):
        preview = make_engine().preview_row(sheet_data(["A", "Body", "News", "x,y"]), 1)
        assert preview.error is None
        assert preview.action == "CREATE"
        assert preview.reason == "No existing item found with this exact title."
        assert preview.tags == ("x", "y")
        assert preview.rendered_content == "<p>Body</p>\n"
        assert store.writes == 0
        assert store.posts == {}

    def test_preview_matches_real_sync(self, make_engine, store):
        data = sheet_data(["A", "Body"])
        preview = make_engine().preview_row(data, 1)
        make_engine().sync_rows(data)
        assert store.posts[1].meta[FINGERPRINT_META_KEY] == preview.fingerprint

        again = make_engine().preview_row(data, 1)
        assert again.action == "UNCHANGED"
        assert again.reason == "Matched existing ID 1 and hash is unchanged."

    def test_preview_detects_changes(self, make_engine, store):
        make_engine().sync_rows(sheet_data(["A", "Body"]))
        preview = make_engine().preview_row(sheet_data(["A", "Other"]), 1)
        assert preview.action == "UPDATE"
        assert preview.existing_id == 1
        assert preview.reason == "Matched existing ID 1 (changes detected)."

    @pytest.mark.parametrize("requested, expected", [(0, 1), (-3, 1), (2, 2), (99, 3)])
    def test_preview_row_number_is_clamped(self, make_engine, requested, expected):
        data = sheet_data(["A", "x"], ["B", "y"], ["C", "z"])
        preview = make_engine().preview_row(data, requested)
        assert preview.row_index == expected
        assert preview.max_rows == 3

    def test_preview_invalid_row(self, make_engine):
        preview = make_engine().preview_row(sheet_data(["", "x"]), 1)
        assert preview.error == "That row has empty title."
        assert preview.action is None

    def test_preview_store_failure_is_reported(self, make_engine, store):
        with patch.object(store, "find_by_exact_title", side_effect=StoreWriteError("db gone")):
            preview = make_engine().preview_row(sheet_data(["A", "x"]), 1)
        assert preview.error == "Could not look up the row: db gone"
        assert preview.action is None

    def test_preview_without_rows(self, make_engine):
        data = SheetData(header=HEADER, header_map={"title": 0, "content": 1}, data_rows=[])
        preview = make_engine().preview_row(data, 1)
        assert preview.error == "Sheet has no data rows."
