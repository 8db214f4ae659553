# Shared pytest fixtures
from __future__ import annotations

import logging
import tempfile
from datetime import UTC, datetime
from pathlib import Path

import pytest
import requests

from sheets2posts.logging.init import LOGGER_NAME, reset_logging
from sheets2posts.source.fetch import to_csv_url

FIXED_NOW = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)


def sheet_link(doc_id: str) -> str:
    return f"https://docs.google.com/spreadsheets/d/{doc_id}/edit#gid=0"


class FakeResponse:
    def __init__(self, text: str = "", status_code: int = 200, content: bytes | None = None,
                 headers: dict[str, str] | None = None):
        self.text = text
        self.status_code = status_code
        self.content = content if content is not None else text.encode("utf-8")
        self.headers = headers if headers is not None else {"Content-Type": "text/csv"}
        self.encoding: str | None = None

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


class FakeSession:
    """Stands in for requests / requests.Session; unknown URLs fail to connect."""

    def __init__(self, responses: dict[str, object]):
        self.responses = responses
        self.calls: list[tuple[str, float | None]] = []

    def get(self, url: str, timeout: float | None = None):
        self.calls.append((url, timeout))
        r = self.responses.get(url)
        if r is None:
            raise requests.ConnectionError(f"no route to {url}")
        if isinstance(r, Exception):
            raise r
        return r


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    yield
    reset_logging()
    logger = logging.getLogger(LOGGER_NAME)
    for h in logger.handlers[:]:
        logger.removeHandler(h)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture()
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture()
def make_session():
    """Build a FakeSession from ``{doc_id: csv text | FakeResponse | Exception}``."""
    def _make(sheets: dict[str, object]) -> FakeSession:
        responses: dict[str, object] = {}
        for doc_id, value in sheets.items():
            if isinstance(value, str):
                value = FakeResponse(value)
            responses[to_csv_url(sheet_link(doc_id))] = value
        return FakeSession(responses)
    return _make


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return f"""sheets:
  - id: news
    name: News
    source_url: {sheet_link("DOC_NEWS")}
    mode: simple
  - id: events
    name: Events
    source_url: {sheet_link("DOC_EVENTS")}
    mode: developer
    template: "<h2>{{{{title}}}}</h2><p>{{{{venue}}}}</p>"
    target_type: event
settings:
  default_status: draft
  force_status_from_sheet: false
  timezone: UTC
media_directory: ./media
lock_directory: ./logs
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "sync.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def news_csv() -> str:
    return (
        "title,content,category,tags,status\n"
        'First,"# Hello\nBody",News,"a, b ,,c",publish\n'
        "Second,**bold** text,,,\n"
    )


@pytest.fixture()
def events_csv() -> str:
    return "Title,Venue\nGala,Town Hall\n"
