from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

"""Config dataclasses for the sheet -> post sync.

These are the plain-data forms of the persisted configuration. The loader in
sheets2posts/config/loader.py builds them from YAML; the engine only ever
receives them as arguments.
"""

__all__ = [
    "DEFAULT_TEMPLATE",
    "NEW_RECORD_STATUSES",
    "DatabaseConfig",
    "SheetConfig",
    "SheetMode",
    "SyncConfig",
    "SyncSettings",
]

DEFAULT_TEMPLATE = "<h2>{{title}}</h2>\n<p>{{content}}</p>"

# "future" needs a date, so it can never be the fallback for new records
NEW_RECORD_STATUSES = frozenset({"draft", "publish", "private", "pending"})


class SheetMode(Enum):
    """Rendering rule for a sheet.

    - SIMPLE: the ``content`` column holds Markdown-subset text
    - DEVELOPER: the whole row is rendered through an HTML template
    """
    SIMPLE = "simple"
    DEVELOPER = "developer"

    @classmethod
    def normalize(cls, value: object) -> SheetMode:
        """Map any stored value onto a mode; unknown values become SIMPLE."""
        if isinstance(value, SheetMode):
            return value
        if str(value or "").strip().lower() == cls.DEVELOPER.value:
            return cls.DEVELOPER
        return cls.SIMPLE


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class SheetConfig:
    """One data source and its rendering rule."""
    id: str  # stable source identity, part of every row fingerprint
    name: str  # display label
    source_url: str  # link to the spreadsheet as the user pasted it
    mode: SheetMode = SheetMode.SIMPLE
    template: str = DEFAULT_TEMPLATE  # only used in DEVELOPER mode
    target_type: str = "post"

    @property
    def effective_template(self) -> str:
        """Template as it participates in rendering and fingerprints."""
        return self.template if self.mode is SheetMode.DEVELOPER else ""


@dataclass(frozen=True)
class SyncSettings:
    """Global sync policy shared by every sheet."""
    default_status: str = "draft"  # status for new records whose row has none
    force_status_from_sheet: bool = False  # when False, updates keep the stored status
    http_timeout: float = 25.0  # seconds, per HTTP call
    schedule_buffer_seconds: int = 60  # minimum lead time for "future" posts
    timezone: str = "UTC"  # applied to naive dates from the sheet
    lock_ttl_seconds: int = 600  # a sync lock older than this is considered stale


@dataclass(frozen=True)
class SyncConfig:
    """Root configuration object for a sync run."""
    sheets: list[SheetConfig]
    settings: SyncSettings = field(default_factory=SyncSettings)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    media_directory: str = "./media"  # where downloaded featured images land
    lock_directory: str = "./logs"  # where the sync lock file lives
