from __future__ import annotations

import json
import logging
import os
import time
from collections.abc import Callable
from pathlib import Path

"""Non-blocking mutual exclusion for sync runs.

A cron-triggered run and a manual run must not process the same rows at the
same time. The guard is a lock file created with O_CREAT | O_EXCL: whoever
creates it owns the run, everybody else returns immediately instead of
waiting. A lock file older than ``ttl_seconds`` belongs to a crashed run and is
broken.
"""

__all__ = [
    "SyncLock",
]

logger = logging.getLogger(__name__)


class SyncLock:
    """Lock file ``<directory>/<name>.lock``.

    Args:
        directory: Directory holding the lock file (created on demand)
        name: Key of the guarded operation
        ttl_seconds: Age after which an existing lock is considered stale
        clock: Wall clock in epoch seconds (tests pin it)
    """

    def __init__(
        self,
        directory: Path,
        name: str = "sync",
        ttl_seconds: int = 600,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.directory = directory
        self.path = directory / f"{name}.lock"
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.held = False

    def _create(self) -> bool:
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(json.dumps({"pid": os.getpid(), "acquired_at": self.clock()}))
        return True

    def is_stale(self) -> bool:
        try:
            age = self.clock() - self.path.stat().st_mtime
        except FileNotFoundError:
            return True
        return age > self.ttl_seconds

    def acquire(self) -> bool:
        """Try once to take the lock; never blocks."""
        if self.held:
            return True
        self.directory.mkdir(parents=True, exist_ok=True)
        if not self._create():
            if not self.is_stale():
                return False
            logger.warning("breaking stale sync lock %s", self.path)
            self.path.unlink(missing_ok=True)
            if not self._create():
                return False
        self.held = True
        return True

    def release(self) -> None:
        if self.held:
            self.path.unlink(missing_ok=True)
            self.held = False

