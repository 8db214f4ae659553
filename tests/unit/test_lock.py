from __future__ import annotations

import time
from pathlib import Path

from sheets2posts.services.lock import SyncLock


def test_acquire_and_release(tmp_path: Path):
    lock = SyncLock(tmp_path / "locks", "sync")
    assert lock.acquire()
    assert lock.held
    assert lock.path == tmp_path / "locks" / "sync.lock"
    assert lock.path.exists()
    lock.release()
    assert not lock.held
    assert not lock.path.exists()


def test_second_holder_is_refused(tmp_path: Path):
    first = SyncLock(tmp_path, "sync")
    second = SyncLock(tmp_path, "sync")
    assert first.acquire()
    assert not second.acquire()
    first.release()
    assert second.acquire()
    second.release()


def test_acquire_is_reentrant_for_the_holder(tmp_path: Path):
    lock = SyncLock(tmp_path)
    assert lock.acquire()
    assert lock.acquire()
    lock.release()


def test_stale_lock_is_broken(tmp_path: Path):
    crashed = SyncLock(tmp_path, "sync")
    assert crashed.acquire()

    later = SyncLock(tmp_path, "sync", ttl_seconds=600, clock=lambda: time.time() + 3600)
    assert later.is_stale()
    assert later.acquire()
    later.release()


def test_release_without_holding_keeps_foreign_lock(tmp_path: Path):
    owner = SyncLock(tmp_path, "sync")
    other = SyncLock(tmp_path, "sync")
    owner.acquire()
    other.release()
    assert owner.path.exists()
    owner.release()

