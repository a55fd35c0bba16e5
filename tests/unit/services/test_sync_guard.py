"""
Unit tests for services/sync_guard.py per-source mutual exclusion.
"""

from __future__ import annotations

import threading

import pytest

from reservation_sync.errors import SyncInProgressError
from reservation_sync.services.sync_guard import SyncLockTable, feed_key, mailbox_key


@pytest.mark.unit
def test_keys_are_namespaced_by_source_kind() -> None:
    """Test that mailbox and feed with the same id never share a lock."""
    assert mailbox_key(7) == "mailbox:7"
    assert feed_key(7) == "feed:7"


@pytest.mark.unit
def test_second_acquire_is_rejected_until_release() -> None:
    """Test that acquire is non-blocking and exclusive per key."""
    locks = SyncLockTable()

    assert locks.acquire("mailbox:1") is True
    assert locks.acquire("mailbox:1") is False
    assert locks.acquire("mailbox:2") is True

    locks.release("mailbox:1")

    assert locks.acquire("mailbox:1") is True


@pytest.mark.unit
def test_hold_rejects_concurrent_run() -> None:
    """Test that a nested hold on the same key raises SyncInProgressError."""
    locks = SyncLockTable()

    with locks.hold("feed:1"):
        assert locks.is_held("feed:1")
        with pytest.raises(SyncInProgressError) as exc_info:
            with locks.hold("feed:1"):
                pass

    assert exc_info.value.key == "feed:1"
    assert locks.is_held("feed:1") is False


@pytest.mark.unit
def test_hold_releases_on_error() -> None:
    """Test that the key is released even when the run fails."""
    locks = SyncLockTable()

    with pytest.raises(RuntimeError):
        with locks.hold("mailbox:3"):
            raise RuntimeError("boom")

    assert locks.is_held("mailbox:3") is False


@pytest.mark.unit
def test_only_one_thread_wins() -> None:
    """Test that concurrent acquires on one key admit exactly one caller."""
    locks = SyncLockTable()
    results: list[bool] = []
    barrier = threading.Barrier(8)

    def worker() -> None:
        barrier.wait()
        results.append(locks.acquire("mailbox:9"))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(True) == 1
