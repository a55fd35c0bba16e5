"""
Per-source mutual exclusion for sync runs.

At most one run may be in flight for a given mailbox connection or calendar
feed. A second request for the same key is rejected immediately rather than
queued.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator

import structlog

from reservation_sync.errors import SyncInProgressError
from reservation_sync.metrics import sync_rejected_in_progress

logger = structlog.get_logger(__name__)


def mailbox_key(connection_id: int) -> str:
    return f"mailbox:{connection_id}"


def feed_key(feed_id: int) -> str:
    return f"feed:{feed_id}"


class SyncLockTable:
    """
    Set of source keys that currently have a run in flight.

    Example:
        >>> with sync_locks.hold(mailbox_key(7)):
        ...     run_mailbox_sync(7)
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._held: set[str] = set()

    def acquire(self, key: str) -> bool:
        """Mark key as running. Returns False without blocking if it already is."""
        with self._lock:
            if key in self._held:
                return False
            self._held.add(key)
            return True

    def release(self, key: str) -> None:
        with self._lock:
            self._held.discard(key)

    def is_held(self, key: str) -> bool:
        with self._lock:
            return key in self._held

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """
        Hold key for the duration of the block.

        Raises:
            SyncInProgressError: If another run already holds key.
        """
        if not self.acquire(key):
            logger.info("sync_rejected_in_progress", key=key)
            sync_rejected_in_progress.labels(kind=key.split(":", 1)[0]).inc()
            raise SyncInProgressError(key)
        try:
            yield
        finally:
            self.release(key)


# Global lock table shared by the API routes and the scheduler entry point
sync_locks = SyncLockTable()
