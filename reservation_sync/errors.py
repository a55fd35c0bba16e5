"""
Exception types raised across the sync pipeline.

Extraction failures and match ambiguity are not exceptions; they are returned
as typed outcomes. The classes here cover the failures that stop a run for a
single connection or feed.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for failures that abort a single connection's run."""


class SyncInProgressError(SyncError):
    """Raised when a run is requested for a connection that already has one in flight."""

    def __init__(self, key: str):
        super().__init__(f"Sync already in progress for {key}")
        self.key = key


class AuthorizationError(SyncError):
    """Raised by HTTP clients when the remote API rejects the access token (401/403)."""

    def __init__(self, status_code: int, message: str = ""):
        super().__init__(message or f"Authorization failed with HTTP {status_code}")
        self.status_code = status_code


class TokenRefreshError(SyncError):
    """Transient failure while refreshing an access token (network, 5xx)."""


class NeedsReconnectError(SyncError):
    """
    The stored credential is permanently invalid.

    The connection must be re-authorized by a human before it can sync again.
    """

    def __init__(self, code: str, message: str = ""):
        super().__init__(message or code)
        self.code = code


class MailboxConfigError(SyncError):
    """The mailbox connection is missing configuration needed to fetch messages."""

    def __init__(self, code: str, message: str = ""):
        super().__init__(message or code)
        self.code = code


class CalendarFormatError(SyncError):
    """The fetched document is not an iCalendar feed."""
