"""
In-memory access token cache keyed by mailbox connection.

Tokens are cached alongside the expiry reported by the OAuth provider and are
served only while they are further than the refresh margin from expiring. A
token inside the margin is treated as missing so the caller refreshes it.

For deployments with several worker processes each process keeps its own cache;
the database remains the source of truth for tokens.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta

from reservation_sync.config import TOKEN_REFRESH_MARGIN_SECONDS
from reservation_sync.utils.datetime import ensure_utc, utc_now


class TokenCache:
    """
    Access token cache with expiry-aware lookups.

    Attributes:
        margin: Tokens expiring within this window are not served
        _cache: Internal storage mapping connection_id to (token, expires_at) tuples

    Example:
        >>> cache = TokenCache(margin_seconds=300)
        >>> cache.set(7, "ya29.token", expires_at)
        >>> token = cache.get(7)
        >>> cache.invalidate(7)
    """

    def __init__(self, margin_seconds: int = 300):
        self.margin = timedelta(seconds=margin_seconds)
        self._cache: dict[int, tuple[str, datetime]] = {}
        self._lock = threading.Lock()

    def get(self, connection_id: int) -> str | None:
        """
        Get cached token if it is not about to expire.

        Args:
            connection_id: Mailbox connection ID

        Returns:
            Cached token string if found and fresh, None otherwise
        """
        with self._lock:
            entry = self._cache.get(connection_id)
            if entry is None:
                return None
            token, expires_at = entry
            if utc_now() + self.margin < expires_at:
                return token
            del self._cache[connection_id]
            return None

    def set(self, connection_id: int, token: str, expires_at: datetime) -> None:
        """
        Cache a token until its provider-reported expiry.

        Args:
            connection_id: Mailbox connection ID
            token: Access token to cache
            expires_at: When the provider says the token expires
        """
        with self._lock:
            self._cache[connection_id] = (token, ensure_utc(expires_at))

    def invalidate(self, connection_id: int) -> None:
        """Remove a connection's token, e.g. after the API rejected it."""
        with self._lock:
            self._cache.pop(connection_id, None)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def size(self) -> int:
        return len(self._cache)


# Global cache instance
token_cache = TokenCache(margin_seconds=TOKEN_REFRESH_MARGIN_SECONDS)
