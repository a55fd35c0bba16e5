"""
Mailbox OAuth token handling.

Access tokens are read from the cache or the connections table while they are
outside the refresh margin, and refreshed with the stored refresh token
otherwise. Refresh failures are split into transient (TokenRefreshError) and
permanent (NeedsReconnectError) so the runner can set the right connection state.
"""

from datetime import timedelta
from typing import Any, Callable, Optional, TypeVar

import requests
import structlog
from sqlalchemy.engine import Engine

from reservation_sync.cache import token_cache
from reservation_sync.config import (
    GOOGLE_CLIENT_ID,
    GOOGLE_CLIENT_SECRET,
    HTTP_TIMEOUT_SECONDS,
    TOKEN_REFRESH_MARGIN_SECONDS,
)
from reservation_sync.db.engine import engine as default_engine
from reservation_sync.db.readers.connections import get_connection
from reservation_sync.db.writers.connections import update_tokens
from reservation_sync.errors import (
    AuthorizationError,
    NeedsReconnectError,
    TokenRefreshError,
)
from reservation_sync.metrics import token_cache_hits, token_cache_misses, token_refreshes
from reservation_sync.utils.datetime import ensure_utc, utc_now

logger = structlog.get_logger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"

# Error codes stored on the connection row
NO_TOKENS = "NO_TOKENS"
TOKEN_REVOKED = "TOKEN_REVOKED"

T = TypeVar("T")


def request_access_token(refresh_token: str) -> dict[str, Any]:
    """
    Exchange a refresh token for a new access token.

    Args:
        refresh_token (str): Long-lived OAuth refresh token.

    Returns:
        dict[str, Any]: Token response with access_token, expires_in and an
            optional rotated refresh_token.

    Raises:
        NeedsReconnectError: If the provider rejected the refresh token.
        TokenRefreshError: On network errors, 5xx responses or malformed payloads.
    """
    payload = {
        "grant_type": "refresh_token",
        "refresh_token": refresh_token,
        "client_id": GOOGLE_CLIENT_ID,
        "client_secret": GOOGLE_CLIENT_SECRET,
    }
    headers = {"Content-Type": "application/x-www-form-urlencoded"}

    try:
        response = requests.post(
            TOKEN_URL, data=payload, headers=headers, timeout=HTTP_TIMEOUT_SECONDS
        )
    except requests.RequestException as e:
        logger.warning("token_request_failed", error=str(e))
        raise TokenRefreshError(f"Token endpoint unreachable: {e}") from e

    if response.status_code >= 500:
        logger.warning("token_endpoint_error", status_code=response.status_code)
        raise TokenRefreshError(f"Token endpoint returned HTTP {response.status_code}")

    try:
        body = response.json()
    except ValueError:
        body = {}

    if response.status_code in (400, 401) or body.get("error") == "invalid_grant":
        error = body.get("error", f"http_{response.status_code}")
        logger.warning("refresh_token_rejected", status_code=response.status_code, error=error)
        raise NeedsReconnectError(TOKEN_REVOKED, f"Refresh token rejected: {error}")

    if response.status_code != 200:
        raise TokenRefreshError(f"Unexpected token response HTTP {response.status_code}")

    token = body.get("access_token")
    if not isinstance(token, str):
        logger.error("access_token_missing", response=response.text)
        raise TokenRefreshError("No access_token in token response")

    return body


def refresh_access_token(connection_id: int, engine: Optional[Engine] = None) -> str:
    """
    Refresh and store a new access token for the given connection.

    Invalidates the cached token, exchanges the stored refresh token and
    persists the new token and its expiry.

    Args:
        connection_id (int): Mailbox connection ID.
        engine (Optional[Engine]): Engine holding the connection row; defaults to the application engine.

    Returns:
        str: New bearer token.
    """
    engine = engine or default_engine
    token_cache.invalidate(connection_id)

    with engine.connect() as conn:
        creds = get_connection(conn, connection_id)

    if not creds or not creds.get("refresh_token"):
        token_refreshes.labels(connection_id=str(connection_id), result="needs_reconnect").inc()
        raise NeedsReconnectError(NO_TOKENS, f"No refresh token stored for connection {connection_id}")

    try:
        body = request_access_token(creds["refresh_token"])
    except NeedsReconnectError:
        token_refreshes.labels(connection_id=str(connection_id), result="needs_reconnect").inc()
        raise
    except TokenRefreshError:
        token_refreshes.labels(connection_id=str(connection_id), result="error").inc()
        raise

    token = body["access_token"]
    expires_at = utc_now() + timedelta(seconds=int(body.get("expires_in", 3600)))

    with engine.begin() as conn:
        update_tokens(
            conn,
            connection_id,
            access_token=token,
            expires_at=expires_at,
            refresh_token=body.get("refresh_token"),
        )

    token_cache.set(connection_id, token, expires_at)
    token_refreshes.labels(connection_id=str(connection_id), result="success").inc()
    logger.info("token_refreshed", connection_id=connection_id, expires_at=expires_at.isoformat())
    return token


def get_fresh_token(connection_id: int, engine: Optional[Engine] = None) -> str:
    """
    Get an access token that will stay valid past the refresh margin.

    Checks the cache first, then the database, and refreshes when neither
    holds a token outside the margin.

    Args:
        connection_id (int): Mailbox connection ID.
        engine (Optional[Engine]): Engine holding the connection row.

    Returns:
        str: Access token
    """
    engine = engine or default_engine
    cached_token = token_cache.get(connection_id)
    if cached_token:
        token_cache_hits.inc()
        logger.debug("token_cache_hit", connection_id=connection_id)
        return cached_token

    token_cache_misses.inc()
    logger.debug("token_cache_miss", connection_id=connection_id)

    with engine.connect() as conn:
        creds = get_connection(conn, connection_id)

    token = creds.get("access_token") if creds else None
    expires_at = ensure_utc(creds.get("token_expires_at")) if creds else None
    if token and expires_at and expires_at > utc_now() + timedelta(
        seconds=TOKEN_REFRESH_MARGIN_SECONDS
    ):
        token_cache.set(connection_id, token, expires_at)
        return token

    return refresh_access_token(connection_id, engine=engine)


def call_with_token_retry(
    connection_id: int,
    fn: Callable[[str], T],
    token: Optional[str] = None,
    engine: Optional[Engine] = None,
) -> T:
    """
    Run an authenticated call, refreshing the token once on 401/403.

    Args:
        connection_id (int): Mailbox connection ID.
        fn (Callable[[str], T]): Call taking a bearer token.
        token (Optional[str]): Token to use for the first attempt; fetched if omitted.
        engine (Optional[Engine]): Engine token reads and writes go through.

    Returns:
        T: Whatever fn returns.

    Raises:
        NeedsReconnectError: If the call is still rejected after a refresh.
    """
    token = token or get_fresh_token(connection_id, engine=engine)
    try:
        return fn(token)
    except AuthorizationError as e:
        logger.warning(
            "authorization_rejected_refreshing",
            connection_id=connection_id,
            status_code=e.status_code,
        )

    token = refresh_access_token(connection_id, engine=engine)
    try:
        return fn(token)
    except AuthorizationError as e:
        token_cache.invalidate(connection_id)
        raise NeedsReconnectError(
            TOKEN_REVOKED, f"Access rejected after token refresh (HTTP {e.status_code})"
        ) from e
