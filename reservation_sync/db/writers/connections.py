from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy import update
from sqlalchemy.engine import Connection

from reservation_sync.models.connections import Connection as MailboxConnection
from reservation_sync.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

STATUS_CONNECTED = "connected"
STATUS_ERROR = "error"
STATUS_NEEDS_RECONNECT = "needs_reconnect"


def update_tokens(
    conn: Connection,
    connection_id: int,
    access_token: str,
    expires_at: Optional[datetime],
    refresh_token: Optional[str] = None,
) -> None:
    """
    Store a freshly issued access token (and rotated refresh token, if any).

    Args:
        conn (Connection): SQLAlchemy DB connection.
        connection_id (int): Mailbox connection ID.
        access_token (str): New bearer token.
        expires_at (Optional[datetime]): When the new token expires.
        refresh_token (Optional[str]): Replacement refresh token, when the provider rotates it.
    """
    values = {
        "access_token": access_token,
        "token_expires_at": expires_at,
        "updated_at": utc_now(),
    }
    if refresh_token:
        values["refresh_token"] = refresh_token

    conn.execute(
        update(MailboxConnection).where(MailboxConnection.id == connection_id).values(**values)
    )


def mark_connection_status(
    conn: Connection,
    connection_id: int,
    status: str,
    error_code: Optional[str] = None,
    error_message: Optional[str] = None,
) -> None:
    """
    Record the connection's state after a sync attempt.

    connected clears any previous error; error and needs_reconnect keep the
    code and message so operators can see why the connection stopped.
    """
    now = utc_now()
    values = {
        "status": status,
        "last_error_code": error_code,
        "last_error_message": error_message,
        "updated_at": now,
    }
    if status == STATUS_CONNECTED:
        values["last_sync_at"] = now

    conn.execute(
        update(MailboxConnection).where(MailboxConnection.id == connection_id).values(**values)
    )
    logger.info("connection_status_updated", connection_id=connection_id, status=status, error_code=error_code)
