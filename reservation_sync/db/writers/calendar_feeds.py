from typing import Optional

from sqlalchemy import update
from sqlalchemy.engine import Connection

from reservation_sync.models.calendar_feeds import CalendarFeed
from reservation_sync.utils.datetime import utc_now

SYNC_SUCCESS = "success"
SYNC_ERROR = "error"


def record_feed_sync(
    conn: Connection,
    feed_id: int,
    status: str,
    http_status: Optional[int] = None,
    event_count: Optional[int] = None,
    error: Optional[str] = None,
) -> None:
    """
    Store the outcome of the latest sync on the feed row.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        feed_id (int): Calendar feed ID.
        status (str): success or error.
        http_status (Optional[int]): HTTP status of the fetch, when one was received.
        event_count (Optional[int]): Number of events parsed from the feed.
        error (Optional[str]): Error message for failed syncs.
    """
    now = utc_now()
    values = {
        "last_synced_at": now,
        "last_sync_status": status,
        "last_http_status": http_status,
        "last_error": error,
        "updated_at": now,
    }
    if event_count is not None:
        values["last_event_count"] = event_count

    conn.execute(update(CalendarFeed).where(CalendarFeed.id == feed_id).values(**values))
