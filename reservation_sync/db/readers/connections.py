from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from reservation_sync.models.calendar_feeds import CalendarFeed
from reservation_sync.models.connections import Connection as MailboxConnection
from reservation_sync.models.connections import ConnectionProperty


def connection_exists(conn: Connection, connection_id: int) -> bool:
    """
    Check if a mailbox connection exists.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        connection_id (int): Connection ID to check.

    Returns:
        bool: True if the connection exists, False otherwise.
    """
    result = conn.execute(select(MailboxConnection.id).where(MailboxConnection.id == connection_id))
    return result.first() is not None


def get_connection(conn: Connection, connection_id: int) -> Optional[dict[str, Any]]:
    """
    Fetch a mailbox connection's credentials, label and status.

    Returns:
        Optional[dict[str, Any]]: Connection row as a dict, or None if not found
    """
    row = (
        conn.execute(select(MailboxConnection.__table__).where(MailboxConnection.id == connection_id))
        .mappings()
        .first()
    )
    return dict(row) if row else None


def get_active_connection_ids(conn: Connection) -> list[int]:
    result = conn.execute(
        select(MailboxConnection.id)
        .where(MailboxConnection.is_active.is_(True))
        .order_by(MailboxConnection.id)
    )
    return list(result.scalars().all())


def get_reachable_property_ids(conn: Connection, connection_id: int) -> list[int]:
    """Properties whose bookings this connection's facts may be matched against."""
    result = conn.execute(
        select(ConnectionProperty.property_id)
        .where(ConnectionProperty.connection_id == connection_id)
        .order_by(ConnectionProperty.property_id)
    )
    return list(result.scalars().all())


def get_connection_ids_for_property(conn: Connection, property_id: int) -> list[int]:
    """Active mailbox connections that can reach the given property."""
    result = conn.execute(
        select(ConnectionProperty.connection_id)
        .join(MailboxConnection, MailboxConnection.id == ConnectionProperty.connection_id)
        .where(ConnectionProperty.property_id == property_id)
        .where(MailboxConnection.is_active.is_(True))
        .order_by(ConnectionProperty.connection_id)
    )
    return list(result.scalars().all())


def get_feed(conn: Connection, feed_id: int) -> Optional[dict[str, Any]]:
    row = (
        conn.execute(select(CalendarFeed.__table__).where(CalendarFeed.id == feed_id))
        .mappings()
        .first()
    )
    return dict(row) if row else None


def get_active_feed_ids(conn: Connection) -> list[int]:
    result = conn.execute(
        select(CalendarFeed.id).where(CalendarFeed.is_active.is_(True)).order_by(CalendarFeed.id)
    )
    return list(result.scalars().all())
