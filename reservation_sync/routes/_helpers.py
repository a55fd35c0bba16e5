"""
Internal helper functions for route handlers.

Existence checks that turn a missing row into a 404 before any work starts.
"""

from __future__ import annotations

from fastapi import HTTPException, status
from sqlalchemy.engine import Connection

from reservation_sync.db.readers.bookings import property_exists
from reservation_sync.db.readers.connections import connection_exists, get_feed
from reservation_sync.db.readers.review_items import get_review_item


def _not_found(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


def validate_connection_exists_or_404(conn: Connection, connection_id: int) -> None:
    """
    Validate that a mailbox connection exists, raise 404 if not.

    Args:
        conn: Database connection
        connection_id: Connection ID to check

    Raises:
        HTTPException: 404 if the connection doesn't exist
    """
    if not connection_exists(conn, connection_id):
        raise _not_found(f"Connection {connection_id} not found")


def validate_feed_exists_or_404(conn: Connection, feed_id: int) -> None:
    if get_feed(conn, feed_id) is None:
        raise _not_found(f"Feed {feed_id} not found")


def validate_property_exists_or_404(conn: Connection, property_id: int) -> None:
    if not property_exists(conn, property_id):
        raise _not_found(f"Property {property_id} not found")


def validate_review_item_exists_or_404(conn: Connection, item_id: int) -> None:
    if get_review_item(conn, item_id) is None:
        raise _not_found(f"Review item {item_id} not found")
