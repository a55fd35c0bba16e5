from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from reservation_sync.models.review_items import ReviewItem


def get_review_item(conn: Connection, item_id: int) -> Optional[dict[str, Any]]:
    row = (
        conn.execute(select(ReviewItem.__table__).where(ReviewItem.id == item_id)).mappings().first()
    )
    return dict(row) if row else None


def list_review_items(
    conn: Connection,
    status: Optional[str] = "pending",
    connection_id: Optional[int] = None,
    limit: int = 100,
) -> list[dict[str, Any]]:
    """
    List review items, newest first.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        status (Optional[str]): Filter by status; None returns every status.
        connection_id (Optional[int]): Restrict to one mailbox connection.
        limit (int): Maximum number of items.

    Returns:
        list[dict[str, Any]]: Review item rows
    """
    stmt = select(ReviewItem.__table__).order_by(ReviewItem.id.desc()).limit(limit)
    if status is not None:
        stmt = stmt.where(ReviewItem.status == status)
    if connection_id is not None:
        stmt = stmt.where(ReviewItem.connection_id == connection_id)
    return [dict(row) for row in conn.execute(stmt).mappings().all()]
