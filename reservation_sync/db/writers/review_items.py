from typing import Any, Optional

import structlog
from sqlalchemy import or_, select, update
from sqlalchemy.engine import Connection

from reservation_sync.db.writers._upsert import insert_ignore_existing
from reservation_sync.models.review_items import ReviewItem
from reservation_sync.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

STATUS_PENDING = "pending"
STATUS_RESOLVED = "resolved"
STATUS_DISMISSED = "dismissed"

RESOLUTION_AUTO_MATCHED = "auto_matched"


def upsert_review_item(
    conn: Connection,
    connection_id: int,
    fact_id: int,
    item_type: str,
    candidate_booking_ids: list[int],
    extracted_data: dict[str, Any],
) -> bool:
    """
    Ensure a fact has exactly one review item.

    A pending item is refreshed when its type or candidates changed. Items a
    human already resolved or dismissed are never reopened.

    Returns:
        bool: True if a new item was created
    """
    existing = conn.execute(
        select(ReviewItem.id).where(ReviewItem.fact_id == fact_id)
    ).first()

    now = utc_now()
    row = {
        "connection_id": connection_id,
        "fact_id": fact_id,
        "item_type": item_type,
        "status": STATUS_PENDING,
        "candidate_booking_ids": candidate_booking_ids,
        "extracted_data": extracted_data,
        "created_at": now,
        "updated_at": now,
    }

    if existing is None:
        created = insert_ignore_existing(conn, ReviewItem, [row], ["fact_id"]) > 0
        if created:
            logger.info("review_item_created", fact_id=fact_id, item_type=item_type)
        return created

    stmt = (
        update(ReviewItem)
        .where(ReviewItem.fact_id == fact_id)
        .where(ReviewItem.status == STATUS_PENDING)
        .where(
            or_(
                ReviewItem.item_type.is_distinct_from(item_type),
                ReviewItem.candidate_booking_ids.is_distinct_from(candidate_booking_ids),
            )
        )
        .values(
            item_type=item_type,
            candidate_booking_ids=candidate_booking_ids,
            extracted_data=extracted_data,
            updated_at=now,
        )
    )
    result = conn.execute(stmt)
    if result.rowcount:
        logger.info("review_item_updated", fact_id=fact_id, item_type=item_type)
    return False


def close_review_item(
    conn: Connection,
    item_id: int,
    status: str,
    resolution: str,
    booking_id: Optional[int] = None,
) -> None:
    """
    Mark a review item resolved or dismissed.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        item_id (int): Review item ID.
        status (str): resolved or dismissed.
        resolution (str): What the reviewer did (assigned, created, dismissed).
        booking_id (Optional[int]): Booking the fact ended up on, if any.
    """
    now = utc_now()
    conn.execute(
        update(ReviewItem)
        .where(ReviewItem.id == item_id)
        .values(
            status=status,
            resolution=resolution,
            booking_id=booking_id,
            resolved_at=now,
            updated_at=now,
        )
    )


def close_pending_for_fact(conn: Connection, fact_id: int, booking_id: int) -> bool:
    """
    Resolve a fact's pending review item once the fact has been matched automatically.

    Returns:
        bool: True if a pending item was closed
    """
    now = utc_now()
    result = conn.execute(
        update(ReviewItem)
        .where(ReviewItem.fact_id == fact_id)
        .where(ReviewItem.status == STATUS_PENDING)
        .values(
            status=STATUS_RESOLVED,
            resolution=RESOLUTION_AUTO_MATCHED,
            booking_id=booking_id,
            resolved_at=now,
            updated_at=now,
        )
    )
    if result.rowcount:
        logger.info("review_item_auto_closed", fact_id=fact_id, booking_id=booking_id)
    return bool(result.rowcount)
