from datetime import date
from typing import Any, Optional

import structlog
from sqlalchemy import and_, case, or_, select, update
from sqlalchemy.engine import Connection

from reservation_sync.db.writers._upsert import dialect_insert, upsert_with_distinct_check
from reservation_sync.models.bookings import Booking
from reservation_sync.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

MANUAL_SOURCE_KEY = "manual"

# Columns a feed re-sync is allowed to refresh on every booking
_FEED_COLUMNS = ["check_in", "check_out", "summary", "platform", "reservation_code", "is_active"]


def feed_source_key(feed_id: int) -> str:
    return f"feed:{feed_id}"


def upsert_feed_bookings(
    conn: Connection,
    feed_id: int,
    property_id: int,
    rows: list[dict[str, Any]],
) -> int:
    """
    Upsert normalized calendar rows for one feed, keyed by event UID.

    Dates, summary and platform always follow the feed. guest_name and
    guest_count follow the feed only while the booking has neither been
    matched to a fact nor resolved by a human; after that they belong to
    enrichment and are left alone.

    Args:
        conn: Active database connection (within transaction)
        feed_id: Calendar feed ID
        property_id: Property the feed belongs to
        rows: Output of normalize_calendar()

    Returns:
        int: Rows inserted or changed
    """
    now = utc_now()
    records = [
        {
            "property_id": property_id,
            "source_key": feed_source_key(feed_id),
            "source_feed_id": feed_id,
            "external_uid": row["external_uid"],
            "check_in": row["check_in"],
            "check_out": row["check_out"],
            "summary": row.get("summary"),
            "guest_name": row.get("guest_name"),
            "guest_count": row.get("guest_count"),
            "platform": row.get("platform"),
            "reservation_code": row.get("reservation_code"),
            "is_active": True,
            "raw_payload": row.get("raw_payload"),
            "created_at": now,
            "updated_at": now,
        }
        for row in rows
    ]
    if not records:
        return 0

    unclaimed = and_(Booking.matched_fact_id.is_(None), Booking.manually_resolved_at.is_(None))
    excluded = dialect_insert(conn, Booking).excluded

    changed = upsert_with_distinct_check(
        conn=conn,
        table=Booking,
        rows=records,
        conflict_columns=["property_id", "source_key", "external_uid"],
        distinct_columns=_FEED_COLUMNS,
        update_columns=[*_FEED_COLUMNS, "raw_payload", "updated_at"],
        set_overrides={
            "guest_name": case((unclaimed, excluded.guest_name), else_=Booking.guest_name),
            "guest_count": case((unclaimed, excluded.guest_count), else_=Booking.guest_count),
        },
    )
    logger.info("feed_bookings_upserted", feed_id=feed_id, rows=len(records), changed=changed)
    return changed


def retire_missing_bookings(conn: Connection, feed_id: int, keep_uids: list[str]) -> int:
    """
    Deactivate a feed's bookings whose UID no longer appears in the feed.

    Returns:
        int: Number of bookings deactivated
    """
    stmt = (
        update(Booking)
        .where(Booking.source_key == feed_source_key(feed_id))
        .where(Booking.is_active.is_(True))
        .values(is_active=False, updated_at=utc_now())
    )
    if keep_uids:
        stmt = stmt.where(Booking.external_uid.not_in(keep_uids))

    result = conn.execute(stmt)
    retired = int(result.rowcount or 0)
    if retired:
        logger.info("feed_bookings_retired", feed_id=feed_id, retired=retired)
    return retired


def apply_enrichment(conn: Connection, booking_id: int, updates: dict[str, Any]) -> bool:
    """
    Write enrichment values onto a booking.

    The update never touches a manually resolved booking and only fires when
    at least one value differs, so repeating it is a no-op.

    Returns:
        bool: True if the booking changed
    """
    if not updates:
        return False

    changed_check = or_(
        *(getattr(Booking, column).is_distinct_from(value) for column, value in updates.items())
    )
    stmt = (
        update(Booking)
        .where(Booking.id == booking_id)
        .where(Booking.manually_resolved_at.is_(None))
        .where(changed_check)
        .values(**updates, updated_at=utc_now())
    )
    result = conn.execute(stmt)
    return bool(result.rowcount)


def resolve_booking_manually(
    conn: Connection,
    booking_id: int,
    fact_id: int,
    guest_name: Optional[str],
    guest_count: Optional[int],
) -> None:
    """
    Attach a fact to an existing booking by human decision.

    Sets manually_resolved_at, which shields the booking from all later
    automated enrichment.
    """
    now = utc_now()
    values: dict[str, Any] = {
        "matched_fact_id": fact_id,
        "manually_resolved_at": now,
        "updated_at": now,
    }
    if guest_name:
        values["guest_name"] = guest_name
    if guest_count:
        values["guest_count"] = guest_count

    conn.execute(update(Booking).where(Booking.id == booking_id).values(**values))


def upsert_manual_booking(
    conn: Connection,
    property_id: int,
    external_uid: str,
    check_in: date,
    check_out: date,
    guest_name: str,
    guest_count: int,
    platform: str,
    fact_id: int,
    reservation_code: Optional[str] = None,
) -> int:
    """
    Create (or return) the booking for a manually resolved review item.

    Manual bookings have their own identity (source_key "manual") so they can
    never collide with a calendar event.

    Returns:
        int: Booking ID
    """
    now = utc_now()
    stmt = dialect_insert(conn, Booking).values(
        property_id=property_id,
        source_key=MANUAL_SOURCE_KEY,
        source_feed_id=None,
        external_uid=external_uid,
        check_in=check_in,
        check_out=check_out,
        summary=guest_name,
        guest_name=guest_name,
        guest_count=guest_count,
        platform=platform,
        reservation_code=reservation_code,
        is_active=True,
        matched_fact_id=fact_id,
        manually_resolved_at=now,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_nothing(index_elements=["property_id", "source_key", "external_uid"])
    conn.execute(stmt)

    booking_id = conn.execute(
        select(Booking.id)
        .where(Booking.property_id == property_id)
        .where(Booking.source_key == MANUAL_SOURCE_KEY)
        .where(Booking.external_uid == external_uid)
    ).scalar_one()

    logger.info(
        "manual_booking_upserted",
        booking_id=booking_id,
        property_id=property_id,
        external_uid=external_uid,
    )
    return int(booking_id)
