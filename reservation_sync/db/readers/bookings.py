from datetime import date
from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from reservation_sync.models.bookings import Booking
from reservation_sync.models.properties import Property
from reservation_sync.reconcile.types import CleaningPolicy


def get_booking(conn: Connection, booking_id: int) -> Optional[dict[str, Any]]:
    row = (
        conn.execute(select(Booking.__table__).where(Booking.id == booking_id)).mappings().first()
    )
    return dict(row) if row else None


def get_active_bookings(conn: Connection, property_ids: Iterable[int]) -> list[dict[str, Any]]:
    """
    Active bookings on the given properties, ordered by property, check-in and id.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        property_ids (Iterable[int]): Properties to load.

    Returns:
        list[dict[str, Any]]: Booking rows
    """
    ids = sorted(set(property_ids))
    if not ids:
        return []
    result = conn.execute(
        select(Booking.__table__)
        .where(Booking.property_id.in_(ids))
        .where(Booking.is_active.is_(True))
        .order_by(Booking.property_id, Booking.check_in, Booking.id)
    )
    return [dict(row) for row in result.mappings().all()]


def get_bookings_in_range(
    conn: Connection, property_id: int, start: date, end: date
) -> list[dict[str, Any]]:
    """Active bookings on a property that overlap [start, end)."""
    result = conn.execute(
        select(Booking.__table__)
        .where(Booking.property_id == property_id)
        .where(Booking.is_active.is_(True))
        .where(Booking.check_in < end)
        .where(Booking.check_out > start)
        .order_by(Booking.check_in, Booking.id)
    )
    return [dict(row) for row in result.mappings().all()]


def find_assignable_bookings(
    conn: Connection, property_id: int, check_in: date, check_out: date
) -> list[dict[str, Any]]:
    """Active, unmatched, non-manual bookings with exactly these dates, lowest id first."""
    result = conn.execute(
        select(Booking.__table__)
        .where(Booking.property_id == property_id)
        .where(Booking.is_active.is_(True))
        .where(Booking.check_in == check_in)
        .where(Booking.check_out == check_out)
        .where(Booking.matched_fact_id.is_(None))
        .where(Booking.manually_resolved_at.is_(None))
        .order_by(Booking.id)
    )
    return [dict(row) for row in result.mappings().all()]


def property_exists(conn: Connection, property_id: int) -> bool:
    result = conn.execute(select(Property.id).where(Property.id == property_id))
    return result.first() is not None


def get_cleaning_policies(conn: Connection, property_ids: Iterable[int]) -> dict[int, CleaningPolicy]:
    ids = sorted(set(property_ids))
    if not ids:
        return {}
    result = conn.execute(
        select(Property.id, Property.cleaning_pre_days, Property.cleaning_post_days).where(
            Property.id.in_(ids)
        )
    )
    return {
        row.id: CleaningPolicy(row.cleaning_pre_days or 0, row.cleaning_post_days or 0)
        for row in result
    }
