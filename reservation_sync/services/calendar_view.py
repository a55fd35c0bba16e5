"""
Compose the calendar shown for a property: visible bookings plus cleaning buffers.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, timedelta
from typing import Any, Iterable, Mapping

import structlog
from sqlalchemy.engine import Connection, Engine

from reservation_sync.db.readers.bookings import get_bookings_in_range, get_cleaning_policies
from reservation_sync.reconcile.cleaning import (
    generate_cleaning_buffers,
    remove_coinciding_provider_blocks,
)
from reservation_sync.reconcile.holds import is_generic_block, is_hold, is_provider_buffer_platform
from reservation_sync.reconcile.suppressor import is_fully_covered, suppress_covered_blocks
from reservation_sync.reconcile.types import BookingView, CleaningBuffer, CleaningPolicy

logger = structlog.get_logger(__name__)


def build_calendar_view(
    bookings: Iterable[BookingView],
    policies: Mapping[int, CleaningPolicy],
    start: date,
    end: date,
) -> dict[str, Any]:
    """
    Reduce raw bookings to what a calendar should display for [start, end).

    Steps, in order: drop inactive bookings, suppress covered generic blocks,
    remove provider turnover blocks that coincide with a buffer window,
    generate cleaning buffers, drop other holds that only restate buffer days,
    then clip everything to the window.

    Returns:
        dict[str, Any]: {"bookings": list[BookingView], "cleaning_buffers": list[CleaningBuffer]}
    """
    visible = [b for b in bookings if b.is_active]
    visible = suppress_covered_blocks(visible)
    visible = remove_coinciding_provider_blocks(visible, policies)
    buffers = generate_cleaning_buffers(visible, policies)

    buffer_days: dict[int, set[date]] = defaultdict(set)
    for buffer in buffers:
        buffer_days[buffer.property_id].add(buffer.day)

    visible = [
        b
        for b in visible
        if not (
            is_hold(b)
            and not is_provider_buffer_platform(b)
            and is_fully_covered(b, buffer_days.get(b.property_id, set()))
        )
    ]

    return {
        "bookings": [b for b in visible if b.check_in < end and b.check_out > start],
        "cleaning_buffers": [buf for buf in buffers if start <= buf.day < end],
    }


def load_view_bookings(
    conn: Connection, property_id: int, start: date, end: date, margin: timedelta
) -> list[BookingView]:
    """
    Load every booking that can affect the view of [start, end).

    Bookings within margin of the window are read first. The range is then
    widened to the full span of any block or hold among them, so the real
    bookings and buffers that decide whether it is suppressed are loaded
    whatever the requested window.
    """
    low, high = start - margin, end + margin
    views = [BookingView.from_row(row) for row in get_bookings_in_range(conn, property_id, low, high)]

    blocks = [b for b in views if is_generic_block(b) or is_hold(b)]
    if not blocks:
        return views

    wide_low = min(low, min(b.check_in for b in blocks) - margin)
    wide_high = max(high, max(b.check_out for b in blocks) + margin)
    if (wide_low, wide_high) == (low, high):
        return views

    logger.debug(
        "calendar_range_widened",
        property_id=property_id,
        start=wide_low.isoformat(),
        end=wide_high.isoformat(),
    )
    return [
        BookingView.from_row(row)
        for row in get_bookings_in_range(conn, property_id, wide_low, wide_high)
    ]


def get_property_calendar(
    engine: Engine, property_id: int, start: date, end: date
) -> dict[str, Any]:
    """
    Load a property's bookings and cleaning policy and build its calendar view.

    Bookings up to the policy's buffer length outside the window are loaded too,
    since their buffers can fall inside it.
    """
    with engine.connect() as conn:
        policy = get_cleaning_policies(conn, [property_id]).get(property_id, CleaningPolicy())
        margin = timedelta(days=max(policy.pre_days, policy.post_days, 0) + 1)
        bookings = load_view_bookings(conn, property_id, start, end, margin)

    view = build_calendar_view(bookings, {property_id: policy}, start, end)
    logger.debug(
        "calendar_view_built",
        property_id=property_id,
        bookings=len(view["bookings"]),
        cleaning_buffers=len(view["cleaning_buffers"]),
    )
    return view


def buffer_as_dict(buffer: CleaningBuffer) -> dict[str, Any]:
    return {
        "id": buffer.id,
        "property_id": buffer.property_id,
        "day": buffer.day,
        "kind": buffer.kind,
        "source_booking_id": buffer.source_booking_id,
    }
