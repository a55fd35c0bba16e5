"""
Placeholder-coverage reduction.

Some feeds export a generic "Not Available" or "Closed Period" event for
days that are also covered by a concrete booking. Such a block is dropped
only when every one of its days is covered by a real booking on the same
property; partial coverage keeps it.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Iterable

import structlog

from reservation_sync.reconcile.holds import is_generic_block, is_real_booking
from reservation_sync.reconcile.types import BookingView
from reservation_sync.utils.datetime import iter_days

logger = structlog.get_logger(__name__)

MAX_BLOCK_DAYS = 365


def occupied_days(bookings: Iterable[BookingView]) -> dict[int, set[date]]:
    """Days covered by each property's real bookings, keyed by property_id."""
    days: dict[int, set[date]] = defaultdict(set)
    for booking in bookings:
        if is_real_booking(booking):
            days[booking.property_id].update(
                iter_days(booking.check_in, booking.check_out, limit=MAX_BLOCK_DAYS)
            )
    return days


def is_fully_covered(block: BookingView, covered: set[date]) -> bool:
    """
    True if every day of [check_in, check_out) is in covered.

    Blocks longer than MAX_BLOCK_DAYS are never considered covered.
    """
    if (block.check_out - block.check_in).days > MAX_BLOCK_DAYS:
        return False
    span = list(iter_days(block.check_in, block.check_out, limit=MAX_BLOCK_DAYS))
    return bool(span) and all(day in covered for day in span)


def suppress_covered_blocks(bookings: Iterable[BookingView]) -> list[BookingView]:
    """
    Drop generic placeholder blocks whose whole span is covered by real bookings.

    Args:
        bookings: Bookings for one or more properties

    Returns:
        list[BookingView]: Active input bookings minus the suppressed blocks, in input order
    """
    active = [b for b in bookings if b.is_active]
    covered_by_property = occupied_days(active)

    kept = []
    for booking in active:
        if is_generic_block(booking) and is_fully_covered(
            booking, covered_by_property.get(booking.property_id, set())
        ):
            logger.debug(
                "generic_block_suppressed",
                booking_id=booking.id,
                property_id=booking.property_id,
            )
            continue
        kept.append(booking)
    return kept
