"""
Cleaning buffer generation from property turnover policy.

Buffers are derived on every read and never stored. Only real bookings
produce them, a buffer never lands on a day already occupied by a real
booking, and each (property, day) yields at most one buffer.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable, Mapping

from reservation_sync.reconcile.holds import is_hold, is_provider_buffer_platform, is_real_booking
from reservation_sync.reconcile.suppressor import occupied_days
from reservation_sync.reconcile.types import BookingView, CleaningBuffer, CleaningPolicy


def generate_cleaning_buffers(
    bookings: Iterable[BookingView], policies: Mapping[int, CleaningPolicy]
) -> list[CleaningBuffer]:
    """
    Build pre- and post-stay cleaning days for every real booking.

    Pre days end the day before check-in; post days start on the check-out day.

    Args:
        bookings: Bookings for one or more properties
        policies: Cleaning policy per property_id; properties without one get no buffers

    Returns:
        list[CleaningBuffer]: Sorted by property and day
    """
    bookings = [b for b in bookings if b.is_active]
    occupied = occupied_days(bookings)
    buffers: dict[str, CleaningBuffer] = {}

    for booking in sorted(bookings, key=lambda b: (b.property_id, b.check_in, b.id)):
        if not is_real_booking(booking):
            continue
        policy = policies.get(booking.property_id)
        if policy is None or (policy.pre_days <= 0 and policy.post_days <= 0):
            continue

        taken = occupied.get(booking.property_id, set())

        candidates: list[tuple[date, str]] = [
            (booking.check_in - timedelta(days=i), "pre") for i in range(max(policy.pre_days, 0), 0, -1)
        ]
        candidates += [
            (booking.check_out + timedelta(days=i), "post") for i in range(max(policy.post_days, 0))
        ]

        for day, kind in candidates:
            if day in taken:
                continue
            buffer = CleaningBuffer(booking.property_id, day, kind, booking.id)
            buffers.setdefault(buffer.key, buffer)

    return sorted(buffers.values(), key=lambda b: (b.property_id, b.day))


def remove_coinciding_provider_blocks(
    bookings: Iterable[BookingView], policies: Mapping[int, CleaningPolicy]
) -> list[BookingView]:
    """
    Drop provider turnover blocks that sit exactly on a generated buffer window.

    A hold from a buffer-exporting platform is removed when its span is exactly
    [check_in - pre_days, check_in) or [check_out, check_out + post_days) of a
    real booking on the same property. A block that only partly overlaps the
    window, or has a different length, is kept.
    """
    bookings = [b for b in bookings if b.is_active]

    windows: set[tuple[int, date, date]] = set()
    for booking in bookings:
        if not is_real_booking(booking):
            continue
        policy = policies.get(booking.property_id)
        if policy is None:
            continue
        if policy.pre_days > 0:
            windows.add(
                (
                    booking.property_id,
                    booking.check_in - timedelta(days=policy.pre_days),
                    booking.check_in,
                )
            )
        if policy.post_days > 0:
            windows.add(
                (
                    booking.property_id,
                    booking.check_out,
                    booking.check_out + timedelta(days=policy.post_days),
                )
            )

    return [
        b
        for b in bookings
        if not (
            is_provider_buffer_platform(b)
            and is_hold(b)
            and (b.property_id, b.check_in, b.check_out) in windows
        )
    ]
