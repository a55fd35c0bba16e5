"""
Classification of bookings into real stays, holds and generic placeholder blocks.

A hold is a calendar entry that does not represent a guest stay: owner
blocks, cleaning/maintenance entries and the anonymous "Reserved" or
"Not available" events that platforms export. Bookings that were enriched
from a fact or resolved by a human are never holds.
"""

from __future__ import annotations

import re
from typing import Optional

from reservation_sync.reconcile.types import BookingView

HOLD_KEYWORDS = (
    "cleaning",
    "maintenance",
    "hold",
    "blocked",
    "unavailable",
    "reservation",
    "reserved",
)

# Matched as whole words: "Holden" is a guest, "Owner hold" is not
_HOLD_KEYWORD_PATTERN = re.compile(r"\b(?:" + "|".join(HOLD_KEYWORDS) + r")\b")

HOLD_EXACT_NAMES = {"guest", "not available", "closed period", "airbnb (not available)"}

# Names that carry no guest identity; enrichment never copies them onto a booking
PLACEHOLDER_GUEST_NAMES = {"", "guest", "reserved", "blocked", "not available", "closed period"}

# Generic labels some feeds export alongside the concrete booking for the same days
GENERIC_BLOCK_LABELS = {"not available", "closed period"}

# Feeds that export their own turnover blocks next to each booking
BUFFER_BLOCK_PLATFORMS = {"lodgify"}


def _norm(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def is_placeholder_name(name: Optional[str]) -> bool:
    normalized = _norm(name)
    return normalized in PLACEHOLDER_GUEST_NAMES or normalized.startswith("airbnb (not available")


def is_hold(booking: BookingView) -> bool:
    if booking.is_enriched or booking.is_manual:
        return False

    name = _norm(booking.guest_name)
    if not name:
        return True
    if _HOLD_KEYWORD_PATTERN.search(name):
        return True
    return name in HOLD_EXACT_NAMES


def is_real_booking(booking: BookingView) -> bool:
    return booking.is_active and not is_hold(booking)


def is_generic_block(booking: BookingView) -> bool:
    if booking.is_enriched or booking.is_manual:
        return False
    return _norm(booking.guest_name) in GENERIC_BLOCK_LABELS or _norm(booking.summary) in GENERIC_BLOCK_LABELS


def is_provider_buffer_platform(booking: BookingView) -> bool:
    return _norm(booking.platform) in BUFFER_BLOCK_PLATFORMS
