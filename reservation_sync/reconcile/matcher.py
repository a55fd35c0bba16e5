"""
Reservation fact to calendar booking matching.

decide_match() is pure and deterministic: given a fact and the active
bookings reachable from its connection it returns a MatchDecision describing
what should be written. It never picks between several plausible bookings;
anything other than a single clean candidate becomes a review item.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Mapping, Optional

from reservation_sync.reconcile.holds import is_placeholder_name
from reservation_sync.reconcile.types import BookingView, FactView
from reservation_sync.utils.datetime import days_between

DATE_TOLERANCE_DAYS = 1

ENRICHED = "enriched"
LINKED = "linked"
UNMATCHED = "unmatched"
AMBIGUOUS = "ambiguous"
CONFLICT = "conflict"
DUPLICATE = "duplicate"
MANUAL_OVERRIDE = "manual_override"

REVIEW_OUTCOMES = {UNMATCHED, AMBIGUOUS, CONFLICT}


@dataclass
class MatchDecision:
    fact_id: int
    outcome: str
    booking_id: Optional[int] = None
    candidate_ids: list[int] = field(default_factory=list)
    booking_updates: dict[str, Any] = field(default_factory=dict)
    corrected_dates: Optional[tuple[date, date]] = None

    @property
    def needs_review(self) -> bool:
        return self.outcome in REVIEW_OUTCOMES


def within_tolerance(fact: FactView, booking: BookingView, tolerance: int = DATE_TOLERANCE_DAYS) -> bool:
    return (
        abs(days_between(fact.check_in, booking.check_in)) <= tolerance
        and abs(days_between(fact.check_out, booking.check_out)) <= tolerance
    )


def find_candidates(fact: FactView, bookings: Iterable[BookingView]) -> list[BookingView]:
    """Active bookings whose check-in and check-out are each within one day of the fact's."""
    candidates = [b for b in bookings if b.is_active and within_tolerance(fact, b)]
    return sorted(candidates, key=lambda b: b.id)


def enrichment_updates(fact: FactView, booking: BookingView) -> dict[str, Any]:
    """
    Column values to write onto a booking matched to a fact.

    Guest name and count are only copied when the fact carries a real name.
    Values equal to what the booking already has are left out.
    """
    updates: dict[str, Any] = {}
    if booking.matched_fact_id != fact.id:
        updates["matched_fact_id"] = fact.id
    if not is_placeholder_name(fact.guest_name):
        if booking.guest_name != fact.guest_name:
            updates["guest_name"] = fact.guest_name
        if booking.guest_count != fact.guest_count:
            updates["guest_count"] = fact.guest_count
    return updates


def _date_correction(fact: FactView, booking: BookingView) -> Optional[tuple[date, date]]:
    if (fact.check_in, fact.check_out) == (booking.check_in, booking.check_out):
        return None
    return booking.check_in, booking.check_out


def decide_match(
    fact: FactView,
    bookings: Iterable[BookingView],
    claimed_codes: Optional[Mapping[int, Optional[str]]] = None,
) -> MatchDecision:
    """
    Decide how a fact relates to the calendar.

    Args:
        fact: The reservation fact to place
        bookings: Active bookings on properties reachable from the fact's connection
        claimed_codes: Confirmation code of each fact already linked to one of the
            bookings, keyed by fact id. Used to tell a re-sent confirmation for
            the same reservation apart from a genuinely different reservation.

    Returns:
        MatchDecision
    """
    bookings = [b for b in bookings if b.is_active]
    claimed_codes = claimed_codes or {}

    linked = sorted((b for b in bookings if b.matched_fact_id == fact.id), key=lambda b: b.id)
    if linked:
        booking = linked[0]
        if booking.is_manual:
            return MatchDecision(fact.id, LINKED, booking_id=booking.id)
        return MatchDecision(
            fact.id,
            LINKED,
            booking_id=booking.id,
            booking_updates=enrichment_updates(fact, booking),
            corrected_dates=_date_correction(fact, booking),
        )

    candidates = find_candidates(fact, bookings)
    candidate_ids = [b.id for b in candidates]

    if not candidates:
        return MatchDecision(fact.id, UNMATCHED)

    if len(candidates) > 1:
        return MatchDecision(fact.id, AMBIGUOUS, candidate_ids=candidate_ids)

    booking = candidates[0]

    if booking.is_manual:
        return MatchDecision(fact.id, MANUAL_OVERRIDE, booking_id=booking.id, candidate_ids=candidate_ids)

    if booking.matched_fact_id is not None:
        other_code = claimed_codes.get(booking.matched_fact_id)
        if fact.confirmation_code and other_code == fact.confirmation_code:
            return MatchDecision(fact.id, DUPLICATE, booking_id=booking.id, candidate_ids=candidate_ids)
        return MatchDecision(fact.id, CONFLICT, booking_id=booking.id, candidate_ids=candidate_ids)

    return MatchDecision(
        fact.id,
        ENRICHED,
        booking_id=booking.id,
        candidate_ids=candidate_ids,
        booking_updates=enrichment_updates(fact, booking),
        corrected_dates=_date_correction(fact, booking),
    )
