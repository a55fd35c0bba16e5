"""
Unit tests for reconcile/matcher.py fact-to-booking decisions.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from reservation_sync.reconcile.matcher import (
    AMBIGUOUS,
    CONFLICT,
    DUPLICATE,
    ENRICHED,
    LINKED,
    MANUAL_OVERRIDE,
    UNMATCHED,
    decide_match,
    enrichment_updates,
    find_candidates,
)
from reservation_sync.reconcile.types import BookingView, FactView

ERIC = FactView(
    id=10,
    check_in=date(2026, 3, 13),
    check_out=date(2026, 3, 16),
    guest_name="Eric",
    guest_count=2,
    confirmation_code="HMABC12345",
)


def _booking(booking_id: int, check_in: date, check_out: date, **kwargs) -> BookingView:
    values = {"property_id": 1, "guest_name": "Reserved", "platform": "Airbnb"}
    values.update(kwargs)
    return BookingView(id=booking_id, check_in=check_in, check_out=check_out, **values)


@pytest.mark.unit
def test_single_exact_candidate_is_enriched() -> None:
    """Test that the Eric fact enriches the single Reserved booking."""
    booking = _booking(1, date(2026, 3, 13), date(2026, 3, 16))

    decision = decide_match(ERIC, [booking])

    assert decision.outcome == ENRICHED
    assert decision.booking_id == 1
    assert decision.booking_updates == {"matched_fact_id": 10, "guest_name": "Eric", "guest_count": 2}
    assert decision.corrected_dates is None
    assert decision.needs_review is False


@pytest.mark.unit
def test_one_day_skew_matches_and_corrects_fact_dates() -> None:
    """Test that a one-day skew on both ends still matches and adopts the calendar dates."""
    booking = _booking(1, date(2026, 3, 14), date(2026, 3, 17))

    decision = decide_match(ERIC, [booking])

    assert decision.outcome == ENRICHED
    assert decision.corrected_dates == (date(2026, 3, 14), date(2026, 3, 17))


@pytest.mark.unit
def test_two_day_skew_is_unmatched() -> None:
    """Test that a check-in two days off is outside tolerance."""
    booking = _booking(1, date(2026, 3, 15), date(2026, 3, 16))

    decision = decide_match(ERIC, [booking])

    assert decision.outcome == UNMATCHED
    assert decision.booking_id is None
    assert decision.needs_review is True


@pytest.mark.unit
def test_multiple_candidates_are_ambiguous_and_nothing_is_written() -> None:
    """Test that two plausible bookings produce a review decision, never a guess."""
    bookings = [
        _booking(7, date(2026, 3, 13), date(2026, 3, 16), property_id=2),
        _booking(3, date(2026, 3, 12), date(2026, 3, 16)),
    ]

    decision = decide_match(ERIC, bookings)

    assert decision.outcome == AMBIGUOUS
    assert decision.candidate_ids == [3, 7]
    assert decision.booking_id is None
    assert decision.booking_updates == {}


@pytest.mark.unit
def test_inactive_bookings_are_ignored() -> None:
    """Test that retired bookings are not candidates."""
    bookings = [
        _booking(1, date(2026, 3, 13), date(2026, 3, 16), is_active=False),
        _booking(2, date(2026, 3, 13), date(2026, 3, 16)),
    ]

    decision = decide_match(ERIC, bookings)

    assert decision.outcome == ENRICHED
    assert decision.booking_id == 2


@pytest.mark.unit
def test_manually_resolved_booking_is_not_overwritten() -> None:
    """Test that a human resolution takes precedence over automatic matching."""
    booking = _booking(
        1,
        date(2026, 3, 13),
        date(2026, 3, 16),
        guest_name="Eric S.",
        manually_resolved_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
    )

    decision = decide_match(ERIC, [booking])

    assert decision.outcome == MANUAL_OVERRIDE
    assert decision.booking_updates == {}


@pytest.mark.unit
def test_resent_confirmation_with_same_code_is_duplicate() -> None:
    """Test that a second fact for an already-claimed booking with the same code is a no-op."""
    booking = _booking(1, date(2026, 3, 13), date(2026, 3, 16), guest_name="Eric", matched_fact_id=4)

    decision = decide_match(ERIC, [booking], claimed_codes={4: "HMABC12345"})

    assert decision.outcome == DUPLICATE
    assert decision.needs_review is False
    assert decision.booking_updates == {}


@pytest.mark.unit
def test_claimed_booking_with_different_code_is_conflict() -> None:
    """Test that a different reservation claiming the same booking goes to review."""
    booking = _booking(1, date(2026, 3, 13), date(2026, 3, 16), guest_name="Ana", matched_fact_id=4)

    decision = decide_match(ERIC, [booking], claimed_codes={4: "HMZZZ99999"})

    assert decision.outcome == CONFLICT
    assert decision.booking_id == 1
    assert decision.needs_review is True


@pytest.mark.unit
def test_already_linked_booking_is_stable() -> None:
    """Test that re-running on an enriched booking produces no further updates."""
    booking = _booking(
        1, date(2026, 3, 13), date(2026, 3, 16), guest_name="Eric", guest_count=2, matched_fact_id=10
    )

    decision = decide_match(ERIC, [booking])

    assert decision.outcome == LINKED
    assert decision.booking_updates == {}
    assert decision.corrected_dates is None


@pytest.mark.unit
def test_placeholder_fact_name_only_links() -> None:
    """Test that a placeholder guest name never overwrites the booking's name."""
    fact = FactView(id=11, check_in=date(2026, 3, 13), check_out=date(2026, 3, 16), guest_name="Guest")
    booking = _booking(1, date(2026, 3, 13), date(2026, 3, 16))

    assert enrichment_updates(fact, booking) == {"matched_fact_id": 11}


@pytest.mark.unit
def test_find_candidates_sorted_by_id() -> None:
    """Test that candidates come back in id order regardless of input order."""
    bookings = [
        _booking(9, date(2026, 3, 13), date(2026, 3, 16)),
        _booking(2, date(2026, 3, 14), date(2026, 3, 15)),
    ]

    assert [b.id for b in find_candidates(ERIC, bookings)] == [2, 9]
