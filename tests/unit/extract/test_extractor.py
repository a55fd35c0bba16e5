"""
Unit tests for extract/extractor.py and the field rule tables.
"""

from __future__ import annotations

from datetime import date

import pytest

from reservation_sync.extract.extractor import (
    INVALID_DATE_RANGE,
    NO_CONFIRMATION_CODE,
    NOT_RESERVATION,
    STATUS_PARSED,
    STATUS_REJECTED,
    STATUS_SKIPPED,
    extract_reservation,
    resolve_stay_dates,
)
from reservation_sync.extract.rules import (
    DateMatch,
    clean_guest_name,
    is_valid_code,
    parse_date_text,
)

AIRBNB_SUBJECT = "Reservation confirmed - Eric Smith arrives Mar 13"
AIRBNB_BODY = (
    "New booking confirmed! Eric Smith arrives Mar 13.\n"
    "Check-in\nFri, Mar 13\n"
    "Checkout\nMon, Mar 16\n"
    "Guests\n2 adults\n"
    "Confirmation code\nHMABC12345\n"
)

LODGIFY_SUBJECT = "New Confirmed Booking #B1234567"
LODGIFY_BODY = (
    "BOOKING (#B1234567)\n"
    "Guest: Maria Lopez\n"
    "Arrival: 2026-04-02\n"
    "Departure: 2026-04-05\n"
    "Guests: 4\n"
    "Property: Lake House\n"
)


@pytest.mark.unit
def test_airbnb_confirmation_extracts_full_fact() -> None:
    """Test that every field is extracted from a standard Airbnb confirmation."""
    outcome = extract_reservation("msg-1", AIRBNB_SUBJECT, text=AIRBNB_BODY, received_on=date(2026, 3, 1))

    assert outcome.status == STATUS_PARSED
    fact = outcome.fact
    assert fact is not None
    assert fact.source_message_id == "msg-1"
    assert fact.guest_name == "Eric Smith"
    assert fact.guest_count == 2
    assert fact.confirmation_code == "HMABC12345"
    assert fact.check_in == date(2026, 3, 13)
    assert fact.check_out == date(2026, 3, 16)
    assert fact.platform == "Airbnb"
    assert fact.confidence == 1.0
    assert outcome.body_source == "text"


@pytest.mark.unit
def test_lodgify_confirmation_uses_fallback_rules() -> None:
    """Test that later rules fill fields and lower confidence."""
    outcome = extract_reservation("msg-2", LODGIFY_SUBJECT, text=LODGIFY_BODY, received_on=date(2026, 3, 1))

    assert outcome.status == STATUS_PARSED
    fact = outcome.fact
    assert fact is not None
    assert fact.confirmation_code == "B1234567"
    assert fact.guest_name == "Maria Lopez"
    assert fact.guest_count == 4
    assert (fact.check_in, fact.check_out) == (date(2026, 4, 2), date(2026, 4, 5))
    assert fact.listing_name == "Lake House"
    assert fact.platform == "Lodgify"
    assert fact.confidence < 1.0


@pytest.mark.unit
def test_rule_order_for_code_and_guest_count() -> None:
    """Test that the booking heading supplies Lodgify codes and the Guests label beats a headcount."""
    body = LODGIFY_BODY + "Party: 2 adults\n"

    outcome = extract_reservation("msg-2", LODGIFY_SUBJECT, text=body, received_on=date(2026, 3, 1))

    matched = [(a.field, a.rule) for a in outcome.attempts if a.matched]
    assert ("confirmation_code", "booking_hash_label") in matched
    assert ("guest_count", "guests_label") in matched
    assert outcome.fact is not None
    assert outcome.fact.guest_count == 4


@pytest.mark.unit
def test_html_only_confirmation_is_extracted() -> None:
    """Test that table-laid-out HTML bodies still yield a fact."""
    html = (
        "<p>New booking confirmed!</p><table>"
        "<tr><td>Check-in</td><td>Fri, Mar 13</td></tr>"
        "<tr><td>Checkout</td><td>Mon, Mar 16</td></tr>"
        "<tr><td>Guests</td><td>3</td></tr>"
        "<tr><td>Confirmation code</td><td>HMXYZ98765</td></tr></table>"
    )

    outcome = extract_reservation("msg-3", AIRBNB_SUBJECT, html=html, received_on=date(2026, 3, 1))

    assert outcome.status == STATUS_PARSED
    assert outcome.body_source == "html"
    assert outcome.fact is not None
    assert outcome.fact.guest_count == 3
    assert outcome.fact.confirmation_code == "HMXYZ98765"


@pytest.mark.unit
def test_missing_guest_count_defaults_to_one_with_penalty() -> None:
    """Test that an absent guest count becomes 1 and costs confidence."""
    body = AIRBNB_BODY.replace("Guests\n2 adults\n", "")

    outcome = extract_reservation("msg-4", AIRBNB_SUBJECT, text=body, received_on=date(2026, 3, 1))

    assert outcome.fact is not None
    assert outcome.fact.guest_count == 1
    assert outcome.fact.confidence == 0.9


@pytest.mark.unit
def test_out_of_range_guest_count_is_ignored() -> None:
    """Test that an implausible guest count falls back to the default."""
    body = (
        "New booking confirmed!\nGuests: 40\n"
        "Check-in\nFri, Mar 13\nCheckout\nMon, Mar 16\n"
        "Confirmation code\nHMABC12345\n"
    )

    outcome = extract_reservation("msg-5", AIRBNB_SUBJECT, text=body, received_on=date(2026, 3, 1))

    assert outcome.fact is not None
    assert outcome.fact.guest_count == 1


@pytest.mark.unit
def test_non_reservation_is_skipped_without_running_rules() -> None:
    """Test that blocked messages are skipped with a reason and no attempts."""
    outcome = extract_reservation("msg-6", "Inquiry for Lake House", text="Check-in Mar 13")

    assert outcome.status == STATUS_SKIPPED
    assert outcome.reason == NOT_RESERVATION
    assert outcome.fact is None
    assert outcome.attempts == []


@pytest.mark.unit
def test_missing_confirmation_code_is_rejected() -> None:
    """Test that a confirmation without any code is rejected."""
    body = AIRBNB_BODY.replace("Confirmation code\nHMABC12345\n", "")

    outcome = extract_reservation("msg-7", AIRBNB_SUBJECT, text=body, received_on=date(2026, 3, 1))

    assert outcome.status == STATUS_REJECTED
    assert outcome.reason == NO_CONFIRMATION_CODE
    assert outcome.fact is None
    assert any(a.field == "confirmation_code" and not a.matched for a in outcome.attempts)


@pytest.mark.unit
def test_check_out_before_check_in_is_rejected() -> None:
    """Test that inverted explicit dates are rejected as an invalid range."""
    body = AIRBNB_BODY.replace("Fri, Mar 13", "2026-03-16").replace("Mon, Mar 16", "2026-03-13")

    outcome = extract_reservation("msg-8", AIRBNB_SUBJECT, text=body, received_on=date(2026, 3, 1))

    assert outcome.status == STATUS_REJECTED
    assert outcome.reason == INVALID_DATE_RANGE


@pytest.mark.unit
def test_yearless_dates_roll_into_next_year() -> None:
    """Test that a January stay announced in December lands in the next year."""
    result = resolve_stay_dates(
        DateMatch(date(2025, 1, 2), False), DateMatch(date(2025, 1, 5), False), date(2025, 12, 20)
    )

    assert result == (date(2026, 1, 2), date(2026, 1, 5))


@pytest.mark.unit
def test_yearless_stay_spanning_new_year() -> None:
    """Test that a check-out before check-in in calendar order moves to the next year."""
    result = resolve_stay_dates(
        DateMatch(date(2025, 12, 30), False), DateMatch(date(2025, 1, 2), False), date(2025, 12, 1)
    )

    assert result == (date(2025, 12, 30), date(2026, 1, 2))


@pytest.mark.unit
def test_yearless_leap_day_moved_to_non_leap_year() -> None:
    """Test that moving Feb 29 into a non-leap year lands on Feb 28 instead of raising."""
    result = resolve_stay_dates(
        DateMatch(date(2028, 2, 27), False), DateMatch(date(2028, 2, 29), False), date(2028, 4, 1)
    )

    assert result == (date(2029, 2, 27), date(2029, 2, 28))


@pytest.mark.unit
def test_yearless_leap_day_check_in_with_explicit_check_out() -> None:
    """Test that a year-less Feb 29 check-in is aligned to a non-leap check-out year."""
    result = resolve_stay_dates(
        DateMatch(date(2028, 2, 29), False), DateMatch(date(2029, 3, 2), True), date(2029, 1, 10)
    )

    assert result == (date(2029, 2, 28), date(2029, 3, 2))


@pytest.mark.unit
def test_leap_day_stay_announced_in_non_leap_year() -> None:
    """Test that a Feb 29 check-out sent the December before a leap year is parsed."""
    body = (
        "New booking confirmed! Eric Smith arrives Feb 27.\n"
        "Check-in\nSun, Feb 27\n"
        "Checkout\nTue, Feb 29\n"
        "Guests\n2 adults\n"
        "Confirmation code\nHMABC12345\n"
    )

    outcome = extract_reservation(
        "msg-9", "Reservation confirmed - Eric Smith arrives Feb 27", text=body, received_on=date(2027, 12, 20)
    )

    assert outcome.status == STATUS_PARSED
    assert outcome.fact is not None
    assert outcome.fact.check_in == date(2028, 2, 27)
    assert outcome.fact.check_out == date(2028, 2, 29)


@pytest.mark.unit
def test_explicit_years_are_kept() -> None:
    """Test that dates carrying a year are not adjusted."""
    result = resolve_stay_dates(
        DateMatch(date(2024, 3, 13), True), DateMatch(date(2024, 3, 16), True), date(2026, 1, 1)
    )

    assert result == (date(2024, 3, 13), date(2024, 3, 16))


@pytest.mark.unit
@pytest.mark.parametrize(
    "raw,expected",
    [
        ("Mar 13", DateMatch(date(2026, 3, 13), False)),
        ("Friday, March 13th, 2026", DateMatch(date(2026, 3, 13), True)),
        ("2026-03-13", DateMatch(date(2026, 3, 13), True)),
    ],
)
def test_parse_date_text(raw: str, expected: DateMatch) -> None:
    """Test supported date fragment formats."""
    assert parse_date_text(raw, date(2026, 1, 1)) == expected


@pytest.mark.unit
def test_parse_date_text_rejects_garbage() -> None:
    """Test that unparseable fragments give None."""
    assert parse_date_text("Smarch 45", date(2026, 1, 1)) is None


@pytest.mark.unit
def test_parse_date_text_leap_day_without_year() -> None:
    """Test that a year-less Feb 29 takes the next leap year after the reference."""
    assert parse_date_text("Feb 29", date(2027, 12, 20)) == DateMatch(date(2028, 2, 29), False)
    assert parse_date_text("Feb 29, 2027", date(2027, 12, 20)) is None


@pytest.mark.unit
def test_code_and_name_helpers() -> None:
    """Test confirmation code validation and guest name cleanup."""
    assert is_valid_code("HMABC12345") is True
    assert is_valid_code("RESERVATION") is False
    assert is_valid_code("abc123") is False
    assert clean_guest_name("  Eric Smith. ") == "Eric Smith"
    assert clean_guest_name("Service Fee") is None
