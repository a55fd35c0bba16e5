"""
Integration tests for services/reconcile.py over a seeded SQLite database.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Callable

import pytest
from sqlalchemy import select
from sqlalchemy.engine import Engine

from reservation_sync.db.readers.bookings import get_booking
from reservation_sync.db.readers.facts import get_fact
from reservation_sync.db.readers.review_items import list_review_items
from reservation_sync.models import Booking, ConnectionProperty, Property
from reservation_sync.services.reconcile import reconcile_connection


def _snapshot(engine: Engine) -> list[tuple]:
    with engine.connect() as conn:
        rows = conn.execute(
            select(
                Booking.id,
                Booking.guest_name,
                Booking.guest_count,
                Booking.matched_fact_id,
                Booking.check_in,
                Booking.check_out,
            ).order_by(Booking.id)
        ).all()
    return [tuple(row) for row in rows]


@pytest.mark.integration
def test_eric_end_to_end_and_idempotent(
    db_engine: Engine,
    seeded: dict[str, int],
    add_booking: Callable[..., int],
    add_fact: Callable[..., int],
) -> None:
    """Test that the single Reserved booking is enriched and a re-run changes nothing."""
    booking_id = add_booking()
    fact_id = add_fact()

    counts = reconcile_connection(db_engine, 1)

    with db_engine.connect() as conn:
        booking = get_booking(conn, booking_id)
    assert counts["enriched"] == 1
    assert counts["bookings_enriched"] == 1
    assert booking["guest_name"] == "Eric"
    assert booking["guest_count"] == 2
    assert booking["matched_fact_id"] == fact_id

    before = _snapshot(db_engine)
    second = reconcile_connection(db_engine, 1)

    assert second["linked"] == 1
    assert second["bookings_enriched"] == 0
    assert second["review_items_created"] == 0
    assert _snapshot(db_engine) == before


@pytest.mark.integration
def test_skewed_calendar_dates_correct_the_fact(
    db_engine: Engine,
    seeded: dict[str, int],
    add_booking: Callable[..., int],
    add_fact: Callable[..., int],
) -> None:
    """Test that the calendar's dates replace the email's dates after a match."""
    add_booking(check_in=date(2026, 3, 14), check_out=date(2026, 3, 17))
    fact_id = add_fact()

    counts = reconcile_connection(db_engine, 1)

    with db_engine.connect() as conn:
        fact = get_fact(conn, fact_id)
    assert counts["facts_corrected"] == 1
    assert (fact["check_in"], fact["check_out"]) == (date(2026, 3, 14), date(2026, 3, 17))
    assert reconcile_connection(db_engine, 1)["facts_corrected"] == 0


@pytest.mark.integration
def test_ambiguity_touches_no_booking_and_creates_one_item(
    db_engine: Engine,
    seeded: dict[str, int],
    add_booking: Callable[..., int],
    add_fact: Callable[..., int],
) -> None:
    """Test that two candidates leave both bookings untouched across re-runs."""
    with db_engine.begin() as conn:
        conn.execute(Property.__table__.insert().values(id=2, name="Cabin"))
        conn.execute(ConnectionProperty.__table__.insert().values(connection_id=1, property_id=2))

    add_booking(external_uid="a")
    add_booking(property_id=2, external_uid="b")
    add_fact()
    before = _snapshot(db_engine)

    first = reconcile_connection(db_engine, 1)
    second = reconcile_connection(db_engine, 1)

    with db_engine.connect() as conn:
        items = list_review_items(conn, status=None)
    assert first["ambiguous"] == 1
    assert first["review_items_created"] == 1
    assert second["review_items_created"] == 0
    assert _snapshot(db_engine) == before
    assert len(items) == 1
    assert items[0]["item_type"] == "ambiguous"
    assert len(items[0]["candidate_booking_ids"]) == 2
    assert len(items[0]["extracted_data"]["suggestions"]) == 2


@pytest.mark.integration
def test_unreachable_property_is_not_a_candidate(
    db_engine: Engine,
    seeded: dict[str, int],
    add_booking: Callable[..., int],
    add_fact: Callable[..., int],
) -> None:
    """Test that bookings on properties the connection cannot reach are ignored."""
    with db_engine.begin() as conn:
        conn.execute(Property.__table__.insert().values(id=3, name="Elsewhere"))
    booking_id = add_booking(property_id=3, external_uid="far")
    add_fact()

    counts = reconcile_connection(db_engine, 1)

    with db_engine.connect() as conn:
        assert get_booking(conn, booking_id)["guest_name"] == "Reserved"
    assert counts["unmatched"] == 1
    assert counts["review_items_created"] == 1


@pytest.mark.integration
def test_manual_resolution_wins_over_automation(
    db_engine: Engine,
    seeded: dict[str, int],
    add_booking: Callable[..., int],
    add_fact: Callable[..., int],
) -> None:
    """Test that a manually resolved booking is never modified by reconciliation."""
    booking_id = add_booking(
        guest_name="Eric S.", manually_resolved_at=datetime(2026, 3, 1, tzinfo=timezone.utc)
    )
    add_fact()

    counts = reconcile_connection(db_engine, 1)

    with db_engine.connect() as conn:
        booking = get_booking(conn, booking_id)
        items = list_review_items(conn)
    assert counts["manual_override"] == 1
    assert booking["guest_name"] == "Eric S."
    assert booking["matched_fact_id"] is None
    assert items == []


@pytest.mark.integration
def test_second_fact_for_claimed_booking(
    db_engine: Engine,
    seeded: dict[str, int],
    add_booking: Callable[..., int],
    add_fact: Callable[..., int],
) -> None:
    """Test that a re-sent confirmation is a duplicate and a different code is a conflict."""
    booking_id = add_booking()
    add_fact()
    add_fact(source_message_id="msg-2")
    add_fact(source_message_id="msg-3", guest_name="Ana", confirmation_code="HMZZZ99999")

    counts = reconcile_connection(db_engine, 1)

    with db_engine.connect() as conn:
        booking = get_booking(conn, booking_id)
        items = list_review_items(conn)
    assert counts["enriched"] == 1
    assert counts["duplicate"] == 1
    assert counts["conflict"] == 1
    assert booking["guest_name"] == "Eric"
    assert [item["item_type"] for item in items] == ["conflict"]


@pytest.mark.integration
def test_late_feed_booking_closes_pending_review_item(
    db_engine: Engine,
    seeded: dict[str, int],
    add_booking: Callable[..., int],
    add_fact: Callable[..., int],
) -> None:
    """Test that a fact first unmatched is matched and its item closed once the booking arrives."""
    add_fact()
    assert reconcile_connection(db_engine, 1)["review_items_created"] == 1

    booking_id = add_booking()
    counts = reconcile_connection(db_engine, 1)

    with db_engine.connect() as conn:
        items = list_review_items(conn, status=None)
    assert counts["enriched"] == 1
    assert counts["review_items_closed"] == 1
    assert items[0]["status"] == "resolved"
    assert items[0]["resolution"] == "auto_matched"
    assert items[0]["booking_id"] == booking_id


@pytest.mark.integration
def test_dry_run_writes_nothing(
    db_engine: Engine,
    seeded: dict[str, int],
    add_booking: Callable[..., int],
    add_fact: Callable[..., int],
) -> None:
    """Test that dry runs decide outcomes without writing."""
    add_booking()
    add_fact()
    before = _snapshot(db_engine)

    counts = reconcile_connection(db_engine, 1, dry_run=True)

    assert counts["enriched"] == 1
    assert counts["bookings_enriched"] == 0
    assert _snapshot(db_engine) == before
