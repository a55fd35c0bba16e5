"""
Integration tests for services/sync.py with the network pollers patched out.
"""

from __future__ import annotations

import base64
from typing import Any, Callable
from unittest.mock import Mock, patch

import pytest
import requests
from sqlalchemy import select, update
from sqlalchemy.engine import Engine

from reservation_sync.db.readers.connections import get_connection, get_feed
from reservation_sync.db.readers.facts import get_facts_for_connection, get_processed_message_ids
from reservation_sync.errors import NeedsReconnectError, SyncInProgressError
from reservation_sync.models import Booking, Connection, ProcessedMessage
from reservation_sync.services.sync import (
    LABEL_NOT_CONFIGURED,
    STATUS_FAILURE,
    STATUS_PARTIAL,
    STATUS_SUCCESS,
    SyncReport,
    sync_all,
    sync_calendar_feed,
    sync_mailbox,
)
from reservation_sync.services.sync_guard import feed_key, mailbox_key, sync_locks

ICS_ONE_EVENT = "\r\n".join(
    [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "BEGIN:VEVENT",
        "UID:abc@airbnb.com",
        "DTSTART;VALUE=DATE:20260313",
        "DTEND;VALUE=DATE:20260316",
        "SUMMARY:Reserved",
        "END:VEVENT",
        "END:VCALENDAR",
        "",
    ]
)
ICS_EMPTY = "BEGIN:VCALENDAR\r\nVERSION:2.0\r\nEND:VCALENDAR\r\n"

AIRBNB_BODY = (
    "New booking confirmed! Eric Smith arrives Mar 13.\n"
    "Check-in\nFri, Mar 13\n"
    "Checkout\nMon, Mar 16\n"
    "Guests\n2 adults\n"
    "Confirmation code\nHMABC12345\n"
)


def _gmail_message(message_id: str, subject: str, body: str) -> dict[str, Any]:
    data = base64.urlsafe_b64encode(body.encode()).decode().rstrip("=")
    return {
        "id": message_id,
        "snippet": body[:40],
        "internalDate": "1772409600000",
        "payload": {
            "mimeType": "text/plain",
            "headers": [{"name": "Subject", "value": subject}],
            "body": {"data": data},
        },
    }


@pytest.mark.integration
@patch("reservation_sync.services.sync.poll_calendar")
def test_feed_sync_upserts_reconciles_and_retires(
    mock_poll: Mock, db_engine: Engine, seeded: dict[str, int], add_fact: Callable[..., int]
) -> None:
    """Test that a feed run enriches a waiting fact and a later empty feed retires the booking."""
    add_fact()
    mock_poll.return_value = (ICS_ONE_EVENT, 200)

    report = sync_calendar_feed(1, engine=db_engine)

    with db_engine.connect() as conn:
        booking = conn.execute(select(Booking.__table__)).mappings().one()
        feed = get_feed(conn, 1)
    assert report.status == STATUS_SUCCESS
    assert report.events_found == 1
    assert report.bookings_enriched == 1
    assert booking["guest_name"] == "Eric"
    assert feed["last_sync_status"] == "success"
    assert feed["last_http_status"] == 200
    assert feed["last_event_count"] == 1

    mock_poll.return_value = (ICS_EMPTY, 200)
    retired = sync_calendar_feed(1, engine=db_engine)

    with db_engine.connect() as conn:
        assert conn.execute(select(Booking.is_active)).scalar_one() is False
    assert retired.bookings_retired == 1


@pytest.mark.integration
@patch("reservation_sync.services.sync.poll_calendar")
def test_feed_sync_records_http_error(mock_poll: Mock, db_engine: Engine, seeded: dict[str, int]) -> None:
    """Test that a failed fetch is recorded on the feed and reported, not raised."""
    mock_poll.side_effect = requests.HTTPError("404 Not Found", response=Mock(status_code=404))

    report = sync_calendar_feed(1, engine=db_engine)

    with db_engine.connect() as conn:
        feed = get_feed(conn, 1)
    assert report.status == STATUS_FAILURE
    assert feed["last_sync_status"] == "error"
    assert feed["last_http_status"] == 404
    assert "404" in feed["last_error"]


@pytest.mark.integration
@patch("reservation_sync.services.sync.poll_calendar")
def test_feed_sync_dry_run_writes_nothing(mock_poll: Mock, db_engine: Engine, seeded: dict[str, int]) -> None:
    """Test that a dry run parses the feed but creates no bookings."""
    mock_poll.return_value = (ICS_ONE_EVENT, 200)

    report = sync_calendar_feed(1, dry_run=True, engine=db_engine)

    with db_engine.connect() as conn:
        assert conn.execute(select(Booking.id)).all() == []
    assert report.events_found == 1


@pytest.mark.integration
@patch("reservation_sync.services.sync.poll_calendar")
def test_feed_sync_skips_reconcile_while_mailbox_sync_runs(
    mock_poll: Mock, db_engine: Engine, seeded: dict[str, int], add_fact: Callable[..., int]
) -> None:
    """Test that a feed run leaves a connection alone while its mailbox sync holds the lock."""
    add_fact()
    mock_poll.return_value = (ICS_ONE_EVENT, 200)
    assert sync_locks.acquire(mailbox_key(1))

    report = sync_calendar_feed(1, engine=db_engine)

    with db_engine.connect() as conn:
        booking = conn.execute(select(Booking.__table__)).mappings().one()
    assert report.status == STATUS_PARTIAL
    assert report.events_found == 1
    assert report.bookings_enriched == 0
    assert report.errors == ["reconcile connection 1: Sync already in progress for mailbox:1"]
    assert booking["guest_name"] == "Reserved"
    assert sync_locks.is_held(mailbox_key(1))
    assert not sync_locks.is_held(feed_key(1))

    sync_locks.release(mailbox_key(1))
    retry = sync_calendar_feed(1, engine=db_engine)

    assert retry.status == STATUS_SUCCESS
    assert retry.bookings_enriched == 1
    assert not sync_locks.is_held(mailbox_key(1))


@pytest.mark.integration
@patch("reservation_sync.services.sync.poll_mailbox")
def test_mailbox_sync_end_to_end(
    mock_poll: Mock, db_engine: Engine, seeded: dict[str, int], add_booking: Callable[..., int]
) -> None:
    """Test that a confirmation email becomes a fact that enriches the Reserved booking."""
    booking_id = add_booking()
    mock_poll.return_value = [
        _gmail_message("m1", "Reservation confirmed - Eric Smith arrives Mar 13", AIRBNB_BODY),
        _gmail_message("m2", "Your weekly newsletter", "Nothing to see here"),
    ]

    report = sync_mailbox(1, engine=db_engine)

    with db_engine.connect() as conn:
        facts = get_facts_for_connection(conn, 1)
        booking = conn.execute(select(Booking.__table__).where(Booking.id == booking_id)).mappings().one()
        connection = get_connection(conn, 1)
        processed = get_processed_message_ids(conn, ["m1", "m2"])
    assert report.status == STATUS_SUCCESS
    assert report.messages_scanned == 2
    assert report.facts_inserted == 1
    assert report.bookings_enriched == 1
    assert [f["confirmation_code"] for f in facts] == ["HMABC12345"]
    assert booking["guest_name"] == "Eric Smith"
    assert booking["guest_count"] == 2
    assert connection["status"] == "connected"
    assert connection["last_sync_at"] is not None
    assert processed == {"m1", "m2"}
    mock_poll.assert_called_once_with(1, "Reservations", engine=db_engine)


@pytest.mark.integration
@patch("reservation_sync.services.sync.extract_reservation")
@patch("reservation_sync.services.sync.poll_mailbox")
def test_mailbox_sync_isolates_message_failures(
    mock_poll: Mock, mock_extract: Mock, db_engine: Engine, seeded: dict[str, int]
) -> None:
    """Test that one failing message marks the run partial and stays eligible for retry."""
    mock_poll.return_value = [_gmail_message("m1", "Reservation confirmed", AIRBNB_BODY)]
    mock_extract.side_effect = RuntimeError("boom")

    report = sync_mailbox(1, engine=db_engine)

    with db_engine.connect() as conn:
        status = conn.execute(select(ProcessedMessage.status)).scalar_one()
        processed = get_processed_message_ids(conn, ["m1"])
    assert report.status == STATUS_PARTIAL
    assert report.errors == ["message m1: boom"]
    assert status == "failed"
    assert processed == set()


@pytest.mark.integration
@patch("reservation_sync.services.sync.poll_mailbox")
def test_mailbox_sync_needs_reconnect(mock_poll: Mock, db_engine: Engine, seeded: dict[str, int]) -> None:
    """Test that a revoked credential moves the connection to needs_reconnect."""
    mock_poll.side_effect = NeedsReconnectError("TOKEN_REVOKED", "Refresh token revoked")

    report = sync_mailbox(1, engine=db_engine)

    with db_engine.connect() as conn:
        connection = get_connection(conn, 1)
    assert report.status == STATUS_FAILURE
    assert connection["status"] == "needs_reconnect"
    assert connection["last_error_code"] == "TOKEN_REVOKED"
    assert connection["last_error_message"] == "Refresh token revoked"


@pytest.mark.integration
@patch("reservation_sync.services.sync.poll_mailbox")
def test_mailbox_sync_without_label(mock_poll: Mock, db_engine: Engine, seeded: dict[str, int]) -> None:
    """Test that a connection with no label is an error and no mailbox is read."""
    with db_engine.begin() as conn:
        conn.execute(update(Connection).where(Connection.id == 1).values(label_name="  "))

    report = sync_mailbox(1, engine=db_engine)

    with db_engine.connect() as conn:
        connection = get_connection(conn, 1)
    assert report.status == STATUS_FAILURE
    assert connection["status"] == "error"
    assert connection["last_error_code"] == LABEL_NOT_CONFIGURED
    mock_poll.assert_not_called()


@pytest.mark.integration
@patch("reservation_sync.services.sync.poll_mailbox")
def test_mailbox_sync_rejected_while_running(mock_poll: Mock, db_engine: Engine, seeded: dict[str, int]) -> None:
    """Test that a second run for the same connection is rejected and the lock stays with the first."""
    assert sync_locks.acquire(mailbox_key(1))

    with pytest.raises(SyncInProgressError):
        sync_mailbox(1, engine=db_engine)

    assert sync_locks.is_held(mailbox_key(1))
    mock_poll.assert_not_called()


@pytest.mark.integration
def test_missing_sources_raise_lookup_error_and_release_lock(db_engine: Engine, seeded: dict[str, int]) -> None:
    """Test that unknown IDs raise LookupError without leaving the key locked."""
    with pytest.raises(LookupError):
        sync_mailbox(42, engine=db_engine)
    with pytest.raises(LookupError):
        sync_calendar_feed(42, engine=db_engine)

    assert not sync_locks.is_held(mailbox_key(42))
    assert not sync_locks.is_held(feed_key(42))


@pytest.mark.integration
@patch("reservation_sync.services.sync.sync_mailbox")
@patch("reservation_sync.services.sync.sync_calendar_feed")
def test_sync_all_runs_feeds_first_and_isolates_failures(
    mock_feed: Mock, mock_mailbox: Mock, db_engine: Engine, seeded: dict[str, int]
) -> None:
    """Test that feeds run before mailboxes and a failing source does not stop the rest."""
    calls: list[str] = []

    def _feed(source_id: int, dry_run: bool, engine: Engine) -> SyncReport:
        calls.append(f"feed:{source_id}")
        raise RuntimeError("feed exploded")

    def _mailbox(source_id: int, dry_run: bool, engine: Engine) -> SyncReport:
        calls.append(f"mailbox:{source_id}")
        return SyncReport(kind="mailbox", source_id=source_id)

    mock_feed.side_effect = _feed
    mock_mailbox.side_effect = _mailbox

    reports = sync_all(engine=db_engine)

    assert calls == ["feed:1", "mailbox:1"]
    assert [(r.kind, r.status) for r in reports] == [("feed", STATUS_FAILURE), ("mailbox", STATUS_SUCCESS)]
    assert reports[0].errors == ["feed exploded"]


@pytest.mark.integration
@patch("reservation_sync.pollers.mailbox.fetch_messages")
@patch("reservation_sync.pollers.mailbox.list_message_ids")
@patch("reservation_sync.pollers.mailbox.resolve_label_id")
@patch("reservation_sync.network.auth.request_access_token")
def test_mailbox_sync_refreshes_token_in_given_engine(
    mock_request: Mock,
    mock_resolve: Mock,
    mock_list: Mock,
    mock_fetch: Mock,
    db_engine: Engine,
    seeded: dict[str, int],
) -> None:
    """Test that token refresh and processed-message lookups use the engine the run was given."""
    mock_request.return_value = {"access_token": "ya29.fresh", "expires_in": 3600}
    mock_resolve.return_value = "Label_7"
    mock_list.return_value = ["m1"]
    mock_fetch.return_value = [_gmail_message("m1", "Reservation confirmed", AIRBNB_BODY)]

    report = sync_mailbox(1, engine=db_engine)

    with db_engine.connect() as conn:
        connection = get_connection(conn, 1)
    assert report.status == STATUS_SUCCESS
    assert report.messages_scanned == 1
    assert connection["access_token"] == "ya29.fresh"
    assert connection["token_expires_at"] is not None
    mock_request.assert_called_once_with("refresh-1")
    mock_resolve.assert_called_once_with("ya29.fresh", "Reservations")
    mock_fetch.assert_called_once_with("ya29.fresh", ["m1"])
