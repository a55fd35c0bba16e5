"""
Human resolution of review items.

A reviewer either dismisses an item or assigns its fact to a property. An
assignment attaches the fact to an existing placeholder booking with the
exact same dates when one exists, otherwise it creates a manual booking.
Either way the booking is marked manually resolved and automated enrichment
will not touch it again.
"""

import re
from typing import Any, Optional

import structlog
from sqlalchemy.engine import Connection, Engine

from reservation_sync.db.readers.bookings import find_assignable_bookings, get_booking, property_exists
from reservation_sync.db.readers.facts import get_fact
from reservation_sync.db.readers.review_items import get_review_item
from reservation_sync.db.writers.bookings import resolve_booking_manually, upsert_manual_booking
from reservation_sync.db.writers.review_items import (
    STATUS_DISMISSED,
    STATUS_PENDING,
    STATUS_RESOLVED,
    close_review_item,
)
from reservation_sync.reconcile.holds import is_hold
from reservation_sync.reconcile.types import BookingView

logger = structlog.get_logger(__name__)

ACTION_ASSIGN = "assign"
ACTION_DISMISS = "dismiss"

RESULT_ASSIGNED = "assigned"
RESULT_CREATED = "created"
RESULT_DISMISSED = "dismissed"
RESULT_ALREADY_RESOLVED = "already_resolved"

_LODGIFY_CODE = re.compile(r"^B\d")


def platform_from_code(code: Optional[str]) -> str:
    """
    Guess the booking platform from a confirmation code's shape.

    Example:
        >>> platform_from_code("HMABC12345")
        'Airbnb'
        >>> platform_from_code("B1234567")
        'Lodgify'
    """
    normalized = (code or "").strip().upper()
    if normalized.startswith("HM"):
        return "Airbnb"
    if _LODGIFY_CODE.match(normalized):
        return "Lodgify"
    return "Other"


def manual_external_uid(item_id: int) -> str:
    return f"manual-{item_id}"


def resolved_booking(conn: Connection, booking_id: Optional[int]) -> Optional[dict[str, Any]]:
    """The booking a review item was resolved onto, as returned to the reviewer."""
    row = get_booking(conn, booking_id) if booking_id is not None else None
    if row is None:
        return None
    return {
        "id": row["id"],
        "property_id": row["property_id"],
        "check_in": row["check_in"],
        "check_out": row["check_out"],
        "guest_name": row["guest_name"],
        "guest_count": row["guest_count"],
        "platform": row["platform"],
        "summary": row["summary"],
        "reservation_code": row["reservation_code"],
        "matched_fact_id": row["matched_fact_id"],
        "manually_resolved": row["manually_resolved_at"] is not None,
    }


def resolve_review_item(
    engine: Engine,
    item_id: int,
    action: str,
    property_id: Optional[int] = None,
    guest_name: Optional[str] = None,
    guest_count: Optional[int] = None,
) -> dict[str, Any]:
    """
    Apply a reviewer's decision to a review item.

    Args:
        engine: SQLAlchemy Engine
        item_id: Review item ID
        action: "assign" or "dismiss"
        property_id: Target property, required for assign
        guest_name: Overrides the fact's guest name on assign
        guest_count: Overrides the fact's guest count on assign

    Returns:
        dict[str, Any]: {"status": ..., "booking_id": ..., "booking": resolved booking or None}

    Raises:
        LookupError: If the item, its fact or the property does not exist
        ValueError: If the action is unknown or assign lacks a property
    """
    if action not in (ACTION_ASSIGN, ACTION_DISMISS):
        raise ValueError(f"Unknown action: {action}")

    with engine.begin() as conn:
        item = get_review_item(conn, item_id)
        if item is None:
            raise LookupError(f"Review item {item_id} not found")

        if item["status"] != STATUS_PENDING:
            logger.info("review_item_already_resolved", item_id=item_id, status=item["status"])
            return {
                "status": RESULT_ALREADY_RESOLVED,
                "booking_id": item.get("booking_id"),
                "booking": resolved_booking(conn, item.get("booking_id")),
            }

        if action == ACTION_DISMISS:
            close_review_item(conn, item_id, STATUS_DISMISSED, RESULT_DISMISSED)
            logger.info("review_item_dismissed", item_id=item_id)
            return {"status": RESULT_DISMISSED, "booking_id": None, "booking": None}

        if property_id is None:
            raise ValueError("property_id is required to assign a review item")
        if not property_exists(conn, property_id):
            raise LookupError(f"Property {property_id} not found")

        fact = get_fact(conn, item["fact_id"])
        if fact is None:
            raise LookupError(f"Fact {item['fact_id']} not found")

        name = guest_name or fact["guest_name"]
        count = guest_count or fact["guest_count"]

        placeholders = [
            row
            for row in find_assignable_bookings(conn, property_id, fact["check_in"], fact["check_out"])
            if is_hold(BookingView.from_row(row))
        ]

        if placeholders:
            booking_id = placeholders[0]["id"]
            resolve_booking_manually(conn, booking_id, fact["id"], name, count)
            result = RESULT_ASSIGNED
        else:
            booking_id = upsert_manual_booking(
                conn,
                property_id=property_id,
                external_uid=manual_external_uid(item_id),
                check_in=fact["check_in"],
                check_out=fact["check_out"],
                guest_name=name,
                guest_count=count,
                platform=platform_from_code(fact.get("confirmation_code")),
                fact_id=fact["id"],
                reservation_code=fact.get("confirmation_code"),
            )
            result = RESULT_CREATED

        close_review_item(conn, item_id, STATUS_RESOLVED, result, booking_id=booking_id)
        booking = resolved_booking(conn, booking_id)

    logger.info(
        "review_item_resolved",
        item_id=item_id,
        result=result,
        booking_id=booking_id,
        property_id=property_id,
    )
    return {"status": result, "booking_id": booking_id, "booking": booking}
