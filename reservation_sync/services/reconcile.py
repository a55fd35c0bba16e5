"""
Apply matcher decisions for every fact of a mailbox connection.

All writes for one connection happen in a single transaction. Every write is
guarded by a distinct-value check, so a second run over unchanged data
changes nothing.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import replace
from typing import Any

import structlog
from sqlalchemy.engine import Connection, Engine

from reservation_sync.db.readers.bookings import get_active_bookings
from reservation_sync.db.readers.connections import get_reachable_property_ids
from reservation_sync.db.readers.facts import get_confirmation_codes, get_facts_for_connection
from reservation_sync.db.writers.bookings import apply_enrichment
from reservation_sync.db.writers.facts import correct_fact_dates
from reservation_sync.db.writers.review_items import close_pending_for_fact, upsert_review_item
from reservation_sync.metrics import match_outcomes
from reservation_sync.reconcile.matcher import ENRICHED, LINKED, MatchDecision, decide_match
from reservation_sync.reconcile.types import BookingView, FactView

logger = structlog.get_logger(__name__)


def review_payload(fact: dict[str, Any], candidates: list[BookingView]) -> dict[str, Any]:
    """JSON-safe snapshot of a fact and its candidate bookings for a reviewer."""
    return {
        "guest_name": fact["guest_name"],
        "guest_count": fact["guest_count"],
        "confirmation_code": fact.get("confirmation_code"),
        "check_in": fact["check_in"].isoformat(),
        "check_out": fact["check_out"].isoformat(),
        "listing_name": fact.get("listing_name"),
        "platform": fact.get("platform"),
        "confidence": fact.get("confidence"),
        "suggestions": [
            {
                "booking_id": b.id,
                "property_id": b.property_id,
                "check_in": b.check_in.isoformat(),
                "check_out": b.check_out.isoformat(),
                "guest_name": b.guest_name,
                "platform": b.platform,
            }
            for b in candidates
        ],
    }


def reconcile_connection(engine: Engine, connection_id: int, dry_run: bool = False) -> dict[str, int]:
    """
    Match every stored fact of a connection against reachable calendar bookings.

    Args:
        engine: SQLAlchemy Engine
        connection_id: Mailbox connection ID
        dry_run: If True, decide but do not write

    Returns:
        dict[str, int]: facts_considered, bookings_enriched, facts_corrected,
            review_items_created, review_items_closed and one count per match outcome
    """
    counts: Counter[str] = Counter()

    with engine.begin() as conn:
        property_ids = get_reachable_property_ids(conn, connection_id)
        facts = get_facts_for_connection(conn, connection_id)
        bookings = {
            row["id"]: BookingView.from_row(row) for row in get_active_bookings(conn, property_ids)
        }
        claimed_codes = get_confirmation_codes(
            conn, (b.matched_fact_id for b in bookings.values() if b.matched_fact_id is not None)
        )

        for fact_row in facts:
            fact = FactView.from_row(fact_row)
            decision = decide_match(fact, bookings.values(), claimed_codes)
            counts["facts_considered"] += 1
            counts[decision.outcome] += 1
            match_outcomes.labels(outcome=decision.outcome).inc()

            logger.debug(
                "match_decided",
                connection_id=connection_id,
                fact_id=fact.id,
                outcome=decision.outcome,
                booking_id=decision.booking_id,
                candidates=decision.candidate_ids,
            )

            if dry_run:
                continue

            if decision.needs_review:
                candidates = [bookings[i] for i in decision.candidate_ids if i in bookings]
                created = upsert_review_item(
                    conn,
                    connection_id=connection_id,
                    fact_id=fact.id,
                    item_type=decision.outcome,
                    candidate_booking_ids=decision.candidate_ids,
                    extracted_data=review_payload(fact_row, candidates),
                )
                counts["review_items_created"] += int(created)
                continue

            _apply_decision(conn, decision, bookings, counts)
            if decision.outcome in (ENRICHED, LINKED) and decision.booking_id is not None:
                counts["review_items_closed"] += int(
                    close_pending_for_fact(conn, fact.id, decision.booking_id)
                )
            if decision.booking_updates.get("matched_fact_id") is not None:
                claimed_codes[fact.id] = fact.confirmation_code

    summary = {key: int(value) for key, value in counts.items()}
    for key in (
        "facts_considered",
        "bookings_enriched",
        "facts_corrected",
        "review_items_created",
        "review_items_closed",
    ):
        summary.setdefault(key, 0)

    logger.info("connection_reconciled", connection_id=connection_id, dry_run=dry_run, **summary)
    return summary


def _apply_decision(
    conn: Connection,
    decision: MatchDecision,
    bookings: dict[int, BookingView],
    counts: Counter[str],
) -> None:
    if decision.booking_id is None:
        return

    if decision.booking_updates:
        if apply_enrichment(conn, decision.booking_id, decision.booking_updates):
            counts["bookings_enriched"] += 1
            logger.info(
                "booking_enriched",
                booking_id=decision.booking_id,
                fact_id=decision.fact_id,
                columns=sorted(decision.booking_updates),
            )
        # Later facts in this run must see the claim
        bookings[decision.booking_id] = replace(
            bookings[decision.booking_id], **decision.booking_updates
        )

    if decision.corrected_dates is not None:
        check_in, check_out = decision.corrected_dates
        if correct_fact_dates(conn, decision.fact_id, check_in, check_out):
            counts["facts_corrected"] += 1
            logger.info(
                "fact_dates_corrected",
                fact_id=decision.fact_id,
                check_in=check_in.isoformat(),
                check_out=check_out.isoformat(),
            )
