import json
from datetime import date
from typing import Any

import structlog
from sqlalchemy import or_, update
from sqlalchemy.engine import Connection, Engine

from reservation_sync.config import DEBUG
from reservation_sync.db.writers._upsert import insert_ignore_existing
from reservation_sync.models.facts import ReservationFact
from reservation_sync.schemas.facts import ReservationFactIn
from reservation_sync.utils.datetime import utc_now

logger = structlog.get_logger(__name__)


def insert_facts(
    engine: Engine,
    connection_id: int,
    facts: list[ReservationFactIn],
    dry_run: bool = False,
) -> int:
    """
    Store parsed reservation facts, keyed by source_message_id.

    A fact whose source message was already stored is left untouched, so
    re-processing a message never creates a duplicate and never rewrites an
    existing fact.

    Args:
        engine: SQLAlchemy Engine
        connection_id: Mailbox connection the messages came from
        facts: Validated facts from the extractor
        dry_run: If True, skip DB writes and log only

    Returns:
        int: Number of new facts inserted
    """
    now = utc_now()
    rows: list[dict[str, Any]] = [
        {**fact.model_dump(), "connection_id": connection_id, "created_at": now, "updated_at": now}
        for fact in facts
    ]

    if dry_run:
        logger.info("[DRY RUN] Would insert facts", count=len(rows), connection_id=connection_id)
        return 0

    if not rows:
        logger.info("no_facts_to_insert", connection_id=connection_id)
        return 0

    if DEBUG:
        logger.debug("sample_fact", row=json.dumps(rows[0], default=str, indent=2))

    with engine.begin() as conn:
        inserted = insert_ignore_existing(conn, ReservationFact, rows, ["source_message_id"])

    logger.info("facts_inserted", connection_id=connection_id, inserted=inserted, total=len(rows))
    return inserted


def correct_fact_dates(conn: Connection, fact_id: int, check_in: date, check_out: date) -> bool:
    """
    Replace a fact's dates with the dates of the calendar booking it matched.

    Args:
        conn: SQLAlchemy DB connection.
        fact_id: Fact to correct.
        check_in: Booking check-in date.
        check_out: Booking check-out date.

    Returns:
        bool: True if the stored dates changed
    """
    stmt = (
        update(ReservationFact)
        .where(ReservationFact.id == fact_id)
        .where(
            or_(
                ReservationFact.check_in.is_distinct_from(check_in),
                ReservationFact.check_out.is_distinct_from(check_out),
            )
        )
        .values(check_in=check_in, check_out=check_out, updated_at=utc_now())
    )
    result = conn.execute(stmt)
    return bool(result.rowcount)
