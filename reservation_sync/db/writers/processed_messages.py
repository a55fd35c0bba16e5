from typing import Any

import structlog
from sqlalchemy.engine import Engine

from reservation_sync.db.writers._upsert import upsert_with_distinct_check
from reservation_sync.models.processed_messages import ProcessedMessage
from reservation_sync.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

_AUDIT_COLUMNS = [
    "subject",
    "body_source",
    "message_type",
    "platform",
    "status",
    "reason",
    "attempts",
    "classification_reasons",
]


def record_processed_messages(
    engine: Engine,
    connection_id: int,
    data: list[dict[str, Any]],
    dry_run: bool = False,
) -> None:
    """
    Upsert extraction audit records, one per source message.

    Args:
        engine: SQLAlchemy Engine
        connection_id: Mailbox connection the messages came from
        data: Dicts with source_message_id plus the audit columns
        dry_run: If True, skip DB writes and log only
    """
    now = utc_now()
    rows = []
    for record in data:
        message_id = record.get("source_message_id")
        if not message_id:
            logger.warning("Skipping audit record with missing source_message_id")
            continue
        row = {column: record.get(column) for column in _AUDIT_COLUMNS}
        row["attempts"] = row["attempts"] or []
        row["classification_reasons"] = row["classification_reasons"] or []
        row.update(
            {
                "source_message_id": message_id,
                "connection_id": connection_id,
                "processed_at": now,
            }
        )
        rows.append(row)

    if dry_run:
        logger.info("[DRY RUN] Would record processed messages", count=len(rows))
        return

    if not rows:
        return

    with engine.begin() as conn:
        upsert_with_distinct_check(
            conn=conn,
            table=ProcessedMessage,
            rows=rows,
            conflict_columns=["source_message_id"],
            distinct_columns=["status", "reason", "message_type"],
            update_columns=[*_AUDIT_COLUMNS, "processed_at"],
        )

    logger.info("processed_messages_recorded", connection_id=connection_id, count=len(rows))
