from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from reservation_sync.models.facts import ReservationFact
from reservation_sync.models.processed_messages import ProcessedMessage


def get_fact(conn: Connection, fact_id: int) -> Optional[dict[str, Any]]:
    row = (
        conn.execute(select(ReservationFact.__table__).where(ReservationFact.id == fact_id))
        .mappings()
        .first()
    )
    return dict(row) if row else None


def get_facts_for_connection(conn: Connection, connection_id: int) -> list[dict[str, Any]]:
    """
    All facts parsed from a connection's mailbox, oldest first.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        connection_id (int): Mailbox connection ID.

    Returns:
        list[dict[str, Any]]: Fact rows
    """
    result = conn.execute(
        select(ReservationFact.__table__)
        .where(ReservationFact.connection_id == connection_id)
        .order_by(ReservationFact.id)
    )
    return [dict(row) for row in result.mappings().all()]


def get_confirmation_codes(conn: Connection, fact_ids: Iterable[int]) -> dict[int, Optional[str]]:
    """Map fact id to confirmation code for the given facts."""
    ids = sorted(set(fact_ids))
    if not ids:
        return {}
    result = conn.execute(
        select(ReservationFact.id, ReservationFact.confirmation_code).where(
            ReservationFact.id.in_(ids)
        )
    )
    return {row.id: row.confirmation_code for row in result}


def get_processed_message_ids(conn: Connection, message_ids: Iterable[str]) -> set[str]:
    """
    Return which of the given mailbox message IDs were already processed.

    Messages whose last attempt failed are left out so the next run retries them.
    """
    ids = list(set(message_ids))
    if not ids:
        return set()
    result = conn.execute(
        select(ProcessedMessage.source_message_id)
        .where(ProcessedMessage.source_message_id.in_(ids))
        .where(ProcessedMessage.status != "failed")
    )
    return set(result.scalars().all())
