import json
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy.engine import Engine

from reservation_sync.config import DEBUG
from reservation_sync.db.engine import engine as default_engine
from reservation_sync.db.readers.facts import get_processed_message_ids
from reservation_sync.errors import MailboxConfigError
from reservation_sync.metrics import poll_duration, poll_total, records_synced
from reservation_sync.network.auth import call_with_token_retry
from reservation_sync.network.gmail import fetch_messages, list_message_ids, resolve_label_id

logger = structlog.get_logger(__name__)

LABEL_NOT_FOUND = "LABEL_NOT_FOUND"


def poll_mailbox(
    connection_id: int, label_name: str, engine: Optional[Engine] = None
) -> List[Dict[str, Any]]:
    """
    Fetch messages under the connection's label that have not been processed yet.

    Args:
        connection_id (int): Mailbox connection ID
        label_name (str): Gmail label the reservation emails are filed under
        engine (Optional[Engine]): Engine for token and processed-message lookups

    Returns:
        List[Dict]: Raw Gmail message payloads (format=full)

    Raises:
        MailboxConfigError: If the label does not exist in the mailbox
        NeedsReconnectError: If the mailbox rejects a freshly refreshed token
    """
    active_engine = engine or default_engine
    source_id = f"mailbox:{connection_id}"

    def fetch(token: str) -> List[Dict[str, Any]]:
        label_id = resolve_label_id(token, label_name)
        if label_id is None:
            raise MailboxConfigError(LABEL_NOT_FOUND, f"Label '{label_name}' not found in mailbox")

        message_ids = list_message_ids(token, label_id)
        with active_engine.connect() as conn:
            seen = get_processed_message_ids(conn, message_ids)
        new_ids = [mid for mid in message_ids if mid not in seen]
        logger.info(
            "mailbox_listing_done",
            connection_id=connection_id,
            listed=len(message_ids),
            new=len(new_ids),
        )
        return fetch_messages(token, new_ids)

    with poll_duration.labels(source_id=source_id, entity_type="messages").time():
        try:
            messages = call_with_token_retry(connection_id, fetch, engine=active_engine)

            if DEBUG and messages:
                logger.debug("Sample message:\n%s", json.dumps(messages[0], indent=2))

            records_synced.labels(source_id=source_id, entity_type="messages").inc(len(messages))
            poll_total.labels(source_id=source_id, entity_type="messages", status="success").inc()

            return messages
        except Exception:
            poll_total.labels(source_id=source_id, entity_type="messages", status="failure").inc()
            raise
