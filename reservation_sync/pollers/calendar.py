from typing import Tuple

import structlog

from reservation_sync.metrics import poll_duration, poll_total, records_synced
from reservation_sync.network.client import fetch_calendar

logger = structlog.get_logger(__name__)


def poll_calendar(feed_id: int, url: str) -> Tuple[str, int]:
    """
    Download a calendar feed's iCalendar document.

    Args:
        feed_id (int): Calendar feed ID
        url (str): Feed URL

    Returns:
        Tuple[str, int]: Document text and HTTP status code
    """
    source_id = f"feed:{feed_id}"

    with poll_duration.labels(source_id=source_id, entity_type="calendar").time():
        try:
            text, status_code = fetch_calendar(url)
            logger.info("calendar_polled", feed_id=feed_id, status_code=status_code, size=len(text))

            records_synced.labels(source_id=source_id, entity_type="calendar").inc()
            poll_total.labels(source_id=source_id, entity_type="calendar", status="success").inc()

            return text, status_code
        except Exception:
            poll_total.labels(source_id=source_id, entity_type="calendar", status="failure").inc()
            raise
