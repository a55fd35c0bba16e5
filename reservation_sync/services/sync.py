"""Per-source sync orchestrator for mailbox connections and calendar feeds."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Optional

import requests
import structlog
from sqlalchemy.engine import Engine

from reservation_sync.db.engine import engine as default_engine
from reservation_sync.db.readers.connections import (
    get_active_connection_ids,
    get_active_feed_ids,
    get_connection,
    get_connection_ids_for_property,
    get_feed,
)
from reservation_sync.db.writers.bookings import (
    feed_source_key,
    retire_missing_bookings,
    upsert_feed_bookings,
)
from reservation_sync.db.writers.calendar_feeds import SYNC_ERROR, SYNC_SUCCESS, record_feed_sync
from reservation_sync.db.writers.connections import (
    STATUS_CONNECTED,
    STATUS_ERROR,
    STATUS_NEEDS_RECONNECT,
    mark_connection_status,
)
from reservation_sync.db.writers.facts import insert_facts
from reservation_sync.db.writers.processed_messages import record_processed_messages
from reservation_sync.errors import MailboxConfigError, NeedsReconnectError, SyncInProgressError
from reservation_sync.extract.extractor import STATUS_FAILED, ExtractionOutcome, extract_reservation
from reservation_sync.metrics import active_connections, extraction_outcomes, sync_runs
from reservation_sync.normalizers.calendar import normalize_calendar
from reservation_sync.normalizers.messages import MailMessage, normalize_messages
from reservation_sync.pollers.calendar import poll_calendar
from reservation_sync.pollers.mailbox import poll_mailbox
from reservation_sync.services.reconcile import reconcile_connection
from reservation_sync.services.sync_guard import feed_key, mailbox_key, sync_locks

logger = structlog.get_logger(__name__)

STATUS_SUCCESS = "success"
STATUS_PARTIAL = "partial"
STATUS_FAILURE = "failure"

LABEL_NOT_CONFIGURED = "LABEL_NOT_CONFIGURED"
FETCH_FAILED = "FETCH_FAILED"


@dataclass
class SyncReport:
    kind: str
    source_id: int
    status: str = STATUS_SUCCESS
    messages_scanned: int = 0
    facts_parsed: int = 0
    facts_inserted: int = 0
    events_found: int = 0
    bookings_retired: int = 0
    bookings_enriched: int = 0
    review_items_created: int = 0
    errors: list[str] = field(default_factory=list)

    def fail(self, message: str) -> None:
        self.status = STATUS_FAILURE
        self.errors.append(message)

    def finish(self) -> "SyncReport":
        if self.status == STATUS_SUCCESS and self.errors:
            self.status = STATUS_PARTIAL
        sync_runs.labels(kind=self.kind, status=self.status).inc()
        return self

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def audit_record(message: MailMessage, outcome: ExtractionOutcome) -> dict[str, Any]:
    """Processed-message row describing what the extractor did with a message."""
    return {
        "source_message_id": message.id,
        "subject": (message.subject or "")[:500],
        "body_source": outcome.body_source,
        "message_type": outcome.classification.message_type,
        "platform": outcome.classification.platform,
        "status": outcome.status,
        "reason": outcome.reason,
        "attempts": [attempt.as_dict() for attempt in outcome.attempts],
        "classification_reasons": list(outcome.classification.reasons),
    }


def _failed_audit_record(message: MailMessage, error: Exception) -> dict[str, Any]:
    return {
        "source_message_id": message.id,
        "subject": (message.subject or "")[:500],
        "status": STATUS_FAILED,
        "reason": type(error).__name__,
    }


def extract_messages(
    report: SyncReport, messages: list[MailMessage]
) -> tuple[list[Any], list[dict[str, Any]]]:
    """
    Run the extractor over each message, isolating per-message failures.

    Returns:
        tuple: (validated facts, audit records)
    """
    facts = []
    audits = []
    for message in messages:
        try:
            outcome = extract_reservation(
                message.id,
                message.subject,
                text=message.text,
                html=message.html,
                snippet=message.snippet,
                received_on=message.received_at.date() if message.received_at else None,
            )
        except Exception as e:
            logger.exception("message_processing_failed", message_id=message.id, error=str(e))
            extraction_outcomes.labels(status=STATUS_FAILED, reason=type(e).__name__).inc()
            audits.append(_failed_audit_record(message, e))
            report.errors.append(f"message {message.id}: {e}")
            continue

        extraction_outcomes.labels(status=outcome.status, reason=outcome.reason or "none").inc()
        audits.append(audit_record(message, outcome))
        if outcome.fact is not None:
            facts.append(outcome.fact)

    return facts, audits


def sync_mailbox(
    connection_id: int, dry_run: bool = False, engine: Optional[Engine] = None
) -> SyncReport:
    """
    Fetch new labeled messages, extract facts and reconcile them against the calendar.

    Args:
        connection_id (int): Mailbox connection ID.
        dry_run (bool): If True, skip DB writes.
        engine (Optional[Engine]): Engine to use; defaults to the application engine.

    Returns:
        SyncReport: Run summary. External failures are recorded on the report
        and the connection row rather than raised.

    Raises:
        SyncInProgressError: If a run for this connection is already in flight.
        LookupError: If the connection does not exist.
    """
    engine = engine or default_engine

    with sync_locks.hold(mailbox_key(connection_id)):
        report = SyncReport(kind="mailbox", source_id=connection_id)

        with engine.connect() as conn:
            connection = get_connection(conn, connection_id)
        if connection is None:
            raise LookupError(f"Connection {connection_id} not found")

        logger.info("mailbox_sync_started", connection_id=connection_id, dry_run=dry_run)
        status, error_code = STATUS_CONNECTED, None

        try:
            label_name = (connection.get("label_name") or "").strip()
            if not label_name:
                raise MailboxConfigError(LABEL_NOT_CONFIGURED, "No label configured for connection")

            messages = normalize_messages(poll_mailbox(connection_id, label_name, engine=engine))
            report.messages_scanned = len(messages)

            facts, audits = extract_messages(report, messages)
            report.facts_parsed = len(facts)
            report.facts_inserted = insert_facts(engine, connection_id, facts, dry_run=dry_run)
            record_processed_messages(engine, connection_id, audits, dry_run=dry_run)

            counts = reconcile_connection(engine, connection_id, dry_run=dry_run)
            report.bookings_enriched = counts["bookings_enriched"]
            report.review_items_created = counts["review_items_created"]

        except NeedsReconnectError as e:
            logger.warning("mailbox_needs_reconnect", connection_id=connection_id, code=e.code)
            status, error_code = STATUS_NEEDS_RECONNECT, e.code
            report.fail(str(e))
        except MailboxConfigError as e:
            logger.warning("mailbox_misconfigured", connection_id=connection_id, code=e.code)
            status, error_code = STATUS_ERROR, e.code
            report.fail(str(e))
        except Exception as e:
            logger.exception("mailbox_sync_failed", connection_id=connection_id, error=str(e))
            status, error_code = STATUS_ERROR, FETCH_FAILED
            report.fail(str(e))

        if not dry_run:
            with engine.begin() as conn:
                mark_connection_status(
                    conn,
                    connection_id,
                    status,
                    error_code=error_code,
                    error_message=report.errors[-1] if error_code else None,
                )

        report.finish()
        logger.info("mailbox_sync_completed", **report.as_dict())
        return report


def sync_calendar_feed(
    feed_id: int, dry_run: bool = False, engine: Optional[Engine] = None
) -> SyncReport:
    """
    Fetch a calendar feed, upsert its bookings and re-reconcile affected mailboxes.

    Bookings that disappeared from the feed are retired. Mailbox connections
    that can reach the feed's property are reconciled again so facts waiting
    for a booking can match it.

    Raises:
        SyncInProgressError: If a run for this feed is already in flight.
        LookupError: If the feed does not exist.
    """
    engine = engine or default_engine

    with sync_locks.hold(feed_key(feed_id)):
        report = SyncReport(kind="feed", source_id=feed_id)

        with engine.connect() as conn:
            feed = get_feed(conn, feed_id)
        if feed is None:
            raise LookupError(f"Feed {feed_id} not found")

        logger.info("feed_sync_started", feed_id=feed_id, dry_run=dry_run)
        http_status: Optional[int] = None

        try:
            ics_text, http_status = poll_calendar(feed_id, feed["url"])
            rows = normalize_calendar(ics_text, feed["source_name"])
            report.events_found = len(rows)

            if dry_run:
                logger.info("[DRY RUN] Would upsert feed bookings", feed_id=feed_id, count=len(rows))
            else:
                with engine.begin() as conn:
                    upsert_feed_bookings(conn, feed_id, feed["property_id"], rows)
                    report.bookings_retired = retire_missing_bookings(
                        conn, feed_id, [row["external_uid"] for row in rows]
                    )
                    record_feed_sync(
                        conn, feed_id, SYNC_SUCCESS, http_status=http_status, event_count=len(rows)
                    )
        except Exception as e:
            if isinstance(e, requests.HTTPError) and e.response is not None:
                http_status = e.response.status_code
            logger.exception("feed_sync_failed", feed_id=feed_id, error=str(e))
            report.fail(str(e))
            if not dry_run:
                with engine.begin() as conn:
                    record_feed_sync(conn, feed_id, SYNC_ERROR, http_status=http_status, error=str(e))
            report.finish()
            return report

        with engine.connect() as conn:
            connection_ids = get_connection_ids_for_property(conn, feed["property_id"])

        for connection_id in connection_ids:
            try:
                with sync_locks.hold(mailbox_key(connection_id)):
                    counts = reconcile_connection(engine, connection_id, dry_run=dry_run)
            except SyncInProgressError as e:
                logger.warning("feed_reconcile_skipped", feed_id=feed_id, connection_id=connection_id)
                report.errors.append(f"reconcile connection {connection_id}: {e}")
                continue
            except Exception as e:
                logger.exception(
                    "feed_reconcile_failed", feed_id=feed_id, connection_id=connection_id, error=str(e)
                )
                report.errors.append(f"reconcile connection {connection_id}: {e}")
                continue
            report.bookings_enriched += counts["bookings_enriched"]
            report.review_items_created += counts["review_items_created"]

        report.finish()
        logger.info("feed_sync_completed", source_key=feed_source_key(feed_id), **report.as_dict())
        return report


def sync_all(dry_run: bool = False, engine: Optional[Engine] = None) -> list[SyncReport]:
    """
    Sync every active calendar feed, then every active mailbox connection.

    Feeds run first so that mailbox reconciliation sees current bookings. A
    failure in one source never stops the others.

    Args:
        dry_run (bool): If True, do not write to DB.

    Returns:
        list[SyncReport]: One report per source, in run order
    """
    engine = engine or default_engine
    logger.info("sync_all_started")

    with engine.connect() as conn:
        feed_ids = get_active_feed_ids(conn)
        connection_ids = get_active_connection_ids(conn)

    active_connections.set(len(feed_ids) + len(connection_ids))
    logger.info("active_sources_found", feeds=len(feed_ids), connections=len(connection_ids))

    reports: list[SyncReport] = []
    jobs = [("feed", i, sync_calendar_feed) for i in feed_ids] + [
        ("mailbox", i, sync_mailbox) for i in connection_ids
    ]
    for kind, source_id, run in jobs:
        try:
            reports.append(run(source_id, dry_run=dry_run, engine=engine))
        except Exception as e:
            logger.exception("source_sync_failed", kind=kind, source_id=source_id, error=str(e))
            report = SyncReport(kind=kind, source_id=source_id)
            report.fail(str(e))
            reports.append(report.finish())

    logger.info(
        "sync_all_completed",
        total=len(reports),
        failed=sum(1 for r in reports if r.status == STATUS_FAILURE),
    )
    return reports
