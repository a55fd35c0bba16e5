from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.engine import Engine

from reservation_sync.config import DRY_RUN
from reservation_sync.dependencies import get_db_engine
from reservation_sync.errors import SyncInProgressError
from reservation_sync.routes._helpers import (
    validate_connection_exists_or_404,
    validate_feed_exists_or_404,
)
from reservation_sync.schemas.sync import SyncAllOut, SyncReportOut
from reservation_sync.services.sync import sync_all, sync_calendar_feed, sync_mailbox

logger = structlog.get_logger(__name__)
router = APIRouter()


def _conflict(e: SyncInProgressError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.post("/connections/{connection_id}/sync", response_model=SyncReportOut)
def trigger_mailbox_sync(
    connection_id: int,
    dry_run: Optional[bool] = Query(None, description="Override DRY_RUN setting"),
    engine: Engine = Depends(get_db_engine),
) -> SyncReportOut:
    """
    Run a mailbox sync for one connection and wait for it to finish.

    Returns 409 if a sync for the connection is already running.
    """
    try:
        with engine.connect() as conn:
            validate_connection_exists_or_404(conn, connection_id)

        use_dry_run = DRY_RUN if dry_run is None else dry_run
        logger.info("sync_triggered", connection_id=connection_id, dry_run=use_dry_run)

        report = sync_mailbox(connection_id, dry_run=use_dry_run, engine=engine)
        return SyncReportOut(**report.as_dict())

    except HTTPException:
        raise
    except SyncInProgressError as e:
        raise _conflict(e)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except Exception as e:
        logger.exception("sync_trigger_failed", connection_id=connection_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/feeds/{feed_id}/sync", response_model=SyncReportOut)
def trigger_feed_sync(
    feed_id: int,
    dry_run: Optional[bool] = Query(None, description="Override DRY_RUN setting"),
    engine: Engine = Depends(get_db_engine),
) -> SyncReportOut:
    """
    Fetch one calendar feed now and reconcile the mailboxes that can see its property.

    Returns 409 if a sync for the feed is already running.
    """
    try:
        with engine.connect() as conn:
            validate_feed_exists_or_404(conn, feed_id)

        use_dry_run = DRY_RUN if dry_run is None else dry_run
        logger.info("sync_triggered", feed_id=feed_id, dry_run=use_dry_run)

        report = sync_calendar_feed(feed_id, dry_run=use_dry_run, engine=engine)
        return SyncReportOut(**report.as_dict())

    except HTTPException:
        raise
    except SyncInProgressError as e:
        raise _conflict(e)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except Exception as e:
        logger.exception("sync_trigger_failed", feed_id=feed_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/sync", response_model=SyncAllOut)
def trigger_sync_all(
    dry_run: Optional[bool] = Query(None, description="Override DRY_RUN setting"),
    engine: Engine = Depends(get_db_engine),
) -> SyncAllOut:
    """Sync every active feed and mailbox connection; each source gets its own report."""
    try:
        use_dry_run = DRY_RUN if dry_run is None else dry_run
        reports = sync_all(dry_run=use_dry_run, engine=engine)
        return SyncAllOut(reports=[SyncReportOut(**r.as_dict()) for r in reports])
    except Exception as e:
        logger.exception("sync_all_trigger_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")
