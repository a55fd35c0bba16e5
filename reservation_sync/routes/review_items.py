from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.engine import Engine

from reservation_sync.db.readers.review_items import list_review_items
from reservation_sync.dependencies import get_db_engine
from reservation_sync.routes._helpers import (
    validate_property_exists_or_404,
    validate_review_item_exists_or_404,
)
from reservation_sync.schemas.review import (
    ReviewItemOut,
    ReviewResolvePayload,
    ReviewResolveResult,
)
from reservation_sync.services.review import resolve_review_item

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/review-items", response_model=list[ReviewItemOut])
def get_review_items(
    status_filter: Optional[str] = Query("pending", alias="status"),
    connection_id: Optional[int] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    engine: Engine = Depends(get_db_engine),
) -> list[ReviewItemOut]:
    """
    List review items, newest first.

    Pass status=all to include resolved and dismissed items.
    """
    try:
        with engine.connect() as conn:
            rows = list_review_items(
                conn,
                status=None if status_filter == "all" else status_filter,
                connection_id=connection_id,
                limit=limit,
            )
        return [ReviewItemOut(**row) for row in rows]
    except Exception as e:
        logger.exception("review_items_list_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/review-items/{item_id}/resolve", response_model=ReviewResolveResult)
def resolve_item(
    item_id: int,
    payload: ReviewResolvePayload,
    engine: Engine = Depends(get_db_engine),
) -> ReviewResolveResult:
    """
    Assign a review item's fact to a property, or dismiss it.

    Resolving an item that is no longer pending returns already_resolved.
    """
    try:
        with engine.connect() as conn:
            validate_review_item_exists_or_404(conn, item_id)
            if payload.property_id is not None:
                validate_property_exists_or_404(conn, payload.property_id)

        result = resolve_review_item(
            engine,
            item_id,
            action=payload.action,
            property_id=payload.property_id,
            guest_name=payload.guest_name,
            guest_count=payload.guest_count,
        )
        return ReviewResolveResult(**result)

    except HTTPException:
        raise
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except Exception as e:
        logger.exception("review_item_resolve_failed", item_id=item_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")
