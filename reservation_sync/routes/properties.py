from datetime import date, timedelta
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.engine import Engine

from reservation_sync.dependencies import get_db_engine
from reservation_sync.routes._helpers import validate_property_exists_or_404
from reservation_sync.schemas.calendar import (
    CalendarBookingOut,
    CleaningBufferOut,
    PropertyCalendarOut,
)
from reservation_sync.services.calendar_view import buffer_as_dict, get_property_calendar
from reservation_sync.utils.datetime import utc_now

logger = structlog.get_logger(__name__)
router = APIRouter()

DEFAULT_WINDOW_DAYS = 60
MAX_WINDOW_DAYS = 366


@router.get("/properties/{property_id}/calendar", response_model=PropertyCalendarOut)
def get_calendar(
    property_id: int,
    start: Optional[date] = Query(None, description="First day shown (default: today)"),
    end: Optional[date] = Query(None, description="Day after the last day shown"),
    engine: Engine = Depends(get_db_engine),
) -> PropertyCalendarOut:
    """
    Visible bookings and generated cleaning days for a property over [start, end).
    """
    start = start or utc_now().date()
    end = end or start + timedelta(days=DEFAULT_WINDOW_DAYS)

    if end <= start:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="end must be after start")
    if (end - start).days > MAX_WINDOW_DAYS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Window may not exceed {MAX_WINDOW_DAYS} days",
        )

    try:
        with engine.connect() as conn:
            validate_property_exists_or_404(conn, property_id)

        view = get_property_calendar(engine, property_id, start, end)
        return PropertyCalendarOut(
            property_id=property_id,
            start=start,
            end=end,
            bookings=[
                CalendarBookingOut(
                    id=b.id,
                    property_id=b.property_id,
                    check_in=b.check_in,
                    check_out=b.check_out,
                    guest_name=b.guest_name,
                    guest_count=b.guest_count,
                    platform=b.platform,
                    summary=b.summary,
                    reservation_code=b.reservation_code,
                    matched_fact_id=b.matched_fact_id,
                    manually_resolved=b.is_manual,
                )
                for b in view["bookings"]
            ],
            cleaning_buffers=[CleaningBufferOut(**buffer_as_dict(buf)) for buf in view["cleaning_buffers"]],
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.exception("calendar_view_failed", property_id=property_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")
