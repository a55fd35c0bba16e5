from datetime import date
from typing import Optional

from pydantic import BaseModel


class CalendarBookingOut(BaseModel):
    id: int
    property_id: int
    check_in: date
    check_out: date
    guest_name: Optional[str] = None
    guest_count: Optional[int] = None
    platform: Optional[str] = None
    summary: Optional[str] = None
    reservation_code: Optional[str] = None
    matched_fact_id: Optional[int] = None
    manually_resolved: bool = False


class CleaningBufferOut(BaseModel):
    id: str
    property_id: int
    day: date
    kind: str
    source_booking_id: int


class PropertyCalendarOut(BaseModel):
    property_id: int
    start: date
    end: date
    bookings: list[CalendarBookingOut]
    cleaning_buffers: list[CleaningBufferOut]
