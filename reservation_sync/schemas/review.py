from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from reservation_sync.schemas.calendar import CalendarBookingOut


class ReviewItemOut(BaseModel):
    """A fact that could not be placed on the calendar automatically."""

    id: int
    connection_id: int
    fact_id: int
    item_type: str = Field(..., description="unmatched, ambiguous or conflict")
    status: str
    candidate_booking_ids: list[int] = Field(default_factory=list)
    extracted_data: dict[str, Any] = Field(default_factory=dict)
    resolution: Optional[str] = None
    booking_id: Optional[int] = None
    resolved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class ReviewResolvePayload(BaseModel):
    """
    Schema for resolving a review item.
    property_id is required when assigning; guest fields override the fact's values.
    """

    action: Literal["assign", "dismiss"]
    property_id: Optional[int] = Field(None, description="Property to assign the stay to")
    guest_name: Optional[str] = Field(None, min_length=1, description="Guest name override")
    guest_count: Optional[int] = Field(None, ge=1, description="Guest count override")

    @model_validator(mode="after")
    def check_property_for_assign(self) -> "ReviewResolvePayload":
        if self.action == "assign" and self.property_id is None:
            raise ValueError("property_id is required when action is 'assign'")
        return self


class ReviewResolveResult(BaseModel):
    status: str = Field(..., description="assigned, created, dismissed or already_resolved")
    booking_id: Optional[int] = None
    booking: Optional[CalendarBookingOut] = Field(None, description="The booking the item now points at")
