from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ReservationFactIn(BaseModel):
    """
    Validated reservation fact produced by the extractor.

    Anything that fails this schema is rejected before it reaches the store.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    source_message_id: str = Field(..., min_length=1, description="Originating mailbox message ID")
    guest_name: str = Field(..., min_length=1, description="Guest name as written in the email")
    guest_count: int = Field(1, ge=1, description="Number of guests")
    confirmation_code: Optional[str] = Field(None, description="Platform confirmation code")
    check_in: date = Field(..., description="Arrival date")
    check_out: date = Field(..., description="Departure date")
    listing_name: Optional[str] = Field(None, description="Listing name from the email, if any")
    platform: Optional[str] = Field(None, description="Platform that sent the confirmation")
    confidence: float = Field(..., ge=0.0, le=1.0, description="Extraction certainty")

    @model_validator(mode="after")
    def check_dates_ordered(self) -> "ReservationFactIn":
        if self.check_out <= self.check_in:
            raise ValueError("check_out must be after check_in")
        return self
