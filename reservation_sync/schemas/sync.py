from pydantic import BaseModel, Field


class SyncReportOut(BaseModel):
    """Summary of one synchronous sync run for a mailbox connection or calendar feed."""

    kind: str = Field(..., description="mailbox or feed")
    source_id: int
    status: str = Field(..., description="success, partial or failure")
    messages_scanned: int = 0
    facts_parsed: int = 0
    facts_inserted: int = 0
    events_found: int = 0
    bookings_retired: int = 0
    bookings_enriched: int = 0
    review_items_created: int = 0
    errors: list[str] = Field(default_factory=list)


class SyncAllOut(BaseModel):
    reports: list[SyncReportOut]
