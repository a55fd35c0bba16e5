from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, true
from sqlalchemy.sql import func

from reservation_sync.models.base import Base


class CalendarFeed(Base):
    """
    ORM model for an external iCalendar feed attached to a property.

    source_name is the platform label (e.g. "Airbnb", "Lodgify") copied onto
    every booking the feed produces. The last_* columns record the outcome of
    the most recent sync for operator visibility.
    """

    __tablename__ = "calendar_feeds"

    id = Column(Integer, primary_key=True, autoincrement=True)
    property_id = Column(
        Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True
    )
    source_name = Column(String, nullable=False)
    url = Column(String, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())
    last_synced_at = Column(DateTime(timezone=True), nullable=True)
    last_sync_status = Column(String, nullable=True)
    last_error = Column(String, nullable=True)
    last_http_status = Column(Integer, nullable=True)
    last_event_count = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
