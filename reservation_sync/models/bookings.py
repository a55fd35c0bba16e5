# models/bookings.py

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    true,
)
from sqlalchemy.sql import func

from reservation_sync.models.base import Base, JSONType


class Booking(Base):
    """
    ORM model for an occupied or blocked interval on a property's calendar.

    Calendar bookings are keyed by (property_id, source_key, external_uid) with
    source_key = "feed:<feed_id>". Bookings created by resolving a review item
    use source_key = "manual". Rows are never deleted; feed re-syncs retire
    vanished events by setting is_active to false.

    summary always mirrors the feed's label. guest_name/guest_count start as
    the feed's values and are replaced by enrichment from a matched fact or by
    manual resolution.
    """

    __tablename__ = "bookings"
    __table_args__ = (
        UniqueConstraint("property_id", "source_key", "external_uid", name="uq_bookings_source"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    property_id = Column(
        Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True
    )
    source_key = Column(String, nullable=False)
    source_feed_id = Column(
        Integer, ForeignKey("calendar_feeds.id", ondelete="SET NULL"), nullable=True
    )
    external_uid = Column(String, nullable=False)
    check_in = Column(Date, nullable=False)
    check_out = Column(Date, nullable=False)
    summary = Column(String, nullable=True)
    guest_name = Column(String, nullable=True)
    guest_count = Column(Integer, nullable=True)
    platform = Column(String, nullable=True)
    reservation_code = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())
    matched_fact_id = Column(
        Integer, ForeignKey("reservation_facts.id", ondelete="SET NULL"), nullable=True, index=True
    )
    manually_resolved_at = Column(DateTime(timezone=True), nullable=True)
    raw_payload = Column(JSONType, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
