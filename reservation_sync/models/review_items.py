from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.sql import func

from reservation_sync.models.base import Base, JSONType


class ReviewItem(Base):
    """
    ORM model for a fact that needs a human decision.

    item_type is unmatched (no candidate booking), ambiguous (several) or
    conflict (the only candidate is already claimed by a different
    reservation). There is at most one item per fact.
    """

    __tablename__ = "review_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    connection_id = Column(
        Integer, ForeignKey("connections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    fact_id = Column(
        Integer, ForeignKey("reservation_facts.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    item_type = Column(String, nullable=False)
    status = Column(String, nullable=False, default="pending", server_default="pending")
    candidate_booking_ids = Column(JSONType, nullable=False, default=list)
    extracted_data = Column(JSONType, nullable=False, default=dict)
    resolution = Column(String, nullable=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
