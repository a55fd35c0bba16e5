from sqlalchemy import Column, Date, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.sql import func

from reservation_sync.models.base import Base


class ReservationFact(Base):
    """
    ORM model for a reservation fact parsed from a confirmation email.

    source_message_id is the idempotency key: a message is parsed into at most
    one fact. Rows are append-only; the only later change is correcting
    check_in/check_out to the dates of the calendar booking it matched.
    """

    __tablename__ = "reservation_facts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    connection_id = Column(
        Integer, ForeignKey("connections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    source_message_id = Column(String, nullable=False, unique=True)
    guest_name = Column(String, nullable=False)
    guest_count = Column(Integer, nullable=False, default=1, server_default="1")
    confirmation_code = Column(String, nullable=True, index=True)
    check_in = Column(Date, nullable=False)
    check_out = Column(Date, nullable=False)
    listing_name = Column(String, nullable=True)
    platform = Column(String, nullable=True)
    confidence = Column(Float, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
