"""SQLAlchemy model for the email extraction audit trail."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.sql import func

from reservation_sync.models.base import Base, JSONType


class ProcessedMessage(Base):
    """
    One row per mailbox message the extractor has looked at.

    status is parsed, rejected, skipped (not a reservation confirmation) or
    failed (unexpected exception). attempts lists every field rule tried as
    {"field", "rule", "matched"} so template drift can be diagnosed from the
    database. A message with a row here is not picked up again automatically
    unless its last attempt failed.
    """

    __tablename__ = "processed_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    connection_id = Column(
        Integer, ForeignKey("connections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    source_message_id = Column(String, nullable=False, unique=True)
    subject = Column(String, nullable=True)
    body_source = Column(String, nullable=True)
    message_type = Column(String, nullable=True)
    platform = Column(String, nullable=True)
    status = Column(String, nullable=False)
    reason = Column(String, nullable=True)
    attempts = Column(JSONType, nullable=False, default=list)
    classification_reasons = Column(JSONType, nullable=False, default=list)
    processed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
