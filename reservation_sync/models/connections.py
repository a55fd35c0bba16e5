"""SQLAlchemy models for mailbox connections and the properties they can reach."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, true
from sqlalchemy.sql import func

from reservation_sync.models.base import Base


class Connection(Base):
    """
    ORM model for a connected mailbox (one Gmail account + label).

    status moves between pending, connected, error and needs_reconnect. The
    last_error_code column carries a short machine-readable reason such as
    TOKEN_REVOKED or LABEL_NOT_FOUND.
    """

    __tablename__ = "connections"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=True)
    account_email = Column(String, nullable=True)
    label_name = Column(String, nullable=True)
    access_token = Column(String, nullable=True)
    refresh_token = Column(String, nullable=True)
    token_expires_at = Column(DateTime(timezone=True), nullable=True)
    status = Column(String, nullable=False, default="pending", server_default="pending")
    last_error_code = Column(String, nullable=True)
    last_error_message = Column(String, nullable=True)
    last_sync_at = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class ConnectionProperty(Base):
    """Properties whose bookings a mailbox connection's facts may be matched against."""

    __tablename__ = "connection_properties"

    connection_id = Column(
        Integer, ForeignKey("connections.id", ondelete="CASCADE"), primary_key=True
    )
    property_id = Column(Integer, ForeignKey("properties.id", ondelete="CASCADE"), primary_key=True)
