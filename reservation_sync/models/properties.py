"""SQLAlchemy model for rental properties and their cleaning policy."""

from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func

from reservation_sync.models.base import Base


class Property(Base):
    """
    ORM model for a rental property.

    cleaning_pre_days / cleaning_post_days define the turnover window that the
    calendar view renders as cleaning buffers around each real booking.
    """

    __tablename__ = "properties"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    cleaning_pre_days = Column(Integer, nullable=False, default=0, server_default="0")
    cleaning_post_days = Column(Integer, nullable=False, default=0, server_default="0")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
