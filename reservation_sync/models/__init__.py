"""ORM models. Importing this package registers every table on Base.metadata."""

from reservation_sync.models.base import Base
from reservation_sync.models.bookings import Booking
from reservation_sync.models.calendar_feeds import CalendarFeed
from reservation_sync.models.connections import Connection, ConnectionProperty
from reservation_sync.models.facts import ReservationFact
from reservation_sync.models.processed_messages import ProcessedMessage
from reservation_sync.models.properties import Property
from reservation_sync.models.review_items import ReviewItem

__all__ = [
    "Base",
    "Booking",
    "CalendarFeed",
    "Connection",
    "ConnectionProperty",
    "ProcessedMessage",
    "Property",
    "ReservationFact",
    "ReviewItem",
]
