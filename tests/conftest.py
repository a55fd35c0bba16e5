"""
Shared pytest fixtures.

Required settings are seeded before any reservation_sync module is imported so
that config.py can load without a .env file.
"""

from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ALLOWED_ORIGINS", "*")

from datetime import date
from typing import Any, Callable, Generator

import pytest
from sqlalchemy import create_engine, insert
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from reservation_sync.cache import token_cache
from reservation_sync.models import (
    Base,
    Booking,
    CalendarFeed,
    Connection,
    ConnectionProperty,
    Property,
    ReservationFact,
)
from reservation_sync.services.sync_guard import sync_locks


@pytest.fixture
def db_engine() -> Generator[Engine, None, None]:
    """In-memory SQLite engine with every table created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(autouse=True)
def reset_process_state() -> Generator[None, None, None]:
    """Module-level caches and lock tables must not leak between tests."""
    token_cache.clear()
    yield
    token_cache.clear()
    sync_locks._held.clear()


@pytest.fixture
def seeded(db_engine: Engine) -> dict[str, int]:
    """
    One property (1 pre / 1 post cleaning day), one mailbox connection that can
    reach it, and one Airbnb calendar feed on it.
    """
    with db_engine.begin() as conn:
        conn.execute(
            insert(Property).values(id=1, name="Lake House", cleaning_pre_days=1, cleaning_post_days=1)
        )
        conn.execute(
            insert(Connection).values(
                id=1,
                name="Bookings inbox",
                account_email="host@example.com",
                label_name="Reservations",
                refresh_token="refresh-1",
            )
        )
        conn.execute(insert(ConnectionProperty).values(connection_id=1, property_id=1))
        conn.execute(
            insert(CalendarFeed).values(
                id=1, property_id=1, source_name="Airbnb", url="https://example.com/cal.ics"
            )
        )
    return {"property_id": 1, "connection_id": 1, "feed_id": 1}


@pytest.fixture
def add_booking(db_engine: Engine) -> Callable[..., int]:
    """Factory inserting a feed booking with sensible defaults; returns its id."""

    def _add(**values: Any) -> int:
        check_in = values.get("check_in", date(2026, 3, 13))
        row = {
            "property_id": 1,
            "source_key": "feed:1",
            "source_feed_id": 1,
            "external_uid": f"uid-{check_in.isoformat()}",
            "check_in": check_in,
            "check_out": date(2026, 3, 16),
            "summary": "Reserved",
            "guest_name": "Reserved",
            "platform": "Airbnb",
            "is_active": True,
        }
        row.update(values)
        with db_engine.begin() as conn:
            result = conn.execute(insert(Booking).values(**row))
            return int(result.inserted_primary_key[0])

    return _add


@pytest.fixture
def add_fact(db_engine: Engine) -> Callable[..., int]:
    """Factory inserting a reservation fact with sensible defaults; returns its id."""

    def _add(**values: Any) -> int:
        row = {
            "connection_id": 1,
            "source_message_id": "msg-1",
            "guest_name": "Eric",
            "guest_count": 2,
            "confirmation_code": "HMABC12345",
            "check_in": date(2026, 3, 13),
            "check_out": date(2026, 3, 16),
            "platform": "Airbnb",
            "confidence": 0.9,
        }
        row.update(values)
        with db_engine.begin() as conn:
            result = conn.execute(insert(ReservationFact).values(**row))
            return int(result.inserted_primary_key[0])

    return _add
