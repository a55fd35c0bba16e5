"""Immutable records consumed by the reconciliation algorithms."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class FactView:
    id: int
    check_in: date
    check_out: date
    guest_name: str
    guest_count: int = 1
    confirmation_code: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "FactView":
        return cls(
            id=row["id"],
            check_in=row["check_in"],
            check_out=row["check_out"],
            guest_name=row["guest_name"],
            guest_count=row["guest_count"] or 1,
            confirmation_code=row.get("confirmation_code"),
        )


@dataclass(frozen=True)
class BookingView:
    id: int
    property_id: int
    check_in: date
    check_out: date
    guest_name: Optional[str] = None
    guest_count: Optional[int] = None
    platform: Optional[str] = None
    summary: Optional[str] = None
    is_active: bool = True
    matched_fact_id: Optional[int] = None
    manually_resolved_at: Optional[datetime] = None
    reservation_code: Optional[str] = None

    @property
    def is_enriched(self) -> bool:
        return self.matched_fact_id is not None

    @property
    def is_manual(self) -> bool:
        return self.manually_resolved_at is not None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "BookingView":
        return cls(
            id=row["id"],
            property_id=row["property_id"],
            check_in=row["check_in"],
            check_out=row["check_out"],
            guest_name=row.get("guest_name"),
            guest_count=row.get("guest_count"),
            platform=row.get("platform"),
            summary=row.get("summary"),
            is_active=bool(row.get("is_active", True)),
            matched_fact_id=row.get("matched_fact_id"),
            manually_resolved_at=row.get("manually_resolved_at"),
            reservation_code=row.get("reservation_code"),
        )


@dataclass(frozen=True)
class CleaningPolicy:
    pre_days: int = 0
    post_days: int = 0


@dataclass(frozen=True)
class CleaningBuffer:
    property_id: int
    day: date
    kind: str  # "pre" or "post"
    source_booking_id: int

    @property
    def key(self) -> str:
        return f"{self.property_id}|{self.day.isoformat()}"

    @property
    def id(self) -> str:
        return f"cleaning:{self.key}"
