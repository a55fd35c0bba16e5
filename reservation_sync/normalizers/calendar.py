"""
Normalize iCalendar feed documents into booking rows.

Calendar semantics are date-only: DTSTART is the arrival day and DTEND the
departure day (exclusive). Timed events are reduced to their dates.
"""

from __future__ import annotations

import hashlib
import re
from datetime import date, datetime, timedelta
from typing import Any, Optional

import structlog
from icalendar import Calendar

from reservation_sync.errors import CalendarFormatError

logger = structlog.get_logger(__name__)

DEFAULT_SUMMARY = "Blocked"
RESERVED_NAME = "Reserved"

_RESERVED_SUMMARY = re.compile(r"reserved|blocking", re.IGNORECASE)
_RESERVATION_CODE = re.compile(
    r"(?:reservations/details/|reservation code[:\s]+|confirmation code[:\s]+)([A-Z0-9]{6,15})",
    re.IGNORECASE,
)


def _to_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return None


def _fallback_uid(start: date, end: date, summary: str) -> str:
    digest = hashlib.sha1(f"{start.isoformat()}|{end.isoformat()}|{summary}".encode()).hexdigest()
    return f"generated-{digest[:16]}"


def guest_name_from_summary(summary: str) -> str:
    """Map a feed event summary to the booking's initial guest name."""
    if _RESERVED_SUMMARY.search(summary):
        return RESERVED_NAME
    return summary


def reservation_code_from_description(description: str) -> Optional[str]:
    match = _RESERVATION_CODE.search(description or "")
    return match.group(1).upper() if match else None


def normalize_calendar(ics_text: str, source_name: str) -> list[dict[str, Any]]:
    """
    Parse an iCalendar document into booking rows keyed by event UID.

    Args:
        ics_text: Raw feed body
        source_name: Platform label of the feed (copied to each row's platform)

    Returns:
        list[dict]: Rows with external_uid, check_in, check_out, summary,
        guest_name, platform, reservation_code and raw_payload. Events with a
        missing or non-positive date range are skipped. If a UID repeats, the
        last occurrence wins.

    Raises:
        CalendarFormatError: If the document is not a parsable VCALENDAR
    """
    if "BEGIN:VCALENDAR" not in (ics_text or ""):
        raise CalendarFormatError("Response is not an iCalendar document (no BEGIN:VCALENDAR)")

    try:
        calendar = Calendar.from_ical(ics_text)
    except ValueError as e:
        raise CalendarFormatError(f"Unparsable iCalendar document: {e}") from e

    rows: dict[str, dict[str, Any]] = {}
    skipped = 0

    for component in calendar.walk("VEVENT"):
        dtstart = component.get("DTSTART")
        dtend = component.get("DTEND")
        duration = component.get("DURATION")

        start = _to_date(dtstart.dt if dtstart is not None else None)
        if start is None:
            skipped += 1
            continue

        if dtend is not None:
            end = _to_date(dtend.dt)
        elif duration is not None:
            end = start + timedelta(days=max(duration.dt.days, 1))
        else:
            end = start + timedelta(days=1)

        summary = str(component.get("SUMMARY") or "").strip() or DEFAULT_SUMMARY

        if end is None or end <= start:
            logger.warning(
                "calendar_event_skipped",
                reason="invalid_date_range",
                uid=str(component.get("UID", "")),
                start=str(start),
                end=str(end),
            )
            skipped += 1
            continue

        uid = str(component.get("UID") or "").strip() or _fallback_uid(start, end, summary)
        description = str(component.get("DESCRIPTION") or "")

        rows[uid] = {
            "external_uid": uid,
            "check_in": start,
            "check_out": end,
            "summary": summary,
            "guest_name": guest_name_from_summary(summary),
            "platform": source_name,
            "reservation_code": reservation_code_from_description(description),
            "raw_payload": {
                "uid": uid,
                "summary": summary,
                "description": description or None,
                "dtstart": start.isoformat(),
                "dtend": end.isoformat(),
            },
        }

    logger.debug(
        "calendar_normalized", source_name=source_name, events=len(rows), skipped=skipped
    )
    return list(rows.values())
