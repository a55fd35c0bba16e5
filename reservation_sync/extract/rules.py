"""
Field extraction rule tables.

Each field maps to an ordered list of pure rules. A rule takes the message
text and returns a value or None; the extractor stops at the first rule that
returns a value. New provider templates are supported by adding a rule to the
relevant list, without touching the extractor or the matcher.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, NamedTuple, Optional

from dateutil import parser as date_parser

MIN_GUESTS = 1
MAX_GUESTS = 16

# Words that show a "name" match actually hit boilerplate or a line item
NAME_STOPWORDS = {
    "admin",
    "airbnb",
    "booking",
    "confirmed",
    "fee",
    "fees",
    "new",
    "payout",
    "reservation",
    "service",
    "tax",
    "taxes",
    "total",
    "your",
}


class MessageText(NamedTuple):
    subject: str
    body: str
    reference_date: date


class DateMatch(NamedTuple):
    value: date
    explicit_year: bool


@dataclass(frozen=True)
class FieldRule:
    name: str
    extract: Callable[[MessageText], Optional[Any]]


# -----------------------------------------------------------------------------
# Shared patterns and parsers
# -----------------------------------------------------------------------------

_MONTH = r"(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Sept|Oct|Nov|Dec)[a-z]*\.?"
_WEEKDAY = r"(?:(?:Mon|Tue|Wed|Thu|Fri|Sat|Sun)[a-z]*\.?,?\s+)?"
DATE_VALUE = (
    rf"{_WEEKDAY}(?P<date>{_MONTH}\s+\d{{1,2}}(?:st|nd|rd|th)?(?:,?\s+\d{{4}})?"
    r"|\d{4}-\d{2}-\d{2}"
    r"|\d{1,2}/\d{1,2}/\d{4})"
)

_NAME = r"(?P<name>[A-Z][A-Za-z'’.\-]+(?:[ \t]+[A-Z][A-Za-z'’.\-]*){0,3})"
_CODE = r"(?P<code>[A-Z0-9]{6,15})\b"


def _label_then(label: str, value: str) -> re.Pattern[str]:
    # Label and value may share a line ("Check-in: Mar 13") or sit on
    # neighbouring lines when the body came from an HTML table.
    return re.compile(rf"(?i:{label})\s*[:#]?\s*{value}")


def parse_date_text(raw: str, reference: date) -> Optional[DateMatch]:
    """
    Parse a date fragment such as "Mar 13", "Friday, March 13, 2026" or "2026-03-13".

    Year-less fragments take the reference year, or the next year that has
    the day at all ("Feb 29" sent in a non-leap year).
    """
    cleaned = re.sub(r"(\d)(st|nd|rd|th)\b", r"\1", raw.strip())
    explicit_year = bool(re.search(r"\d{4}", cleaned))
    years = [reference.year] if explicit_year else range(reference.year, reference.year + 5)
    for year in years:
        try:
            parsed = date_parser.parse(cleaned, default=datetime(year, 1, 1))
        except (ValueError, OverflowError):
            continue
        return DateMatch(parsed.date(), explicit_year)
    return None


def _date_rule(pattern: re.Pattern[str], source: str = "body") -> Callable[[MessageText], Optional[DateMatch]]:
    def rule(message: MessageText) -> Optional[DateMatch]:
        text = message.subject if source == "subject" else message.body
        match = pattern.search(text)
        if not match:
            return None
        return parse_date_text(match.group("date"), message.reference_date)

    return rule


def is_valid_code(value: str) -> bool:
    return bool(re.fullmatch(r"[A-Z0-9]{6,15}", value)) and any(ch.isdigit() for ch in value)


def _code_rule(pattern: re.Pattern[str], source: str = "body") -> Callable[[MessageText], Optional[str]]:
    def rule(message: MessageText) -> Optional[str]:
        text = message.subject if source == "subject" else message.body
        for match in pattern.finditer(text):
            code = match.group("code")
            if is_valid_code(code):
                return code
        return None

    return rule


def clean_guest_name(raw: str) -> Optional[str]:
    name = re.sub(r"\s+", " ", raw).strip(" .,-")
    if not name:
        return None
    words = {word.lower().strip(".'’") for word in name.split()}
    if words & NAME_STOPWORDS:
        return None
    return name


def _name_rule(pattern: re.Pattern[str], source: str = "body") -> Callable[[MessageText], Optional[str]]:
    def rule(message: MessageText) -> Optional[str]:
        text = message.subject if source == "subject" else message.body
        for match in pattern.finditer(text):
            name = clean_guest_name(match.group("name"))
            if name:
                return name
        return None

    return rule


def _count_rule(pattern: re.Pattern[str]) -> Callable[[MessageText], Optional[int]]:
    def rule(message: MessageText) -> Optional[int]:
        for match in pattern.finditer(message.body):
            count = int(match.group("count"))
            if MIN_GUESTS <= count <= MAX_GUESTS:
                return count
        return None

    return rule


def _listing_rule(pattern: re.Pattern[str]) -> Callable[[MessageText], Optional[str]]:
    def rule(message: MessageText) -> Optional[str]:
        match = pattern.search(message.body)
        if not match:
            return None
        value = match.group("listing").strip()
        return value or None

    return rule


# -----------------------------------------------------------------------------
# Rule tables (first match wins, in list order)
# -----------------------------------------------------------------------------

CONFIRMATION_CODE_RULES = [
    FieldRule("confirmation_code_label", _code_rule(_label_then(r"confirmation code", _CODE))),
    FieldRule(
        "reservation_code_label",
        _code_rule(
            _label_then(r"reservation (?:code|id|number)|booking (?:id|number|reference)", _CODE)
        ),
    ),
    FieldRule("booking_hash_label", _code_rule(re.compile(r"(?i:booking)\s*\(?#\s*" + _CODE))),
    FieldRule("platform_code_pattern", _code_rule(re.compile(r"\b(?P<code>[A-Z]{2}[A-Z0-9]{8,12})\b"))),
    FieldRule(
        "subject_code_pattern",
        _code_rule(re.compile(r"\b(?P<code>[A-Z0-9]{10})\b"), source="subject"),
    ),
]

GUEST_NAME_RULES = [
    FieldRule(
        "subject_arrives_template",
        _name_rule(re.compile(r"[-–—]\s*" + _NAME + r"\s+arrives\b"), source="subject"),
    ),
    FieldRule(
        "guest_label",
        _name_rule(_label_then(r"\bguest(?:'s)?(?: name)?\b|\btraveler\b|\bbooked by\b", _NAME)),
    ),
    FieldRule(
        "arrival_sentence",
        _name_rule(re.compile(_NAME + r"[ \t]+(?:is arriving|has booked|booked your|arrives)\b")),
    ),
]

CHECK_IN_RULES = [
    FieldRule("check_in_label", _date_rule(_label_then(r"check[- ]?in(?: date)?\b", DATE_VALUE))),
    FieldRule("arrival_label", _date_rule(_label_then(r"arrival(?: date)?\b", DATE_VALUE))),
    FieldRule(
        "subject_arrives",
        _date_rule(re.compile(r"(?i:arrives)\s+" + DATE_VALUE), source="subject"),
    ),
]

CHECK_OUT_RULES = [
    FieldRule("check_out_label", _date_rule(_label_then(r"check[- ]?out(?: date)?\b", DATE_VALUE))),
    FieldRule("departure_label", _date_rule(_label_then(r"departure(?: date)?\b", DATE_VALUE))),
]

# The label comes first: Airbnb puts "Guests" on its own line above "2 adults, 1 infant"
GUEST_COUNT_RULES = [
    FieldRule("guests_label", _count_rule(_label_then(r"\bguests\b", r"(?P<count>\d{1,2})\b"))),
    FieldRule(
        "count_before_noun",
        _count_rule(re.compile(r"\b(?P<count>\d{1,2})[ \t]+(?i:adults?|guests?)\b")),
    ),
]

LISTING_NAME_RULES = [
    FieldRule(
        "listing_label",
        _listing_rule(re.compile(r"(?i:listing|property|rental)(?: name)?[ \t]*:[ \t]*(?P<listing>[^\n]{3,120})")),
    ),
]

FIELD_RULES: dict[str, list[FieldRule]] = {
    "confirmation_code": CONFIRMATION_CODE_RULES,
    "guest_name": GUEST_NAME_RULES,
    "check_in": CHECK_IN_RULES,
    "check_out": CHECK_OUT_RULES,
    "guest_count": GUEST_COUNT_RULES,
    "listing_name": LISTING_NAME_RULES,
}
