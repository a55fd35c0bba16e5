"""
Turn a mailbox message into a validated reservation fact or a typed rejection.

The extractor is pure: it never touches the database. The caller persists the
returned outcome (fact and audit record) so that every attempt, successful or
not, can be inspected later.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Optional

import structlog
from dateutil.relativedelta import relativedelta
from pydantic import ValidationError

from reservation_sync.extract.body import select_body_text
from reservation_sync.extract.classifier import EmailClassification, classify_email
from reservation_sync.extract.rules import FIELD_RULES, DateMatch, MessageText
from reservation_sync.schemas.facts import ReservationFactIn

logger = structlog.get_logger(__name__)

STATUS_PARSED = "parsed"
STATUS_REJECTED = "rejected"
STATUS_SKIPPED = "skipped"
STATUS_FAILED = "failed"

NOT_RESERVATION = "not_reservation"
NO_CONFIRMATION_CODE = "no_confirmation_code"
NO_GUEST_NAME = "no_guest_name"
NO_DATES = "no_dates"
INVALID_DATE_RANGE = "invalid_date_range"

FALLBACK_PENALTY = 0.1
MIN_CONFIDENCE = 0.1

# A year-less check-in this far before the message date belongs to next year
PAST_ARRIVAL_GRACE = timedelta(days=30)


@dataclass(frozen=True)
class RuleAttempt:
    field: str
    rule: str
    matched: bool

    def as_dict(self) -> dict[str, Any]:
        return {"field": self.field, "rule": self.rule, "matched": self.matched}


@dataclass
class ExtractionOutcome:
    source_message_id: str
    status: str
    classification: EmailClassification
    body_source: Optional[str] = None
    reason: Optional[str] = None
    fact: Optional[ReservationFactIn] = None
    attempts: list[RuleAttempt] = field(default_factory=list)

    @property
    def is_fact(self) -> bool:
        return self.fact is not None


def run_field_rules(
    field_name: str, message: MessageText
) -> tuple[Optional[Any], Optional[int], list[RuleAttempt]]:
    """
    Try each rule for a field in order and stop at the first value.

    Returns:
        tuple: (value or None, index of the rule that matched, attempts made)
    """
    attempts: list[RuleAttempt] = []
    for index, rule in enumerate(FIELD_RULES[field_name]):
        value = rule.extract(message)
        attempts.append(RuleAttempt(field_name, rule.name, value is not None))
        if value is not None:
            return value, index, attempts
    return None, None, attempts


def resolve_stay_dates(
    check_in: DateMatch, check_out: DateMatch, reference: date
) -> tuple[date, date]:
    """
    Fill in missing years on a check-in/check-out pair.

    Year-less dates start in the reference year. A year-less check-in well
    before the reference date is moved to the following year, and a year-less
    check-out is placed in the first year that falls after check-in.
    """
    start = check_in.value
    end = check_out.value

    if not check_in.explicit_year:
        if check_out.explicit_year:
            start += relativedelta(years=end.year - start.year)
            if start >= end:
                start -= relativedelta(years=1)
        elif start < reference - PAST_ARRIVAL_GRACE:
            start += relativedelta(years=1)

    if not check_out.explicit_year:
        end += relativedelta(years=start.year - end.year)
        if end <= start:
            end += relativedelta(years=1)

    return start, end


def _confidence(fallbacks: int) -> float:
    return round(max(MIN_CONFIDENCE, min(1.0, 1.0 - FALLBACK_PENALTY * fallbacks)), 2)


def extract_reservation(
    source_message_id: str,
    subject: str,
    text: Optional[str] = None,
    html: Optional[str] = None,
    snippet: Optional[str] = None,
    received_on: Optional[date] = None,
) -> ExtractionOutcome:
    """
    Classify a message and, for reservation confirmations, extract a fact.

    Args:
        source_message_id: Mailbox message ID (idempotency key for the fact)
        subject: Message subject
        text: Plain-text body, if the message has one
        html: HTML body, if the message has one
        snippet: Short preview text from the mail API
        received_on: Date the message was received; year-less dates resolve against it

    Returns:
        ExtractionOutcome: status parsed with a fact, or rejected/skipped with a reason
    """
    body, body_source = select_body_text(text, html, snippet)
    classification = classify_email(subject or "", body)

    outcome = ExtractionOutcome(
        source_message_id=source_message_id,
        status=STATUS_SKIPPED,
        classification=classification,
        body_source=body_source,
    )

    if not classification.is_reservation_candidate:
        outcome.reason = NOT_RESERVATION
        return outcome

    reference = received_on or date.today()
    message = MessageText(subject=subject or "", body=body, reference_date=reference)

    values: dict[str, Any] = {}
    fallbacks = 0
    for field_name in FIELD_RULES:
        value, index, attempts = run_field_rules(field_name, message)
        outcome.attempts.extend(attempts)
        values[field_name] = value
        if index:
            fallbacks += 1

    outcome.status = STATUS_REJECTED

    if not values["confirmation_code"]:
        outcome.reason = NO_CONFIRMATION_CODE
    elif not values["guest_name"]:
        outcome.reason = NO_GUEST_NAME
    elif values["check_in"] is None or values["check_out"] is None:
        outcome.reason = NO_DATES

    if outcome.reason:
        logger.info(
            "extraction_rejected",
            source_message_id=source_message_id,
            reason=outcome.reason,
            platform=classification.platform,
        )
        return outcome

    check_in, check_out = resolve_stay_dates(values["check_in"], values["check_out"], reference)

    guest_count = values["guest_count"]
    if guest_count is None:
        guest_count = 1
        fallbacks += 1

    try:
        fact = ReservationFactIn(
            source_message_id=source_message_id,
            guest_name=values["guest_name"],
            guest_count=guest_count,
            confirmation_code=values["confirmation_code"],
            check_in=check_in,
            check_out=check_out,
            listing_name=values["listing_name"],
            platform=classification.platform,
            confidence=_confidence(fallbacks),
        )
    except ValidationError as e:
        outcome.reason = INVALID_DATE_RANGE
        logger.info(
            "extraction_rejected",
            source_message_id=source_message_id,
            reason=outcome.reason,
            check_in=str(check_in),
            check_out=str(check_out),
            errors=e.error_count(),
        )
        return outcome

    outcome.status = STATUS_PARSED
    outcome.fact = fact
    logger.debug(
        "extraction_parsed",
        source_message_id=source_message_id,
        confirmation_code=fact.confirmation_code,
        confidence=fact.confidence,
    )
    return outcome
