"""
Deterministic classification of mailbox messages.

Blocklist rules run first: inquiries, replies, cancellations, review traffic
and platform housekeeping are never treated as reservations, even when they
mention check-in dates. Only a confirmation rule can mark a message as a
reservation candidate.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional, Pattern

CLASSIFICATION_VERSION = "v1"

RESERVATION_CONFIRMATION = "reservation_confirmation"
UNKNOWN = "unknown"


@dataclass(frozen=True)
class BlocklistRule:
    message_type: str
    description: str
    patterns: tuple[Pattern[str], ...]
    # Patterns matched against the subject only (e.g. reply prefixes)
    subject_only: tuple[Pattern[str], ...] = ()


@dataclass(frozen=True)
class ConfirmationRule:
    platform: str
    description: str
    subject_patterns: tuple[Pattern[str], ...]
    body_patterns: tuple[Pattern[str], ...]
    required_body_patterns: tuple[Pattern[str], ...]


@dataclass
class EmailClassification:
    message_type: str
    is_reservation_candidate: bool
    platform: Optional[str] = None
    reasons: list[str] = field(default_factory=list)
    version: str = CLASSIFICATION_VERSION


def _rx(*patterns: str, flags: int = re.IGNORECASE) -> tuple[Pattern[str], ...]:
    return tuple(re.compile(p, flags) for p in patterns)


BLOCKLIST_RULES: tuple[BlocklistRule, ...] = (
    BlocklistRule(
        "booking_inquiry",
        "Inquiry signals",
        _rx(r"\bInquiry\b", r"Respond to .{0,30} inquiry", r"Pre-approval request"),
    ),
    BlocklistRule(
        "guest_message",
        "Reply/thread signals",
        _rx(r"has replied to your message", r"sent you a message"),
        subject_only=_rx(r"^Re:"),
    ),
    BlocklistRule(
        "cancellation_request",
        "Cancellation workflow",
        _rx(
            r"cancellation request",
            r"cancel a booking",
            r"approve the cancellation",
            r"cancellation has been confirmed",
            r"reservation has been cancell?ed",
            r"booking was cancell?ed",
        ),
    ),
    BlocklistRule(
        "review_request",
        "Review request signals",
        _rx(
            r"Write a review",
            r"waiting for your review",
            r"Leave a review",
            r"Review your guest",
        ),
    ),
    BlocklistRule(
        "review_posted",
        "Review posted signals",
        _rx(
            r"left a \d-star review",
            r"posted their review",
            r"wrote you a review",
            r"new review for",
        ),
    ),
    BlocklistRule(
        "platform_system",
        "Platform operations",
        _rx(
            r"reimbursement",
            r"security deposit (expiry|reminder)",
            r"payout (processed|has been sent)",
            r"tax document",
            r"\b1099\b",
            r"account verification",
            r"verify your (identity|account)",
            r"update your (payment|payout)",
        ),
    ),
)

CONFIRMATION_RULES: tuple[ConfirmationRule, ...] = (
    ConfirmationRule(
        platform="Airbnb",
        description="Airbnb reservation confirmation",
        subject_patterns=_rx(r"Reservation confirmed"),
        body_patterns=_rx(r"New booking confirmed", r"booking is confirmed"),
        required_body_patterns=_rx(r"Check-?\s?in"),
    ),
    ConfirmationRule(
        platform="Lodgify",
        description="Lodgify reservation confirmation",
        subject_patterns=_rx(r"Confirmed Booking"),
        body_patterns=_rx(r"BOOKING \(#", r"Booking Id:", r"Booking #"),
        required_body_patterns=_rx(r"(Arrival|Check-?\s?in)", r"(Departure|Check-?\s?out)"),
    ),
    ConfirmationRule(
        platform="VRBO",
        description="VRBO reservation confirmation",
        subject_patterns=_rx(r"Instant Booking", r"Booking confirmed"),
        body_patterns=_rx(r"Your booking is confirmed", r"booking has been confirmed"),
        required_body_patterns=_rx(r"Reservation ID", r"(Dates|Check-?\s?in|Arrival)"),
    ),
    ConfirmationRule(
        platform="Direct",
        description="Generic reservation confirmation",
        subject_patterns=_rx(r"You have a new reservation", r"Reservation from", r"Booking confirmed"),
        body_patterns=_rx(r"Reservation Confirmation", r"Booking Confirmation"),
        required_body_patterns=_rx(r"(Check-?\s?in|Arrival)", r"(Check-?\s?out|Departure)"),
    ),
)


def _first_match(patterns: tuple[Pattern[str], ...], text: str) -> Optional[Pattern[str]]:
    for pattern in patterns:
        if pattern.search(text):
            return pattern
    return None


def classify_email(subject: str, body: str) -> EmailClassification:
    """
    Classify a message as a reservation confirmation or one of the blocked types.

    Args:
        subject: Message subject line
        body: Message body text (HTML already converted to text)

    Returns:
        EmailClassification: message_type, platform and the rule trail in reasons
    """
    reasons: list[str] = []
    subject = (subject or "").strip()
    body = re.sub(r"\s+", " ", body or "").strip()
    combined = f"{subject} {body}"

    for block in BLOCKLIST_RULES:
        hit = _first_match(block.subject_only, subject) or _first_match(block.patterns, combined)
        if hit is not None:
            reasons.append(f"Blocked: {block.description} [{hit.pattern}]")
            return EmailClassification(
                message_type=block.message_type,
                is_reservation_candidate=False,
                reasons=reasons,
            )

    for rule in CONFIRMATION_RULES:
        subject_hit = _first_match(rule.subject_patterns, subject)
        body_hit = _first_match(rule.body_patterns, body)
        if subject_hit is None and body_hit is None:
            continue

        if subject_hit is not None:
            reasons.append(f"Subject match: {rule.platform} [{subject_hit.pattern}]")
        if body_hit is not None:
            reasons.append(f"Body match: {rule.platform} [{body_hit.pattern}]")

        missing = next((p for p in rule.required_body_patterns if not p.search(body)), None)
        if missing is not None:
            reasons.append(f"Missing required: [{missing.pattern}]")
            continue

        reasons.append(f"Confirmed: {rule.description}")
        return EmailClassification(
            message_type=RESERVATION_CONFIRMATION,
            is_reservation_candidate=True,
            platform=rule.platform,
            reasons=reasons,
        )

    reasons.append("No blocklist or confirmation patterns matched")
    return EmailClassification(message_type=UNKNOWN, is_reservation_candidate=False, reasons=reasons)
