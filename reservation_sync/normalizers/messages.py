import base64
import binascii
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class MailMessage:
    id: str
    subject: str
    snippet: str
    text: Optional[str]
    html: Optional[str]
    received_at: Optional[datetime]


def _decode_part_data(data: Optional[str]) -> Optional[str]:
    if not data:
        return None
    try:
        padded = data + "=" * (-len(data) % 4)
        return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError):
        logger.warning("message_part_decode_failed", length=len(data))
        return None


def _collect_bodies(part: Dict[str, Any], bodies: Dict[str, List[str]]) -> None:
    mime_type = part.get("mimeType", "")
    data = _decode_part_data((part.get("body") or {}).get("data"))
    if data and mime_type in ("text/plain", "text/html"):
        bodies[mime_type].append(data)
    for child in part.get("parts") or []:
        _collect_bodies(child, bodies)


def normalize_message(raw: Dict[str, Any]) -> MailMessage:
    """
    Flatten a Gmail API message (format=full) into subject, snippet and bodies.

    Multipart payloads are walked recursively; the first text/plain and the
    first text/html part found are kept.

    Args:
        raw: Message resource as returned by users.messages.get

    Returns:
        MailMessage
    """
    payload = raw.get("payload") or {}
    headers = {h.get("name", "").lower(): h.get("value", "") for h in payload.get("headers", [])}

    bodies: Dict[str, List[str]] = {"text/plain": [], "text/html": []}
    _collect_bodies(payload, bodies)

    received_at = None
    internal_date = raw.get("internalDate")
    if internal_date:
        try:
            received_at = datetime.fromtimestamp(int(internal_date) / 1000, tz=timezone.utc)
        except (TypeError, ValueError):
            received_at = None

    return MailMessage(
        id=str(raw.get("id", "")),
        subject=headers.get("subject", ""),
        snippet=raw.get("snippet", "") or "",
        text=bodies["text/plain"][0] if bodies["text/plain"] else None,
        html=bodies["text/html"][0] if bodies["text/html"] else None,
        received_at=received_at,
    )


def normalize_messages(raw_messages: List[Dict[str, Any]]) -> List[MailMessage]:
    """Normalize a batch of raw messages, dropping any without an ID."""
    normalized = []
    for raw in raw_messages:
        if not raw.get("id"):
            logger.warning("message_missing_id_skipped")
            continue
        normalized.append(normalize_message(raw))
    return normalized
