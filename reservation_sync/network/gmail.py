"""
Gmail REST client scoped to a single label.

All calls take a bearer token and raise AuthorizationError on 401/403 so that
callers can wrap them in call_with_token_retry.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, cast
from urllib.parse import urljoin

import structlog

from reservation_sync.config import GMAIL_MAX_MESSAGES, GMAIL_PAGE_SIZE
from reservation_sync.network.client import send_request

logger = structlog.get_logger(__name__)

BASE_URL = "https://gmail.googleapis.com/gmail/v1/users/me/"
MAX_CONCURRENT_REQUESTS = 4


def gmail_get(
    path: str, token: str, endpoint: str, params: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    url = urljoin(BASE_URL, path)
    headers = {"Authorization": f"Bearer {token}"}
    res = send_request(url, endpoint=endpoint, headers=headers, params=params)
    return cast(Dict[str, Any], res.json())


def resolve_label_id(token: str, label_name: str) -> Optional[str]:
    """
    Look up a label's ID by its display name (case-insensitive).

    Args:
        token (str): Bearer token.
        label_name (str): Label name as shown in Gmail.

    Returns:
        Optional[str]: Label ID, or None if the mailbox has no such label.
    """
    data = gmail_get("labels", token, endpoint="gmail.labels")
    wanted = label_name.strip().lower()
    for label in data.get("labels", []):
        if str(label.get("name", "")).strip().lower() == wanted:
            return cast(str, label["id"])
    return None


def list_message_ids(
    token: str,
    label_id: str,
    max_messages: int = GMAIL_MAX_MESSAGES,
    page_size: int = GMAIL_PAGE_SIZE,
) -> List[str]:
    """
    List message IDs under a label, following nextPageToken.

    Args:
        token (str): Bearer token.
        label_id (str): Gmail label ID.
        max_messages (int): Upper bound on IDs returned.
        page_size (int): Page size requested from the API.

    Returns:
        List[str]: Message IDs, newest first as returned by Gmail.
    """
    ids: List[str] = []
    page_token: Optional[str] = None

    while len(ids) < max_messages:
        params: Dict[str, Any] = {
            "labelIds": label_id,
            "maxResults": min(page_size, max_messages - len(ids)),
        }
        if page_token:
            params["pageToken"] = page_token

        data = gmail_get("messages", token, endpoint="gmail.messages.list", params=params)
        ids.extend(m["id"] for m in data.get("messages", []) if m.get("id"))

        page_token = data.get("nextPageToken")
        if not page_token:
            break

    logger.info("gmail_messages_listed", label_id=label_id, count=len(ids))
    return ids[:max_messages]


def fetch_message(token: str, message_id: str) -> Dict[str, Any]:
    return gmail_get(
        f"messages/{message_id}",
        token,
        endpoint="gmail.messages.get",
        params={"format": "full"},
    )


def fetch_messages(token: str, message_ids: List[str]) -> List[Dict[str, Any]]:
    """
    Fetch full message payloads concurrently, preserving input order.

    Args:
        token (str): Bearer token.
        message_ids (List[str]): IDs to fetch.

    Returns:
        List[Dict[str, Any]]: Raw Gmail message payloads.
    """
    if not message_ids:
        return []

    with ThreadPoolExecutor(max_workers=MAX_CONCURRENT_REQUESTS) as pool:
        return list(pool.map(lambda mid: fetch_message(token, mid), message_ids))
