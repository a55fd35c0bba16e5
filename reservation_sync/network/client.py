"""
HTTP client helpers shared by the calendar and mailbox fetchers,
with support for retries, latency metrics and typed authorization failures.
"""

import time
from typing import Any, Dict, Optional, Tuple

import requests
import structlog

from reservation_sync.config import HTTP_TIMEOUT_SECONDS
from reservation_sync.errors import AuthorizationError
from reservation_sync.metrics import api_latency, api_requests

logger = structlog.get_logger(__name__)

MAX_RETRIES = 2
RETRY_DELAY = 1.0

CALENDAR_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    ),
    "Accept": "text/calendar, text/plain;q=0.9, */*;q=0.8",
}


def should_retry(res: Optional[requests.Response], err: Optional[Exception]) -> bool:
    """
    Determine whether the request should be retried based on response or error.

    Args:
        res (Optional[requests.Response]): Response object if available.
        err (Optional[Exception]): Exception raised by the request, if any.

    Returns:
        bool: True if the request should be retried, False otherwise.
    """
    if res is not None and res.status_code == 429:
        return True
    if isinstance(err, (requests.Timeout, requests.ConnectionError)):
        return True
    if res is not None and 500 <= res.status_code < 600:
        return True
    return False


def send_request(
    url: str,
    endpoint: str,
    headers: Optional[Dict[str, str]] = None,
    params: Optional[Dict[str, Any]] = None,
) -> requests.Response:
    """
    GET a URL, retrying rate limits, timeouts and server errors.

    Args:
        url (str): Absolute URL to fetch.
        endpoint (str): Logical endpoint name used as the metrics label.
        headers (Optional[Dict[str, str]]): Request headers.
        params (Optional[Dict[str, Any]]): Query parameters.

    Returns:
        requests.Response: Successful (2xx) response.

    Raises:
        AuthorizationError: On 401/403, without retrying.
        requests.RequestException: If the request fails after all retries.
    """
    retries = 0

    while True:
        res: Optional[requests.Response] = None
        try:
            start_time = time.time()
            res = requests.get(url, headers=headers, params=params, timeout=HTTP_TIMEOUT_SECONDS)
            latency = time.time() - start_time

            api_requests.labels(endpoint=endpoint, status_code=str(res.status_code)).inc()
            api_latency.labels(endpoint=endpoint).observe(latency)

            if res.status_code in (401, 403):
                raise AuthorizationError(res.status_code, f"{endpoint} rejected credentials")

            if should_retry(res, None) and retries < MAX_RETRIES:
                retries += 1
                logger.warning(
                    "request_retrying",
                    endpoint=endpoint,
                    status_code=res.status_code,
                    attempt=retries,
                )
                time.sleep(RETRY_DELAY * retries)
                continue

            res.raise_for_status()
            return res

        except requests.RequestException as err:
            logger.warning("request_failed", endpoint=endpoint, error=str(err))
            retries += 1
            if retries > MAX_RETRIES or not should_retry(res, err):
                raise
            time.sleep(RETRY_DELAY * retries)


def fetch_calendar(url: str) -> Tuple[str, int]:
    """
    Download an iCalendar feed.

    Some providers refuse requests without a browser User-Agent, so one is sent.

    Args:
        url (str): Feed URL.

    Returns:
        Tuple[str, int]: Document text and HTTP status code.
    """
    res = send_request(url, endpoint="calendar", headers=CALENDAR_HEADERS)
    text = res.content.decode("utf-8", errors="replace")
    logger.debug("calendar_fetched", status_code=res.status_code, size=len(text))
    return text, res.status_code
