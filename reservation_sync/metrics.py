"""
Prometheus metrics for monitoring sync runs, extraction, matching and API calls.

This module defines all Prometheus metrics used throughout the application.
Metrics are exposed via the /metrics endpoint for scraping by Prometheus.

Metric Types:
    - Counter: Cumulative metrics that only increase (e.g., total API requests)
    - Histogram: Observations bucketed by value (e.g., request latency)
    - Gauge: Point-in-time value that can go up or down (e.g., active connections)

Example:
    >>> from reservation_sync.metrics import poll_duration, records_synced
    >>> with poll_duration.labels(source_id="feed:7", entity_type="calendar").time():
    ...     rows = fetch_calendar(feed)
    ...     records_synced.labels(source_id="feed:7", entity_type="calendar").inc(len(rows))
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# =============================================================================
# Poll Metrics
# =============================================================================

poll_total = Counter(
    "reservation_sync_polls_total",
    "Total number of polling operations (success and failure)",
    ["source_id", "entity_type", "status"],
)
"""
Counter for total polling operations.

Labels:
    source_id: Lock key of the source being polled (mailbox:<id> or feed:<id>)
    entity_type: Type of entity being polled (messages, calendar)
    status: success or failure
"""

poll_duration = Histogram(
    "reservation_sync_poll_duration_seconds",
    "Duration of polling operations in seconds",
    ["source_id", "entity_type"],
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, float("inf")),
)
"""
Histogram for polling operation duration.

Buckets: 0.5s, 1s, 2.5s, 5s, 10s, 30s, 60s, 120s, 300s, +Inf
"""

records_synced = Counter(
    "reservation_sync_records_synced_total",
    "Total number of records fetched from external sources",
    ["source_id", "entity_type"],
)

# =============================================================================
# API Metrics
# =============================================================================

api_requests = Counter(
    "reservation_sync_api_requests_total",
    "Total external API requests made",
    ["endpoint", "status_code"],
)
"""
Counter for outbound HTTP requests.

Labels:
    endpoint: Logical endpoint name (e.g., "gmail.messages", "calendar")
    status_code: HTTP status code (e.g., "200", "401", "429")
"""

api_latency = Histogram(
    "reservation_sync_api_latency_seconds",
    "External API request latency in seconds",
    ["endpoint"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float("inf")),
)

# =============================================================================
# Pipeline Metrics
# =============================================================================

extraction_outcomes = Counter(
    "reservation_sync_extraction_outcomes_total",
    "Email extraction attempts by status and rejection reason",
    ["status", "reason"],
)
"""
Counter for extraction outcomes.

Labels:
    status: parsed, rejected, skipped or failed
    reason: rejection reason code, or "none" for parsed messages
"""

match_outcomes = Counter(
    "reservation_sync_match_outcomes_total",
    "Reconciliation decisions by outcome",
    ["outcome"],
)
"""
Counter for matcher decisions.

Labels:
    outcome: enriched, linked, unmatched, ambiguous, conflict, duplicate, manual_override
"""

sync_runs = Counter(
    "reservation_sync_runs_total",
    "Completed sync runs by source kind and final status",
    ["kind", "status"],
)

sync_rejected_in_progress = Counter(
    "reservation_sync_rejected_in_progress_total",
    "Sync requests rejected because a run was already in flight",
    ["kind"],
)

# =============================================================================
# System Metrics
# =============================================================================

active_connections = Gauge(
    "reservation_sync_active_connections",
    "Number of active mailbox connections and calendar feeds",
)

# =============================================================================
# Token Metrics
# =============================================================================

token_cache_hits = Counter(
    "reservation_sync_token_cache_hits_total",
    "Total number of token cache hits",
)
"""Counter for token cache hits (cache held a token outside the refresh margin)."""

token_cache_misses = Counter(
    "reservation_sync_token_cache_misses_total",
    "Total number of token cache misses",
)

token_refreshes = Counter(
    "reservation_sync_token_refreshes_total",
    "Total number of token refresh operations",
    ["connection_id", "result"],
)
"""
Counter for token refresh operations.

Labels:
    connection_id: Mailbox connection ID
    result: success, needs_reconnect or error
"""
