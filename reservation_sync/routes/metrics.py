"""
Prometheus metrics endpoint.

Example:
    GET /metrics

    Response:
        # HELP reservation_sync_runs_total Completed sync runs by source kind and final status
        # TYPE reservation_sync_runs_total counter
        reservation_sync_runs_total{kind="feed",status="success"} 12.0
        ...
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter()


@router.get("/metrics", response_class=Response)
async def metrics() -> Any:
    """Return all registered metrics in the Prometheus text exposition format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
