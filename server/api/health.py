from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from starlette.responses import Response

from server.api.deps import get_corpus_store
from server.db.postgres import PostgresClient
from server.models.ragweld_config_model import HealthServiceStatus, HealthStatus
from server.observability.metrics import render_latest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthStatus)
async def health_check(store: PostgresClient = Depends(get_corpus_store)) -> HealthStatus:
    # The graph lives in the same database, so one ping covers both services.
    try:
        await store.ping()
    except Exception as e:
        logger.warning("health ping failed: %s", e)
        down = HealthServiceStatus(status="down", error=str(e))
        return HealthStatus(ok=False, status="unhealthy", services={"store": down, "graph": down})
    up = HealthServiceStatus(status="up")
    return HealthStatus(ok=True, status="healthy", services={"store": up, "graph": up})


@router.get("/metrics")
async def prometheus_metrics() -> Response:
    # Alias for Prometheus scrape; /metrics (no /api prefix) is preferred.
    body, content_type = render_latest()
    return Response(content=body, media_type=content_type)
