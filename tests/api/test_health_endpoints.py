"""API tests for health and metrics endpoints."""

import pytest
from httpx import AsyncClient

from tests.fakes import FakeCorpusStore


@pytest.mark.asyncio
async def test_health_ok(client: AsyncClient) -> None:
    res = await client.get("/api/health")
    assert res.status_code == 200
    body = res.json()
    assert body["ok"] is True
    assert body["status"] == "healthy"
    assert body["services"]["store"]["status"] == "up"
    assert body["services"]["graph"]["status"] == "up"
    assert "ts" in body


@pytest.mark.asyncio
async def test_health_reports_store_down(client: AsyncClient, store: FakeCorpusStore) -> None:
    store.ping_error = ConnectionError("connection refused")
    res = await client.get("/api/health")
    assert res.status_code == 200
    body = res.json()
    assert body["ok"] is False
    assert body["status"] == "unhealthy"
    assert body["services"]["store"] == {"status": "down", "error": "connection refused"}


@pytest.mark.asyncio
async def test_metrics_endpoint_exposes_prometheus_text(client: AsyncClient) -> None:
    await client.post("/api/search", json={"query": "fax", "corpus_id": "faxbot"})

    res = await client.get("/metrics")
    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/plain")
    assert "ragweld_search_requests_total" in res.text

    alias = await client.get("/api/metrics")
    assert alias.status_code == 200
