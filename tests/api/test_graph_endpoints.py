"""API tests for graph endpoints."""

import pytest
from httpx import AsyncClient

from server.services.config_store import ConfigStore


@pytest.mark.asyncio
async def test_entities_ranked_by_degree(client: AsyncClient) -> None:
    res = await client.get("/api/graph/faxbot/entities")
    assert res.status_code == 200
    body = res.json()
    assert [e["entity_id"] for e in body][:2] == ["module:main", "module:phaxio"]
    assert body[0]["properties"]["degree"] == 2
    assert body[-1]["properties"]["degree"] == 0


@pytest.mark.asyncio
async def test_entities_filter_and_limit(client: AsyncClient) -> None:
    res = await client.get("/api/graph/faxbot/entities", params={"q": "phaxio"})
    assert [e["entity_id"] for e in res.json()] == ["module:phaxio"]

    limited = await client.get("/api/graph/faxbot/entities", params={"limit": 1})
    assert len(limited.json()) == 1


@pytest.mark.asyncio
async def test_neighbors_returns_closed_subgraph(client: AsyncClient) -> None:
    res = await client.get("/api/graph/faxbot/entity/module:phaxio/neighbors", params={"max_hops": 1})
    assert res.status_code == 200
    body = res.json()
    ids = {e["entity_id"] for e in body["entities"]}
    assert ids == {"module:phaxio", "module:main", "concept:webhook"}
    for rel in body["relationships"]:
        assert rel["source_id"] in ids
        assert rel["target_id"] in ids
    assert len(body["relationships"]) == 2


@pytest.mark.asyncio
async def test_neighbors_two_hops_reaches_config(client: AsyncClient) -> None:
    res = await client.get("/api/graph/faxbot/entity/concept:webhook/neighbors", params={"max_hops": 2})
    ids = {e["entity_id"] for e in res.json()["entities"]}
    assert ids == {"concept:webhook", "module:phaxio", "module:main"}

    three = await client.get("/api/graph/faxbot/entity/concept:webhook/neighbors", params={"max_hops": 3})
    assert "module:config" in {e["entity_id"] for e in three.json()["entities"]}


@pytest.mark.asyncio
async def test_neighbors_missing_entity_is_404(client: AsyncClient) -> None:
    res = await client.get("/api/graph/faxbot/entity/nope/neighbors")
    assert res.status_code == 404
    assert res.json()["detail"] == {"error": "Entity not found", "entity_id": "nope"}


@pytest.mark.asyncio
async def test_graph_disabled_returns_empty(client: AsyncClient, config_store: ConfigStore) -> None:
    config_store.patch_section("faxbot", "graph_search", {"enabled": False})

    entities = await client.get("/api/graph/faxbot/entities")
    assert entities.json() == []

    neighbors = await client.get("/api/graph/faxbot/entity/module:main/neighbors")
    assert neighbors.json() == {"entities": [], "relationships": []}


@pytest.mark.asyncio
async def test_stats(client: AsyncClient) -> None:
    res = await client.get("/api/graph/faxbot/stats")
    assert res.status_code == 200
    body = res.json()
    assert body["corpus_id"] == "faxbot"
    assert body["total_entities"] == 5
    assert body["total_relationships"] == 3
    assert body["total_communities"] == 0


@pytest.mark.asyncio
async def test_community_endpoints_are_empty(client: AsyncClient) -> None:
    assert (await client.get("/api/graph/faxbot/communities")).json() == []
    assert (await client.get("/api/graph/faxbot/community/c1/members")).json() == []
    subgraph = await client.get("/api/graph/faxbot/community/c1/subgraph")
    assert subgraph.json() == {"entities": [], "relationships": []}


@pytest.mark.asyncio
async def test_unknown_corpus_does_not_create_config_scope(client: AsyncClient, config_store: ConfigStore) -> None:
    entities = await client.get("/api/graph/ghost/entities")
    assert entities.status_code == 200
    assert entities.json() == []

    neighbors = await client.get("/api/graph/ghost/entity/anything/neighbors")
    assert neighbors.status_code == 404

    assert config_store.has_scope("ghost") is False
