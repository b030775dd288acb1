from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from server.api.deps import get_config_store, get_corpus_store
from server.db.postgres import PostgresClient
from server.models.ragweld_config_model import Entity, GraphNeighborsResponse, GraphStats
from server.retrieval.graph import GraphTraversal
from server.services.config_store import ConfigStore

router = APIRouter(tags=["graph"])


@router.get("/graph/{corpus_id}/entities", response_model=list[Entity])
async def list_entities(
    corpus_id: str,
    q: str | None = None,
    limit: int | None = Query(default=None, description="Max entities (clamped to 1-500)"),
    store: PostgresClient = Depends(get_corpus_store),
    config_store: ConfigStore = Depends(get_config_store),
) -> list[Entity]:
    """Entities ranked by degree (ties by name, then id)."""
    cfg = config_store.peek(corpus_id).graph_search
    if not cfg.enabled:
        return []
    return await GraphTraversal(store).ranked_entities(
        corpus_id, q, limit if limit is not None else cfg.entity_limit
    )


@router.get("/graph/{corpus_id}/entity/{entity_id}/neighbors", response_model=GraphNeighborsResponse)
async def get_entity_neighbors(
    corpus_id: str,
    entity_id: str,
    max_hops: int | None = Query(default=None, description="Walk depth (clamped to 1-5)"),
    limit: int | None = Query(default=None, description="Max relationships (clamped to 10-2000)"),
    store: PostgresClient = Depends(get_corpus_store),
    config_store: ConfigStore = Depends(get_config_store),
) -> GraphNeighborsResponse:
    cfg = config_store.peek(corpus_id).graph_search
    if not cfg.enabled:
        return GraphNeighborsResponse(entities=[], relationships=[])
    result = await GraphTraversal(store).neighbors(
        corpus_id,
        entity_id,
        max_hops=max_hops if max_hops is not None else cfg.max_hops,
        limit=limit if limit is not None else cfg.neighbor_limit,
    )
    if result is None:
        raise HTTPException(status_code=404, detail={"error": "Entity not found", "entity_id": entity_id})
    return result


@router.get("/graph/{corpus_id}/stats", response_model=GraphStats)
async def get_graph_stats(corpus_id: str, store: PostgresClient = Depends(get_corpus_store)) -> GraphStats:
    return await GraphTraversal(store).stats(corpus_id)


# Community detection is not computed; these keep the graph UI's calls answerable.
@router.get("/graph/{corpus_id}/communities")
async def list_communities(corpus_id: str) -> list[dict[str, Any]]:
    return []


@router.get("/graph/{corpus_id}/community/{community_id}/members", response_model=list[Entity])
async def get_community_members(corpus_id: str, community_id: str) -> list[Entity]:
    return []


@router.get("/graph/{corpus_id}/community/{community_id}/subgraph", response_model=GraphNeighborsResponse)
async def get_community_subgraph(corpus_id: str, community_id: str) -> GraphNeighborsResponse:
    return GraphNeighborsResponse(entities=[], relationships=[])
