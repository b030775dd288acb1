from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable

from server.db.postgres import PostgresClient
from server.models.ragweld_config_model import Entity, GraphNeighborsResponse, GraphStats, Relationship
from server.observability.metrics import GRAPH_NEIGHBORS_LATENCY_SECONDS, timed
from server.retrieval.bounds import (
    ENTITY_LIMIT_DEFAULT,
    ENTITY_LIMIT_MAX,
    ENTITY_LIMIT_MIN,
    NEIGHBOR_ENTITY_CAP,
    NEIGHBOR_HOPS_DEFAULT,
    NEIGHBOR_HOPS_MAX,
    NEIGHBOR_HOPS_MIN,
    NEIGHBOR_LIMIT_DEFAULT,
    NEIGHBOR_LIMIT_MAX,
    NEIGHBOR_LIMIT_MIN,
    clamp_int,
)

logger = logging.getLogger(__name__)


def rank_by_degree(scored: Iterable[tuple[Entity, int]], limit: int) -> list[Entity]:
    """Order entities by degree (desc), then name, then id; annotate `properties.degree`."""
    ordered = sorted(scored, key=lambda pair: (-int(pair[1]), pair[0].name, pair[0].entity_id))
    out: list[Entity] = []
    for entity, degree in ordered[: max(0, int(limit))]:
        out.append(entity.model_copy(update={"properties": {**entity.properties, "degree": int(degree)}}))
    return out


def _undirected_adjacency(edges: Iterable[Relationship]) -> dict[str, list[str]]:
    adjacency: dict[str, list[str]] = defaultdict(list)
    for edge in edges:
        adjacency[edge.source_id].append(edge.target_id)
        adjacency[edge.target_id].append(edge.source_id)
    # Deterministic expansion order regardless of store row order.
    return {node: sorted(set(others)) for node, others in adjacency.items()}


class GraphTraversal:
    """Degree ranking and bounded neighborhood walks over the corpus graph."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    async def ranked_entities(
        self,
        corpus_id: str,
        query: str | None = None,
        limit: int | None = None,
    ) -> list[Entity]:
        lim = clamp_int(
            limit if limit is not None else ENTITY_LIMIT_DEFAULT,
            ENTITY_LIMIT_MIN,
            ENTITY_LIMIT_MAX,
            ENTITY_LIMIT_DEFAULT,
        )
        q = (query or "").strip() or None
        scored = await self.postgres.list_entities_with_degree(corpus_id, q, lim)
        return rank_by_degree(scored, lim)

    async def neighbors(
        self,
        corpus_id: str,
        entity_id: str,
        max_hops: int | None = None,
        limit: int | None = None,
    ) -> GraphNeighborsResponse | None:
        """Walk undirected edges out from `entity_id`.

        Returns None when the seed entity does not exist. The returned
        relationships only connect entities that are also returned.
        """
        hops = clamp_int(
            max_hops if max_hops is not None else NEIGHBOR_HOPS_DEFAULT,
            NEIGHBOR_HOPS_MIN,
            NEIGHBOR_HOPS_MAX,
            NEIGHBOR_HOPS_DEFAULT,
        )
        edge_limit = clamp_int(
            limit if limit is not None else NEIGHBOR_LIMIT_DEFAULT,
            NEIGHBOR_LIMIT_MIN,
            NEIGHBOR_LIMIT_MAX,
            NEIGHBOR_LIMIT_DEFAULT,
        )

        with timed(GRAPH_NEIGHBORS_LATENCY_SECONDS):
            seed = await self.postgres.get_entity(corpus_id, entity_id)
            if seed is None:
                return None

            discovered = await self._walk(corpus_id, entity_id, hops)
            entity_ids = discovered[:NEIGHBOR_ENTITY_CAP]
            entities = await self.postgres.get_entities(corpus_id, entity_ids)
            if not any(e.entity_id == entity_id for e in entities):
                entities = [seed, *entities]

            kept = {e.entity_id for e in entities}
            edges = await self.postgres.edges_among(corpus_id, sorted(kept), edge_limit)
            relationships = [r for r in edges if r.source_id in kept and r.target_id in kept][:edge_limit]

        logger.debug(
            "neighbors corpus=%s seed=%s hops=%d entities=%d relationships=%d",
            corpus_id,
            entity_id,
            hops,
            len(entities),
            len(relationships),
        )
        return GraphNeighborsResponse(entities=entities, relationships=relationships)

    async def _walk(self, corpus_id: str, seed_id: str, hops: int) -> list[str]:
        """Breadth-first discovery order of node ids reachable within `hops`.

        Every branch carries the path it took and never revisits a node on
        that path. A node first reached at a shallower or equal depth has
        already been expanded with at least as much remaining budget, so
        later branches reaching it again are pruned.
        """
        reached: dict[str, int] = {seed_id: 0}
        order: list[str] = [seed_id]
        frontier: list[tuple[str, tuple[str, ...]]] = [(seed_id, (seed_id,))]

        for depth in range(1, hops + 1):
            if not frontier:
                break
            edges = await self.postgres.edges_touching(corpus_id, sorted({node for node, _ in frontier}))
            adjacency = _undirected_adjacency(edges)

            next_frontier: list[tuple[str, tuple[str, ...]]] = []
            for node, path in frontier:
                for other in adjacency.get(node, ()):
                    if other in path:
                        continue
                    seen_at = reached.get(other)
                    if seen_at is not None and seen_at <= depth:
                        continue
                    reached[other] = depth
                    order.append(other)
                    next_frontier.append((other, (*path, other)))
            frontier = next_frontier

        return order

    async def stats(self, corpus_id: str) -> GraphStats:
        return await self.postgres.graph_stats(corpus_id)
