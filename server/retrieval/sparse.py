from __future__ import annotations

from server.db.postgres import PostgresClient
from server.models.ragweld_config_model import ChunkMatch
from server.observability.metrics import SEARCH_RESULTS_COUNT, SPARSE_LEG_LATENCY_SECONDS, timed
from server.retrieval.bounds import SEARCH_TOP_K_DEFAULT, SEARCH_TOP_K_MAX, SEARCH_TOP_K_MIN, clamp_int


def clamp_top_k(top_k: int | None, default: int = SEARCH_TOP_K_DEFAULT) -> int:
    return clamp_int(top_k if top_k is not None else default, SEARCH_TOP_K_MIN, SEARCH_TOP_K_MAX, default)


class SparseRetriever:
    """Full-text search over one corpus.

    Scoring is Postgres cover density ranking (`ts_rank_cd`); ties keep
    chunk insertion order. An empty query is not an error and matches nothing.
    """

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    async def search(
        self,
        corpus_id: str,
        query: str,
        top_k: int | None = None,
        *,
        ts_config: str = "english",
    ) -> list[ChunkMatch]:
        q = (query or "").strip()
        if not q:
            return []
        k = clamp_top_k(top_k)

        with timed(SPARSE_LEG_LATENCY_SECONDS):
            matches = await self.postgres.fts_search(corpus_id, q, k, ts_config=ts_config)

        # Stable sort keeps store order (insertion order) among equal scores.
        ranked = sorted(matches, key=lambda m: m.score, reverse=True)[:k]
        SEARCH_RESULTS_COUNT.observe(len(ranked))
        return ranked
