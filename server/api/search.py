from __future__ import annotations

import logging
import time

from fastapi import APIRouter, Depends, HTTPException

from server.api.deps import corpus_not_found, get_config_store, get_corpus_store
from server.db.postgres import PostgresClient
from server.models.ragweld_config_model import ChunkMatch, SearchRequest, SearchResponse
from server.observability.metrics import SEARCH_REQUESTS_TOTAL
from server.retrieval.sparse import SparseRetriever, clamp_top_k
from server.services.config_store import ConfigStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["search"])


@router.post("/search", response_model=SearchResponse)
async def search(
    request: SearchRequest,
    store: PostgresClient = Depends(get_corpus_store),
    config_store: ConfigStore = Depends(get_config_store),
) -> SearchResponse:
    SEARCH_REQUESTS_TOTAL.inc()
    corpus_id = request.corpus_id.strip()
    if not corpus_id:
        raise HTTPException(status_code=422, detail="Missing corpus_id (or legacy repo_id)")

    # Validate corpus exists (prevents auto-creating config scopes on search)
    if await store.get_corpus(corpus_id) is None:
        raise corpus_not_found(corpus_id)

    cfg = config_store.get(corpus_id)
    top_k = clamp_top_k(request.top_k, default=cfg.sparse_search.top_k)

    t0 = time.perf_counter()
    matches: list[ChunkMatch] = []
    if cfg.sparse_search.enabled:
        try:
            matches = await SparseRetriever(store).search(
                corpus_id, request.query, top_k, ts_config=cfg.sparse_search.ts_config
            )
        except Exception as e:
            logger.exception("sparse search failed for corpus %s", corpus_id)
            raise HTTPException(status_code=500, detail=str(e)) from e
    latency_ms = (time.perf_counter() - t0) * 1000.0

    return SearchResponse(
        query=request.query,
        matches=matches,
        fusion_method="sparse",
        reranker_mode="none",
        latency_ms=latency_ms,
        debug={
            "corpus_id": corpus_id,
            "top_k": top_k,
            "sparse_enabled": cfg.sparse_search.enabled,
            "results": len(matches),
        },
    )
