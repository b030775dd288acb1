from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query

from server.api.deps import get_corpus_store
from server.db.postgres import PostgresClient
from server.models.ragweld_config_model import CorpusScope, McpSearchHit, McpSearchResponse
from server.retrieval.sparse import SparseRetriever

logger = logging.getLogger(__name__)

router = APIRouter(tags=["mcp"])

DEFAULT_MCP_CORPUS_ID = "faxbot"


@router.get("/mcp/rag_search", response_model=McpSearchResponse)
async def rag_search(
    q: str = Query(default="", description="Search query"),
    top_k: int = Query(default=10, description="Number of hits (clamped to 1-50)"),
    scope: CorpusScope = Depends(),
    store: PostgresClient = Depends(get_corpus_store),
) -> McpSearchResponse:
    """Tool-style search: errors are reported inline, never as HTTP failures."""
    query = q.strip()
    if not query:
        return McpSearchResponse(results=[], error="Query must not be empty")

    corpus_id = scope.resolved_corpus_id or DEFAULT_MCP_CORPUS_ID
    try:
        matches = await SparseRetriever(store).search(corpus_id, query, top_k)
    except Exception as e:
        logger.warning("mcp rag_search failed for corpus %s: %s", corpus_id, e)
        return McpSearchResponse(results=[], error=str(e))

    return McpSearchResponse(
        results=[
            McpSearchHit(
                file_path=m.file_path,
                start_line=m.start_line,
                end_line=m.end_line,
                rerank_score=m.score,
            )
            for m in matches
        ],
        error=None,
    )
