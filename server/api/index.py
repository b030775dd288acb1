from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from server.api.corpora import READ_ONLY_ERROR
from server.api.deps import get_corpus_store, get_settings
from server.config import ServerSettings
from server.db.postgres import PostgresClient
from server.models.ragweld_config_model import CorpusSnapshot, IndexResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["index"])


@router.post("/index", response_model=IndexResponse)
async def reindex(
    snapshot: CorpusSnapshot,
    store: PostgresClient = Depends(get_corpus_store),
    settings: ServerSettings = Depends(get_settings),
) -> IndexResponse:
    """Replace one corpus' chunks and graph with the posted snapshot."""
    corpus_id = snapshot.corpus.corpus_id
    if settings.read_only:
        return IndexResponse(ok=False, corpus_id=corpus_id, error=READ_ONLY_ERROR)
    try:
        counts = await store.reindex_corpus(snapshot)
    except Exception as e:
        logger.exception("reindex failed for corpus %s", corpus_id)
        raise HTTPException(status_code=500, detail=str(e)) from e
    return IndexResponse(ok=True, corpus_id=corpus_id, **counts)
