from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from server.api.deps import corpus_not_found, get_corpus_store, get_settings
from server.config import ServerSettings
from server.db.postgres import PostgresClient
from server.models.ragweld_config_model import Corpus

logger = logging.getLogger(__name__)

router = APIRouter(tags=["corpora"])

READ_ONLY_ERROR = "Corpus changes are disabled in the read-only demo"


@router.get("/corpora", response_model=list[Corpus])
async def list_corpora(store: PostgresClient = Depends(get_corpus_store)) -> list[Corpus]:
    try:
        rows = await store.list_corpora()
    except Exception as e:
        logger.exception("list corpora failed")
        raise HTTPException(status_code=500, detail=str(e)) from e
    return [Corpus.model_validate(r) for r in rows]


@router.get("/repos", response_model=list[Corpus])
async def list_repos(store: PostgresClient = Depends(get_corpus_store)) -> list[Corpus]:
    return await list_corpora(store)


@router.get("/corpus/{corpus_id}", response_model=Corpus)
async def get_corpus(corpus_id: str, store: PostgresClient = Depends(get_corpus_store)) -> Corpus:
    row = await store.get_corpus(corpus_id)
    if row is None:
        raise corpus_not_found(corpus_id)
    return Corpus.model_validate(row)


@router.delete("/corpus/{corpus_id}")
async def delete_corpus(
    corpus_id: str,
    store: PostgresClient = Depends(get_corpus_store),
    settings: ServerSettings = Depends(get_settings),
) -> dict[str, Any]:
    if settings.read_only:
        return {"ok": False, "error": READ_ONLY_ERROR}
    if not await store.delete_corpus(corpus_id):
        raise corpus_not_found(corpus_id)
    logger.info("deleted corpus %s", corpus_id)
    return {"ok": True, "corpus_id": corpus_id}
