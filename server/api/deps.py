"""FastAPI dependencies shared by the routers.

Tests swap any of these out through `app.dependency_overrides`.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import Depends, HTTPException

from server.config import ServerSettings, load_settings
from server.db.postgres import PostgresClient
from server.models.ragweld_config_model import CorpusScope
from server.services.config_store import ConfigStore, get_config_store as _config_store_singleton
from server.services.eval_service import EvalService

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_settings() -> ServerSettings:
    return load_settings()


def get_config_store() -> ConfigStore:
    return _config_store_singleton()


async def get_corpus_store(settings: ServerSettings = Depends(get_settings)) -> PostgresClient:
    pg = PostgresClient(settings.database_url, max_pool_size=settings.db_pool_max_size)
    try:
        await pg.connect()
    except Exception as e:
        logger.exception("corpus store unavailable")
        raise HTTPException(status_code=500, detail=str(e)) from e
    return pg


def get_eval_service(
    store: PostgresClient = Depends(get_corpus_store),
    config_store: ConfigStore = Depends(get_config_store),
) -> EvalService:
    return EvalService(store, config_store)


def require_corpus_id(scope: CorpusScope = Depends()) -> str:
    corpus_id = scope.resolved_corpus_id
    if not corpus_id:
        raise HTTPException(status_code=422, detail="Missing corpus_id (or legacy repo_id)")
    return corpus_id


def corpus_not_found(corpus_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail={"error": "Corpus not found", "corpus_id": corpus_id})
