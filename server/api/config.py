from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError

from server.api.deps import get_config_store
from server.models.ragweld_config_model import CorpusScope, RagweldConfig
from server.services.config_store import ConfigStore, UnknownConfigSectionError

router = APIRouter(tags=["config"])


@router.get("/config", response_model=RagweldConfig)
async def get_config(
    scope: CorpusScope = Depends(),
    store: ConfigStore = Depends(get_config_store),
) -> RagweldConfig:
    return store.get(scope.resolved_corpus_id)


@router.put("/config", response_model=RagweldConfig)
async def update_config(
    config: RagweldConfig,
    scope: CorpusScope = Depends(),
    store: ConfigStore = Depends(get_config_store),
) -> RagweldConfig:
    return store.replace(scope.resolved_corpus_id, config)


@router.patch("/config/{section}", response_model=RagweldConfig)
async def update_config_section(
    section: str,
    updates: dict[str, Any],
    scope: CorpusScope = Depends(),
    store: ConfigStore = Depends(get_config_store),
) -> RagweldConfig:
    """Deep-merge `updates` into one section; nested objects merge, arrays replace."""
    try:
        return store.patch_section(scope.resolved_corpus_id, section, updates)
    except UnknownConfigSectionError as e:
        raise HTTPException(status_code=404, detail=f"Unknown config section: {section}") from e
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e


@router.post("/config/reset", response_model=RagweldConfig)
async def reset_config(
    scope: CorpusScope = Depends(),
    store: ConfigStore = Depends(get_config_store),
) -> RagweldConfig:
    return store.reset(scope.resolved_corpus_id)
