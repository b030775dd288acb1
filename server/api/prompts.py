from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from server.api.deps import get_config_store
from server.models.ragweld_config_model import (
    CorpusScope,
    PromptMetadata,
    PromptsResponse,
    PromptUpdateRequest,
    PromptUpdateResponse,
)
from server.services.config_store import PROMPT_SLOTS, ConfigStore, UnknownPromptError

router = APIRouter(tags=["prompts"])

# Ruff B008: avoid function calls in argument defaults (FastAPI Depends()).
_CORPUS_SCOPE_DEP = Depends()
_CONFIG_STORE_DEP = Depends(get_config_store)


def _unknown_prompt(key: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Unknown prompt key: {key}")


@router.get("/prompts", response_model=PromptsResponse)
async def list_prompts(
    scope: CorpusScope = _CORPUS_SCOPE_DEP,
    store: ConfigStore = _CONFIG_STORE_DEP,
) -> PromptsResponse:
    corpus_id = scope.resolved_corpus_id
    return PromptsResponse(
        prompts=store.list_prompts(corpus_id),
        metadata={
            key: PromptMetadata(
                label=slot.label,
                category=slot.category,
                is_default=store.is_prompt_default(corpus_id, key),
            )
            for key, slot in PROMPT_SLOTS.items()
        },
    )


@router.put("/prompts/{prompt_key}", response_model=PromptUpdateResponse)
async def update_prompt(
    prompt_key: str,
    body: PromptUpdateRequest,
    scope: CorpusScope = _CORPUS_SCOPE_DEP,
    store: ConfigStore = _CONFIG_STORE_DEP,
) -> PromptUpdateResponse:
    key = (prompt_key or "").strip()
    if not (body.value or "").strip():
        raise HTTPException(status_code=422, detail="value is required")
    try:
        store.set_prompt(scope.resolved_corpus_id, key, body.value)
    except UnknownPromptError as e:
        raise _unknown_prompt(key) from e
    return PromptUpdateResponse(ok=True, prompt_key=key, message="Prompt updated")


@router.post("/prompts/reset/{prompt_key}", response_model=PromptUpdateResponse)
async def reset_prompt(
    prompt_key: str,
    scope: CorpusScope = _CORPUS_SCOPE_DEP,
    store: ConfigStore = _CONFIG_STORE_DEP,
) -> PromptUpdateResponse:
    key = (prompt_key or "").strip()
    try:
        store.reset_prompt(scope.resolved_corpus_id, key)
    except UnknownPromptError as e:
        raise _unknown_prompt(key) from e
    return PromptUpdateResponse(ok=True, prompt_key=key, message="Prompt reset")
