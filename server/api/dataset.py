from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from server.api.deps import corpus_not_found, get_eval_service, require_corpus_id
from server.db.postgres import CorpusNotFoundError
from server.models.ragweld_config_model import EvalDatasetItem
from server.services.eval_service import EvalService

router = APIRouter(tags=["dataset"])


async def existing_corpus_id(
    corpus_id: str = Depends(require_corpus_id),
    service: EvalService = Depends(get_eval_service),
) -> str:
    try:
        await service.store.require_corpus(corpus_id)
    except CorpusNotFoundError as e:
        raise corpus_not_found(e.corpus_id) from e
    return corpus_id


def _entry_not_found(entry_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail={"error": "Entry not found", "entry_id": entry_id})


def _require_question(entry: EvalDatasetItem) -> None:
    if not entry.question.strip():
        raise HTTPException(status_code=422, detail="question is required")


@router.get("/dataset", response_model=list[EvalDatasetItem])
async def list_dataset(
    corpus_id: str = Depends(existing_corpus_id),
    service: EvalService = Depends(get_eval_service),
) -> list[EvalDatasetItem]:
    """Dataset entries, seeded from the corpus' chunk paths on first read."""
    return await service.get_dataset(corpus_id)


@router.post("/dataset", response_model=EvalDatasetItem)
async def add_dataset_entry(
    entry: EvalDatasetItem,
    corpus_id: str = Depends(existing_corpus_id),
    service: EvalService = Depends(get_eval_service),
) -> EvalDatasetItem:
    _require_question(entry)
    inserted = await service.store.insert_dataset_entries(corpus_id, [entry])
    if not inserted:
        raise HTTPException(status_code=409, detail=f"entry_id={entry.entry_id} already exists")
    return entry


@router.put("/dataset/{entry_id}", response_model=EvalDatasetItem)
async def update_dataset_entry(
    entry_id: str,
    entry: EvalDatasetItem,
    corpus_id: str = Depends(existing_corpus_id),
    service: EvalService = Depends(get_eval_service),
) -> EvalDatasetItem:
    _require_question(entry)
    updated = entry.model_copy(update={"entry_id": entry_id})
    if not await service.store.update_dataset_entry(corpus_id, updated):
        raise _entry_not_found(entry_id)
    return updated


@router.delete("/dataset/{entry_id}")
async def delete_dataset_entry(
    entry_id: str,
    corpus_id: str = Depends(existing_corpus_id),
    service: EvalService = Depends(get_eval_service),
) -> dict[str, Any]:
    if not await service.store.delete_dataset_entry(corpus_id, entry_id):
        raise _entry_not_found(entry_id)
    return {"ok": True, "deleted": 1}
