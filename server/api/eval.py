from __future__ import annotations

import json
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, Query
from starlette.responses import StreamingResponse

from server.api.deps import corpus_not_found, get_eval_service, require_corpus_id
from server.db.postgres import CorpusNotFoundError
from server.models.ragweld_config_model import (
    EvalAnalyzeComparisonRequest,
    EvalAnalyzeComparisonResponse,
    EvalRequest,
    EvalRun,
    EvalRunsResponse,
    EvalRunSummary,
)
from server.services.eval_service import EmptyDatasetError, EvalService
from server.services.eval_synthesis import compare_runs, summarize_run

router = APIRouter(tags=["eval"])


def _run_not_found(run_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail={"error": "Run not found", "run_id": run_id})


async def _load_run(service: EvalService, run_id: str) -> EvalRun:
    run = await service.get_run(run_id)
    if run is None:
        raise _run_not_found(run_id)
    return run


@router.post("/eval/run", response_model=EvalRun)
async def run_evaluation(request: EvalRequest, service: EvalService = Depends(get_eval_service)) -> EvalRun:
    try:
        return await service.create_run(
            request.corpus_id,
            sample_size=request.sample_size,
            seed=request.seed,
            accuracy_bias=request.accuracy_bias,
            dataset_id=request.dataset_id,
        )
    except CorpusNotFoundError as e:
        raise corpus_not_found(e.corpus_id) from e
    except EmptyDatasetError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@router.get("/eval/runs", response_model=EvalRunsResponse)
async def list_eval_runs(
    corpus_id: str = Depends(require_corpus_id),
    limit: int = Query(default=20, ge=1, le=200),
    service: EvalService = Depends(get_eval_service),
) -> EvalRunsResponse:
    return EvalRunsResponse(ok=True, runs=await service.store.list_eval_runs(corpus_id, limit=limit))


@router.get("/eval/run/stream")
async def eval_run_stream(
    corpus_id: str = Depends(require_corpus_id),
    sample_limit: int | None = Query(default=None, ge=1, description="Optional sample size limit"),
    service: EvalService = Depends(get_eval_service),
) -> StreamingResponse:
    """Create a run and stream logs/progress via SSE.

    IMPORTANT: This MUST be declared before `/eval/run/{run_id}` or it will be
    shadowed by Starlette route matching (treating "stream" as a run_id).
    """

    async def generate() -> AsyncIterator[str]:
        async for event in service.iter_run_events(corpus_id, sample_limit=sample_limit):
            yield "data: " + json.dumps(event) + "\n\n"

    return StreamingResponse(
        generate(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.get("/eval/run/{run_id}", response_model=EvalRun)
async def get_eval_run(run_id: str, service: EvalService = Depends(get_eval_service)) -> EvalRun:
    return await _load_run(service, run_id)


@router.get("/eval/results", response_model=EvalRun)
async def eval_results(
    corpus_id: str = Depends(require_corpus_id),
    service: EvalService = Depends(get_eval_service),
) -> EvalRun:
    """Return the corpus' latest run, creating one only if none exists yet."""
    try:
        return await service.latest_run(corpus_id)
    except CorpusNotFoundError as e:
        raise corpus_not_found(e.corpus_id) from e
    except EmptyDatasetError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@router.get("/eval/results/{run_id}", response_model=EvalRun)
async def eval_results_by_run(run_id: str, service: EvalService = Depends(get_eval_service)) -> EvalRun:
    return await _load_run(service, run_id)


async def _resolve_summary(
    service: EvalService, summary: EvalRunSummary | None, run_id: str | None
) -> EvalRunSummary | None:
    if summary is not None:
        return summary
    if run_id:
        run = await service.get_run(run_id)
        if run is not None:
            return summarize_run(run)
    return None


@router.post("/eval/analyze_comparison", response_model=EvalAnalyzeComparisonResponse)
async def analyze_eval_comparison(
    payload: EvalAnalyzeComparisonRequest,
    service: EvalService = Depends(get_eval_service),
) -> EvalAnalyzeComparisonResponse:
    """Templated comparison report for the Eval drill-down UI."""
    current = await _resolve_summary(service, payload.current_run, payload.current_run_id)
    baseline = await _resolve_summary(service, payload.compare_run, payload.compare_run_id)
    if current is None or baseline is None:
        return EvalAnalyzeComparisonResponse(
            ok=False,
            error="Both runs are required (pass current_run/compare_run or their run ids).",
        )
    return compare_runs(current, baseline, payload.config_diffs)
