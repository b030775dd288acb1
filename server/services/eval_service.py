from __future__ import annotations

import logging
import random
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from server.db.postgres import PostgresClient
from server.models.ragweld_config_model import EvalDatasetItem, EvalResult, EvalRun
from server.observability.metrics import EVAL_RUNS_TOTAL
from server.services.config_store import ConfigStore
from server.services.eval_synthesis import RandomSource, SynthesisParams, build_run, seed_dataset_entries, synthesize_result

logger = logging.getLogger(__name__)

DEFAULT_DATASET_ID = "default"


class EmptyDatasetError(LookupError):
    """Raised when a corpus has no dataset entries and nothing to seed them from."""

    def __init__(self, corpus_id: str):
        super().__init__(f"No eval_dataset entries found for corpus_id={corpus_id}")
        self.corpus_id = corpus_id


class LatestRunCache:
    """Latest run per corpus, shared across requests for the life of the process."""

    def __init__(self) -> None:
        self._runs: dict[str, EvalRun] = {}

    def get(self, corpus_id: str) -> EvalRun | None:
        return self._runs.get(corpus_id)

    def put(self, run: EvalRun) -> None:
        self._runs[run.corpus_id] = run

    def clear(self) -> None:
        self._runs.clear()


_LATEST_RUNS = LatestRunCache()


def get_latest_run_cache() -> LatestRunCache:
    return _LATEST_RUNS


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class _RunPlan:
    corpus_id: str
    dataset_id: str
    entries: list[EvalDatasetItem]
    corpus_paths: list[str]
    params: SynthesisParams
    seed: int
    rng: RandomSource
    config_snapshot: dict[str, Any]
    started_at: datetime


class EvalService:
    """Dataset seeding, synthetic run creation, persistence and caching."""

    def __init__(
        self,
        store: PostgresClient,
        config_store: ConfigStore,
        *,
        cache: LatestRunCache | None = None,
        clock: Callable[[], datetime] = _utcnow,
        rng_factory: Callable[[int], RandomSource] = random.Random,
    ):
        self.store = store
        self.config_store = config_store
        self.cache = cache if cache is not None else get_latest_run_cache()
        self.clock = clock
        self.rng_factory = rng_factory

    async def get_dataset(self, corpus_id: str) -> list[EvalDatasetItem]:
        """Return the corpus dataset, seeding it from chunk file paths on first use."""
        await self.store.require_corpus(corpus_id)
        entries = await self.store.list_dataset(corpus_id)
        if entries:
            return entries
        limit = self.config_store.get(corpus_id).evaluation.seed_dataset_size
        seeded = seed_dataset_entries(await self.store.list_file_paths(corpus_id, limit=limit), limit=limit)
        if not seeded:
            return []
        inserted = await self.store.insert_dataset_entries(corpus_id, seeded)
        logger.info("Seeded %d eval dataset entries for corpus %s", inserted, corpus_id)
        return await self.store.list_dataset(corpus_id)

    async def _plan(
        self,
        corpus_id: str,
        *,
        sample_size: int | None = None,
        seed: int | None = None,
        accuracy_bias: float | None = None,
        dataset_id: str | None = None,
    ) -> _RunPlan:
        dataset = await self.get_dataset(corpus_id)
        if not dataset:
            raise EmptyDatasetError(corpus_id)
        entries = dataset[: int(sample_size)] if sample_size else dataset

        cfg = self.config_store.get(corpus_id)
        run_seed = int(cfg.evaluation.seed if seed is None else seed)
        return _RunPlan(
            corpus_id=corpus_id,
            dataset_id=dataset_id or DEFAULT_DATASET_ID,
            entries=entries,
            corpus_paths=await self.store.list_file_paths(corpus_id),
            params=SynthesisParams.from_config(cfg.evaluation, accuracy_bias=accuracy_bias),
            seed=run_seed,
            rng=self.rng_factory(run_seed),
            config_snapshot=cfg.model_dump(mode="json"),
            started_at=self.clock(),
        )

    async def _finish(self, plan: _RunPlan, results: list[EvalResult]) -> EvalRun:
        run = build_run(
            corpus_id=plan.corpus_id,
            dataset_id=plan.dataset_id,
            results=results,
            config_snapshot=plan.config_snapshot,
            seed=plan.seed,
            params=plan.params,
            started_at=plan.started_at,
            completed_at=self.clock(),
        )
        await self.store.upsert_eval_run(run)
        self.cache.put(run)
        EVAL_RUNS_TOTAL.inc()
        logger.info(
            "Eval run %s: top1=%d/%d topk=%d/%d mrr=%.4f (seed=%d, bias=%.2f)",
            run.run_id,
            run.top1_hits,
            run.total,
            run.topk_hits,
            run.total,
            run.metrics.mrr,
            run.seed,
            run.accuracy_bias,
        )
        return run

    async def create_run(
        self,
        corpus_id: str,
        *,
        sample_size: int | None = None,
        seed: int | None = None,
        accuracy_bias: float | None = None,
        dataset_id: str | None = None,
    ) -> EvalRun:
        plan = await self._plan(
            corpus_id,
            sample_size=sample_size,
            seed=seed,
            accuracy_bias=accuracy_bias,
            dataset_id=dataset_id,
        )
        results = [synthesize_result(e, plan.corpus_paths, plan.rng, plan.params) for e in plan.entries]
        return await self._finish(plan, results)

    async def latest_run(self, corpus_id: str) -> EvalRun:
        """Cached run, else the latest persisted run, else a new run."""
        cached = self.cache.get(corpus_id)
        if cached is not None:
            return cached
        stored = await self.store.latest_eval_run(corpus_id)
        if stored is not None:
            self.cache.put(stored)
            return stored
        return await self.create_run(corpus_id)

    async def get_run(self, run_id: str) -> EvalRun | None:
        return await self.store.get_eval_run(run_id)

    async def iter_run_events(self, corpus_id: str, *, sample_limit: int | None = None) -> AsyncIterator[dict[str, Any]]:
        """Create a run while emitting `log`, `progress`, `complete` and `error` events."""
        try:
            plan = await self._plan(corpus_id, sample_size=sample_limit)
            total = len(plan.entries)
            yield {
                "type": "log",
                "message": (
                    f"Starting synthetic eval: corpus_id={corpus_id}, seed={plan.seed}, "
                    f"accuracy_bias={plan.params.accuracy_bias}, final_k={plan.params.top_k}, "
                    f"sample_limit={sample_limit or 'all'}"
                ),
            }
            yield {"type": "log", "message": f"Loaded {total} eval_dataset entries"}

            results: list[EvalResult] = []
            for idx, entry in enumerate(plan.entries, start=1):
                results.append(synthesize_result(entry, plan.corpus_paths, plan.rng, plan.params))
                yield {"type": "log", "message": f"[{idx}/{total}] {entry.question}"}
                yield {
                    "type": "progress",
                    "percent": (idx / total) * 100.0 if total else 100.0,
                    "message": f"Question {idx}/{total}",
                }

            run = await self._finish(plan, results)
            yield {"type": "log", "message": f"Results saved: {run.run_id}"}
            yield {
                "type": "log",
                "message": (
                    f"Complete: top1={run.top1_hits}/{run.total}, topk={run.topk_hits}/{run.total}, "
                    f"mrr={run.metrics.mrr:.4f}, duration={run.duration_secs:.2f}s"
                ),
            }
            yield {"type": "complete", "run_id": run.run_id}
        except Exception as e:
            logger.exception("Eval stream failed for corpus %s", corpus_id)
            yield {"type": "error", "message": str(e)}
