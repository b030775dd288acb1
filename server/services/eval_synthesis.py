"""Synthetic evaluation runs.

The hosted demo has no live retriever to benchmark, so eval results are
synthesized: each dataset entry gets a ranked list of corpus paths in which
the expected path is injected at rank 1 (probability ``accuracy_bias``),
at some rank from 2 to k inside the top-k window (probability
``rank_window_weight``), or not at all. All randomness comes from an
injected ``RandomSource`` so a run is reproducible from its seed.
"""

from __future__ import annotations

import hashlib
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import PurePosixPath
from typing import Any, Protocol

from server.models.ragweld_config_model import (
    EvalAnalyzeComparisonResponse,
    EvalConfigDiff,
    EvalDatasetItem,
    EvalDoc,
    EvalMetrics,
    EvalResult,
    EvalRun,
    EvalRunSummary,
    EvaluationConfig,
)

MAX_REPORT_LINES = 80


class RandomSource(Protocol):
    """The subset of `random.Random` the synthesizer draws from."""

    def random(self) -> float: ...

    def randint(self, a: int, b: int) -> int: ...

    def sample(self, population: Sequence[Any], k: int) -> list[Any]: ...

    def uniform(self, a: float, b: float) -> float: ...


@dataclass(frozen=True, slots=True)
class SynthesisParams:
    top_k: int = 10
    accuracy_bias: float = 0.72
    rank_window_weight: float = 0.2
    latency_min_ms: float = 40.0
    latency_max_ms: float = 180.0

    @classmethod
    def from_config(cls, cfg: EvaluationConfig, *, accuracy_bias: float | None = None) -> SynthesisParams:
        return cls(
            top_k=int(cfg.final_k),
            accuracy_bias=float(cfg.accuracy_bias if accuracy_bias is None else accuracy_bias),
            rank_window_weight=float(cfg.rank_window_weight),
            latency_min_ms=float(cfg.latency_min_ms),
            latency_max_ms=float(cfg.latency_max_ms),
        )


# ---------------------------------------------------------------------------
# Path matching and ranking metrics
# ---------------------------------------------------------------------------


def _normalize_path(p: str) -> str:
    return (p or "").replace("\\", "/").strip().lower()


def _path_matches(expected: str, actual: str) -> bool:
    e = _normalize_path(expected)
    a = _normalize_path(actual)
    if not e or not a:
        return False
    if a == e:
        return True
    if a.endswith(e):
        return True
    return e in a


def _is_relevant(path: str, expected: list[str]) -> bool:
    return any(_path_matches(exp, path) for exp in expected)


def _dedupe_preserve_order(items: Iterable[str]) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()
    for x in items:
        if x in seen:
            continue
        seen.add(x)
        out.append(x)
    return out


def _recall_at_k(expected: list[str], retrieved: list[str], k: int) -> float:
    if not expected:
        return 0.0
    top = retrieved[:k]
    matched = sum(1 for exp in expected if any(_path_matches(exp, r) for r in top))
    return float(matched) / float(len(expected))


def _precision_at_k(expected: list[str], retrieved: list[str], k: int) -> float:
    if k <= 0:
        return 0.0
    top = retrieved[:k]
    hits = sum(1 for r in top if _is_relevant(r, expected))
    return float(hits) / float(k)


def _ndcg_at_k(expected: list[str], retrieved: list[str], k: int) -> float:
    if k <= 0:
        return 0.0
    top = retrieved[:k]
    dcg = sum((1.0 if _is_relevant(r, expected) else 0.0) / math.log2(i + 2) for i, r in enumerate(top))
    ideal_hits = min(len(expected), k)
    if ideal_hits <= 0:
        return 0.0
    idcg = sum(1.0 / math.log2(i + 2) for i in range(ideal_hits))
    return float(dcg / idcg) if idcg > 0 else 0.0


def _reciprocal_rank(expected: list[str], retrieved: list[str]) -> float:
    for i, rp in enumerate(retrieved, start=1):
        if _is_relevant(rp, expected):
            return 1.0 / float(i)
    return 0.0


def _percentile(values: list[float], p: float) -> float:
    if not values:
        return 0.0
    xs = sorted(values)
    if len(xs) == 1:
        return float(xs[0])
    p = min(max(p, 0.0), 1.0)
    idx = int(math.ceil(p * (len(xs) - 1)))
    return float(xs[idx])


def _mean(values: list[float]) -> float:
    return float(sum(values) / len(values)) if values else 0.0


# ---------------------------------------------------------------------------
# Dataset seeding
# ---------------------------------------------------------------------------


def seed_entry_id(file_path: str) -> str:
    return "seed_" + hashlib.sha1(file_path.encode("utf-8")).hexdigest()[:12]


def seed_dataset_entries(file_paths: Iterable[str], limit: int = 25) -> list[EvalDatasetItem]:
    """One templated question per distinct chunk file path."""
    entries: list[EvalDatasetItem] = []
    for fp in _dedupe_preserve_order(p for p in file_paths if p):
        if len(entries) >= limit:
            break
        name = PurePosixPath(fp.replace("\\", "/")).name or fp
        entries.append(
            EvalDatasetItem(
                entry_id=seed_entry_id(fp),
                question=f"Which file contains {name}?",
                expected_paths=[fp],
                tags=["seeded"],
            )
        )
    return entries


# ---------------------------------------------------------------------------
# Synthesis
# ---------------------------------------------------------------------------


def synthesize_result(
    entry: EvalDatasetItem,
    corpus_paths: Sequence[str],
    rng: RandomSource,
    params: SynthesisParams,
) -> EvalResult:
    top_k = max(1, int(params.top_k))
    expected = list(entry.expected_paths or [])

    pool = sorted({p for p in corpus_paths if p and not _is_relevant(p, expected)})
    size = min(len(pool), top_k + rng.randint(0, top_k))
    picked: list[str] = list(rng.sample(pool, size))

    r = rng.random()
    if expected:
        if r < params.accuracy_bias:
            picked.insert(0, expected[0])
        elif r < params.accuracy_bias + params.rank_window_weight:
            # Rank 1 belongs to accuracy_bias alone; the window starts at rank 2.
            window = max(1, top_k - 1)
            picked.insert(min(len(picked), 1 + rng.randint(0, window - 1)), expected[0])

    retrieved = _dedupe_preserve_order(picked)[:top_k]
    latency_ms = max(0.0, float(rng.uniform(params.latency_min_ms, params.latency_max_ms)))

    return EvalResult(
        entry_id=entry.entry_id,
        question=entry.question,
        retrieved_paths=retrieved,
        expected_paths=expected,
        top1_hit=bool(retrieved) and _is_relevant(retrieved[0], expected),
        topk_hit=any(_is_relevant(rp, expected) for rp in retrieved),
        reciprocal_rank=_reciprocal_rank(expected, retrieved),
        recall=_recall_at_k(expected, retrieved, k=len(retrieved)),
        recall_at_5=_recall_at_k(expected, retrieved, k=5),
        recall_at_10=_recall_at_k(expected, retrieved, k=10),
        recall_at_20=_recall_at_k(expected, retrieved, k=20),
        precision_at_5=_precision_at_k(expected, retrieved, k=5),
        ndcg_at_10=_ndcg_at_k(expected, retrieved, k=10),
        latency_ms=latency_ms,
        docs=[EvalDoc(file_path=fp, score=1.0 / float(i + 1), source="sparse") for i, fp in enumerate(retrieved)],
    )


def aggregate_metrics(results: list[EvalResult]) -> EvalMetrics:
    latencies = [r.latency_ms for r in results]
    return EvalMetrics(
        mrr=_mean([r.reciprocal_rank for r in results]),
        recall_at_5=_mean([r.recall_at_5 for r in results]),
        recall_at_10=_mean([r.recall_at_10 for r in results]),
        recall_at_20=_mean([r.recall_at_20 for r in results]),
        precision_at_5=_mean([r.precision_at_5 for r in results]),
        ndcg_at_10=_mean([r.ndcg_at_10 for r in results]),
        latency_p50_ms=_percentile(latencies, 0.50),
        latency_p95_ms=_percentile(latencies, 0.95),
    )


def make_run_id(corpus_id: str, completed_at: datetime) -> str:
    return f"{corpus_id}__{completed_at.strftime('%Y%m%d_%H%M%S')}"


def build_run(
    *,
    corpus_id: str,
    dataset_id: str,
    results: list[EvalResult],
    config_snapshot: dict[str, Any],
    seed: int,
    params: SynthesisParams,
    started_at: datetime,
    completed_at: datetime,
) -> EvalRun:
    total = len(results)
    top1_hits = sum(1 for r in results if r.top1_hit)
    topk_hits = sum(1 for r in results if r.topk_hit)
    return EvalRun(
        run_id=make_run_id(corpus_id, completed_at),
        corpus_id=corpus_id,
        dataset_id=dataset_id,
        config_snapshot=config_snapshot,
        total=total,
        top1_hits=top1_hits,
        topk_hits=topk_hits,
        top1_accuracy=float(top1_hits / total) if total else 0.0,
        topk_accuracy=float(topk_hits / total) if total else 0.0,
        duration_secs=sum(r.latency_ms for r in results) / 1000.0,
        final_k=int(params.top_k),
        seed=int(seed),
        accuracy_bias=float(params.accuracy_bias),
        synthetic=True,
        metrics=aggregate_metrics(results),
        results=results,
        started_at=started_at,
        completed_at=completed_at,
    )


# ---------------------------------------------------------------------------
# Comparison report
# ---------------------------------------------------------------------------


def summarize_run(run: EvalRun) -> EvalRunSummary:
    return EvalRunSummary(
        run_id=run.run_id,
        top1_accuracy=run.top1_accuracy,
        topk_accuracy=run.topk_accuracy,
        mrr=run.metrics.mrr,
        total=run.total,
    )


_COMPARED_METRICS: tuple[tuple[str, str], ...] = (
    ("top1_accuracy", "Top-1 accuracy"),
    ("topk_accuracy", "Top-k accuracy"),
    ("mrr", "MRR"),
)


def _fmt_value(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:g}"
    return "unset" if value is None else str(value)


def compare_runs(
    current: EvalRunSummary,
    baseline: EvalRunSummary,
    config_diffs: Sequence[EvalConfigDiff] = (),
) -> EvalAnalyzeComparisonResponse:
    """Fixed-format markdown comparison of two runs (deltas in percentage points)."""
    deltas: dict[str, float] = {}
    regressions: list[str] = []
    for key, _label in _COMPARED_METRICS:
        delta = round((float(getattr(current, key)) - float(getattr(baseline, key))) * 100.0, 2)
        deltas[key] = delta
        if delta < 0:
            regressions.append(key)

    lines = [
        f"## Eval comparison: {current.run_id} vs {baseline.run_id}",
        "",
        "| Metric | Baseline | Current | Delta (pp) |",
        "|---|---|---|---|",
    ]
    for key, label in _COMPARED_METRICS:
        lines.append(
            f"| {label} | {float(getattr(baseline, key)) * 100:.1f}% "
            f"| {float(getattr(current, key)) * 100:.1f}% | {deltas[key]:+.2f} |"
        )
    lines.append("")
    if regressions:
        lines.append("### Regressions")
        labels = dict(_COMPARED_METRICS)
        lines.extend(f"- {labels[key]} dropped {abs(deltas[key]):.2f} pp" for key in regressions)
    else:
        lines.append("No regressions on the tracked metrics.")
    lines.append("")
    if config_diffs:
        lines.append("### Config changes")
        lines.extend(
            f"- `{d.key}`: {_fmt_value(d.previous)} -> {_fmt_value(d.current)}" for d in config_diffs
        )
    else:
        lines.append("No config changes were supplied.")
    lines.extend(["", "_Results are synthetic; this report is generated from a fixed template._"])

    if len(lines) > MAX_REPORT_LINES:
        lines = lines[: MAX_REPORT_LINES - 1] + ["..."]

    return EvalAnalyzeComparisonResponse(
        ok=True,
        analysis="\n".join(lines),
        model_used="template",
        deltas=deltas,
        regressions=regressions,
    )
