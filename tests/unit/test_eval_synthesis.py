"""Tests for synthetic eval results, metrics and the comparison report."""

from __future__ import annotations

import random
from datetime import UTC, datetime

import pytest

from server.models.ragweld_config_model import EvalConfigDiff, EvalDatasetItem, EvalRunSummary, EvaluationConfig
from server.services.eval_synthesis import (
    SynthesisParams,
    aggregate_metrics,
    build_run,
    compare_runs,
    make_run_id,
    seed_dataset_entries,
    seed_entry_id,
    summarize_run,
    synthesize_result,
)

CORPUS_PATHS = [f"src/module_{i}.py" for i in range(30)] + ["api/app/main.py"]


def _entry() -> EvalDatasetItem:
    return EvalDatasetItem(entry_id="e1", question="Which file contains main.py?", expected_paths=["api/app/main.py"])


def _params(**overrides) -> SynthesisParams:
    base = dict(top_k=10, accuracy_bias=0.72, rank_window_weight=0.2, latency_min_ms=40.0, latency_max_ms=180.0)
    base.update(overrides)
    return SynthesisParams(**base)


def test_params_from_config_allows_bias_override() -> None:
    cfg = EvaluationConfig(final_k=5, accuracy_bias=0.5)
    assert SynthesisParams.from_config(cfg).accuracy_bias == 0.5
    overridden = SynthesisParams.from_config(cfg, accuracy_bias=0.9)
    assert overridden.accuracy_bias == 0.9
    assert overridden.top_k == 5


def test_seed_dataset_entries_dedupes_and_limits() -> None:
    paths = ["a/x.py", "a/x.py", "b/y.md", "", "c/z.ts"]
    entries = seed_dataset_entries(paths, limit=2)
    assert [e.expected_paths for e in entries] == [["a/x.py"], ["b/y.md"]]
    assert entries[0].question == "Which file contains x.py?"
    assert entries[0].tags == ["seeded"]
    assert entries[0].entry_id == seed_entry_id("a/x.py")


def test_seed_entry_id_is_stable() -> None:
    assert seed_entry_id("a/x.py") == seed_entry_id("a/x.py")
    assert seed_entry_id("a/x.py") != seed_entry_id("a/y.py")
    assert seed_entry_id("a/x.py").startswith("seed_")


def test_full_bias_puts_expected_path_first() -> None:
    result = synthesize_result(_entry(), CORPUS_PATHS, random.Random(1), _params(accuracy_bias=1.0))

    assert result.retrieved_paths[0] == "api/app/main.py"
    assert result.top1_hit is True
    assert result.topk_hit is True
    assert result.reciprocal_rank == 1.0
    assert result.ndcg_at_10 == pytest.approx(1.0)
    assert result.precision_at_5 == pytest.approx(0.2)
    assert result.recall_at_5 == 1.0
    assert len(result.retrieved_paths) == 10
    assert len(set(result.retrieved_paths)) == 10


def test_zero_bias_and_window_never_hits() -> None:
    result = synthesize_result(
        _entry(), CORPUS_PATHS, random.Random(1), _params(accuracy_bias=0.0, rank_window_weight=0.0)
    )
    assert "api/app/main.py" not in result.retrieved_paths
    assert result.top1_hit is False
    assert result.topk_hit is False
    assert result.reciprocal_rank == 0.0
    assert result.ndcg_at_10 == 0.0


def test_window_injection_stays_inside_top_k() -> None:
    params = _params(accuracy_bias=0.0, rank_window_weight=1.0)
    for seed in range(200):
        result = synthesize_result(_entry(), CORPUS_PATHS, random.Random(seed), params)
        assert result.topk_hit is True
        assert result.top1_hit is False
        assert 1.0 / 10 <= result.reciprocal_rank <= 0.5


def test_window_injection_never_lands_at_rank_one_with_top_k_one() -> None:
    params = _params(top_k=1, accuracy_bias=0.0, rank_window_weight=0.2)
    for seed in range(500):
        result = synthesize_result(_entry(), CORPUS_PATHS, random.Random(seed), params)
        assert result.top1_hit is False
        assert len(result.retrieved_paths) == 1


def test_same_seed_same_results() -> None:
    params = _params()
    a = [synthesize_result(_entry(), CORPUS_PATHS, random.Random(1337), params) for _ in range(3)]
    b = [synthesize_result(_entry(), CORPUS_PATHS, random.Random(1337), params) for _ in range(3)]
    assert [r.model_dump() for r in a] == [r.model_dump() for r in b]


def test_latency_within_bounds_and_docs_scored_by_rank() -> None:
    result = synthesize_result(_entry(), CORPUS_PATHS, random.Random(3), _params())
    assert 40.0 <= result.latency_ms <= 180.0
    assert [d.score for d in result.docs[:3]] == [1.0, 0.5, pytest.approx(1 / 3)]
    assert all(d.source == "sparse" for d in result.docs)


def test_small_corpus_yields_short_list() -> None:
    result = synthesize_result(_entry(), ["api/app/main.py", "b.py"], random.Random(0), _params(accuracy_bias=1.0))
    assert result.retrieved_paths == ["api/app/main.py", "b.py"]


def test_make_run_id_format() -> None:
    ts = datetime(2025, 1, 15, 12, 3, 4, tzinfo=UTC)
    assert make_run_id("faxbot", ts) == "faxbot__20250115_120304"


def test_build_run_aggregates() -> None:
    params = _params(accuracy_bias=1.0)
    rng = random.Random(5)
    results = [synthesize_result(_entry(), CORPUS_PATHS, rng, params) for _ in range(4)]
    started = datetime(2025, 1, 15, 12, 0, 0, tzinfo=UTC)
    completed = datetime(2025, 1, 15, 12, 0, 1, tzinfo=UTC)

    run = build_run(
        corpus_id="faxbot",
        dataset_id="default",
        results=results,
        config_snapshot={"evaluation": {"seed": 5}},
        seed=5,
        params=params,
        started_at=started,
        completed_at=completed,
    )

    assert run.run_id == "faxbot__20250115_120001"
    assert run.total == 4
    assert run.top1_hits == 4
    assert run.top1_accuracy == 1.0
    assert run.metrics.mrr == 1.0
    assert run.final_k == 10
    assert run.synthetic is True
    assert run.duration_secs == pytest.approx(sum(r.latency_ms for r in results) / 1000.0)
    assert run.metrics.latency_p50_ms <= run.metrics.latency_p95_ms


def test_aggregate_metrics_empty() -> None:
    metrics = aggregate_metrics([])
    assert metrics.mrr == 0.0
    assert metrics.latency_p95_ms == 0.0


def test_summarize_run_copies_headline_metrics() -> None:
    params = _params(accuracy_bias=1.0)
    results = [synthesize_result(_entry(), CORPUS_PATHS, random.Random(0), params)]
    now = datetime(2025, 1, 15, tzinfo=UTC)
    run = build_run(
        corpus_id="faxbot",
        dataset_id="default",
        results=results,
        config_snapshot={},
        seed=0,
        params=params,
        started_at=now,
        completed_at=now,
    )
    summary = summarize_run(run)
    assert summary.run_id == run.run_id
    assert summary.mrr == run.metrics.mrr
    assert summary.total == 1


def test_compare_runs_reports_deltas_and_regressions() -> None:
    current = EvalRunSummary(run_id="cur", top1_accuracy=0.6, topk_accuracy=0.9, mrr=0.7, total=10)
    baseline = EvalRunSummary(run_id="base", top1_accuracy=0.7, topk_accuracy=0.8, mrr=0.7, total=10)

    report = compare_runs(
        current,
        baseline,
        [EvalConfigDiff(key="evaluation.accuracy_bias", previous=0.72, current=0.6)],
    )

    assert report.ok is True
    assert report.model_used == "template"
    assert report.deltas == {"top1_accuracy": -10.0, "topk_accuracy": 10.0, "mrr": 0.0}
    assert report.regressions == ["top1_accuracy"]
    assert report.analysis is not None
    assert report.analysis.startswith("## Eval comparison: cur vs base")
    assert "### Regressions" in report.analysis
    assert "- `evaluation.accuracy_bias`: 0.72 -> 0.6" in report.analysis


def test_compare_runs_without_regressions_or_diffs() -> None:
    run = EvalRunSummary(run_id="r", top1_accuracy=0.5, topk_accuracy=0.5, mrr=0.5, total=2)
    report = compare_runs(run, run)
    assert report.regressions == []
    assert report.analysis is not None
    assert "No regressions on the tracked metrics." in report.analysis
    assert "No config changes were supplied." in report.analysis
