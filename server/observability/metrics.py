"""Prometheus metrics collection.

This module defines low-cardinality application metrics and helpers to expose them
via a Prometheus scrape endpoint.

Design goals:
- **No high-cardinality labels** (no corpus_id, no file_path, no query strings)
- **Use seconds** for latency histograms
- Keep metric names stable (dashboards depend on them)
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Iterator

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

_LATENCY_BUCKETS = (0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)

# --------------------------------------------------------------------------------------
# Search metrics
# --------------------------------------------------------------------------------------

SEARCH_REQUESTS_TOTAL = Counter(
    "ragweld_search_requests_total",
    "Total number of /api/search requests handled.",
)

# Internal errors only; HTTP validation errors are not counted here.
SEARCH_ERRORS_TOTAL = Counter(
    "ragweld_search_errors_total",
    "Total number of /api/search internal errors.",
)

SEARCH_LATENCY_SECONDS = Histogram(
    "ragweld_search_latency_seconds",
    "End-to-end /api/search latency in seconds.",
    buckets=_LATENCY_BUCKETS,
)

SPARSE_LEG_LATENCY_SECONDS = Histogram(
    "ragweld_sparse_leg_latency_seconds",
    "Sparse retrieval latency in seconds (Postgres FTS).",
    buckets=_LATENCY_BUCKETS,
)

SEARCH_RESULTS_COUNT = Histogram(
    "ragweld_search_results_count",
    "Number of results returned by a sparse search.",
    buckets=(0, 1, 2, 5, 10, 20, 50),
)

# --------------------------------------------------------------------------------------
# Graph metrics
# --------------------------------------------------------------------------------------

GRAPH_NEIGHBORS_LATENCY_SECONDS = Histogram(
    "ragweld_graph_neighbors_latency_seconds",
    "Neighbor walk latency in seconds (all hops).",
    buckets=_LATENCY_BUCKETS,
)

# --------------------------------------------------------------------------------------
# Chat metrics
# --------------------------------------------------------------------------------------

CHAT_REQUESTS_TOTAL = Counter(
    "ragweld_chat_requests_total",
    "Total number of chat requests handled (streaming or not).",
    ["mode"],
)

CHAT_PROVIDER_ERRORS_TOTAL = Counter(
    "ragweld_chat_provider_errors_total",
    "Total number of chat answers that fell back to the diagnostic message.",
    ["provider"],
)

CHAT_GENERATION_LATENCY_SECONDS = Histogram(
    "ragweld_chat_generation_latency_seconds",
    "Latency of the outbound generation call in seconds.",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

# --------------------------------------------------------------------------------------
# Eval metrics
# --------------------------------------------------------------------------------------

EVAL_RUNS_TOTAL = Counter(
    "ragweld_eval_runs_total",
    "Total number of synthetic eval runs created.",
)

# Prometheus client only exports labelled series after the labelset is created,
# so pre-create the expected low-cardinality labelsets here.
for _mode in ("json", "stream"):
    CHAT_REQUESTS_TOTAL.labels(mode=_mode)
for _provider in ("openai", "openrouter", "local", "unresolved"):
    CHAT_PROVIDER_ERRORS_TOTAL.labels(provider=_provider)


@contextmanager
def timed(hist: Histogram) -> Iterator[None]:
    """Time a code block and observe seconds in the provided histogram."""
    t0 = time.perf_counter()
    try:
        yield
    finally:
        hist.observe(time.perf_counter() - t0)


def render_latest() -> tuple[bytes, str]:
    """Return (body, content_type) for a Prometheus scrape response."""
    body = generate_latest()
    return body, CONTENT_TYPE_LATEST
