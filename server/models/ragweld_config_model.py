"""Pydantic models for ragweld_config.json validation and the demo API contract.

This module defines two things:
- Domain models: the JSON shapes exchanged with the marketing-site demo UI
  (corpora, chunk matches, graph entities, eval runs, chat payloads).
- Config models: the tunable settings tree held per scope by the ConfigStore.

All domain models and config types are defined here.
Other files should re-export from this module.
"""
from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

# =============================================================================
# DOMAIN MODELS - Core data types for the demo backend
# =============================================================================


class Corpus(BaseModel):
    """Indexed corpus (a repository or a documentation set).

    A corpus is the unit of isolation for chunk storage, graph storage and
    per-scope configuration.
    """

    corpus_id: str = Field(
        description="Corpus identifier (stable slug)",
        validation_alias=AliasChoices("corpus_id", "repo_id"),
    )
    name: str = Field(description="Display name")
    path: str = Field(default="", description="Source location (URL or path) the corpus was indexed from")
    slug: str | None = Field(default=None, description="Optional URL slug")
    branch: str | None = Field(default=None, description="Optional branch name (if corpus is a git repo)")
    description: str | None = Field(default=None, description="Optional description")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the corpus was created",
    )
    last_indexed: datetime | None = Field(default=None, description="When the corpus was last indexed")
    meta: dict[str, Any] = Field(default_factory=dict, description="Open metadata bag")


class CorpusScope(BaseModel):
    """Standard corpus scoping helper for query params and request bodies.

    Accepts `corpus_id` (preferred), `repo_id` (legacy) or `repo`.
    """

    corpus_id: str | None = Field(default=None, description="Corpus identifier (preferred)")
    repo_id: str | None = Field(default=None, description="Corpus identifier (legacy repo_id)")
    repo: str | None = Field(default=None, description="Corpus identifier (legacy repo alias)")

    @property
    def resolved_corpus_id(self) -> str | None:
        return self.corpus_id or self.repo_id or self.repo

    @field_validator("corpus_id", "repo_id", "repo")
    @classmethod
    def _strip_corpus_id(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None


class Chunk(BaseModel):
    """A span of source text stored for full-text search."""

    chunk_id: str = Field(description="Unique identifier for this chunk")
    file_path: str = Field(description="Path to the source file")
    start_line: int = Field(ge=0, description="Starting line number in source file")
    end_line: int = Field(ge=0, description="Ending line number in source file")
    language: str | None = Field(default=None, description="Programming language or document type")
    content: str = Field(description="The actual code/text content")


class ChunkMatch(BaseModel):
    """Ranked search hit."""

    chunk_id: str = Field(description="Unique identifier for matched chunk")
    content: str = Field(description="The matched code/text content")
    file_path: str = Field(description="Path to the source file")
    start_line: int = Field(description="Starting line number")
    end_line: int = Field(description="Ending line number")
    language: str | None = Field(default=None, description="Programming language")
    score: float = Field(description="Relevance score from retrieval")
    source: Literal["sparse"] = Field(default="sparse", description="Which retrieval leg found this")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Additional match metadata")


class SearchRequest(BaseModel):
    """Request payload for sparse search."""

    query: str = Field(default="", description="The search query")
    corpus_id: str = Field(
        description="Corpus identifier to search",
        validation_alias=AliasChoices("corpus_id", "repo_id", "repo"),
    )
    top_k: int = Field(default=10, description="Number of results to return (clamped to 1-50)")


class SearchResponse(BaseModel):
    """Response from sparse search."""

    query: str = Field(description="The original query")
    matches: list[ChunkMatch] = Field(description="Ranked list of matching chunks")
    fusion_method: str = Field(default="sparse", description="Retrieval method used")
    reranker_mode: str = Field(default="none", description="Reranker mode used")
    latency_ms: float = Field(ge=0.0, description="Search latency in milliseconds")
    debug: dict[str, Any] | None = Field(default=None, description="Debug information")


class McpSearchHit(BaseModel):
    """Compact search hit returned by the MCP-style search endpoint."""

    file_path: str = Field(description="Path to the source file")
    start_line: int = Field(description="Starting line number")
    end_line: int = Field(description="Ending line number")
    rerank_score: float = Field(description="Relevance score")


class McpSearchResponse(BaseModel):
    """Response for /api/mcp/rag_search. Errors are reported inline."""

    results: list[McpSearchHit] = Field(default_factory=list, description="Ranked hits")
    error: str | None = Field(default=None, description="Error message (if any)")


class Entity(BaseModel):
    """Knowledge graph node representing a code or documentation entity."""

    entity_id: str = Field(description="Unique identifier within the corpus")
    name: str = Field(description="Entity name (module path, function name, concept term, etc)")
    entity_type: str = Field(description="Type of entity (module, function, class, concept, ...)")
    file_path: str | None = Field(default=None, description="File where entity is defined")
    description: str | None = Field(default=None, description="Optional description")
    properties: dict[str, Any] = Field(default_factory=dict, description="Additional properties")


class Relationship(BaseModel):
    """Knowledge graph edge connecting two entities."""

    source_id: str = Field(description="Source entity ID")
    target_id: str = Field(description="Target entity ID")
    relation_type: str = Field(description="Type of relationship (contains, imports, references, related_to, ...)")
    weight: float = Field(default=1.0, ge=0.0, description="Relationship strength (accumulates for additive kinds)")
    properties: dict[str, Any] = Field(default_factory=dict, description="Additional properties")


class GraphStats(BaseModel):
    """Statistics about a corpus knowledge graph."""

    corpus_id: str = Field(description="Corpus identifier")
    total_entities: int = Field(ge=0, description="Number of entities in graph")
    total_relationships: int = Field(ge=0, description="Number of relationships")
    total_communities: int = Field(default=0, ge=0, description="Number of detected communities")
    entity_breakdown: dict[str, int] = Field(default_factory=dict, description="Count by entity type")
    relationship_breakdown: dict[str, int] = Field(default_factory=dict, description="Count by relation type")


class GraphNeighborsResponse(BaseModel):
    """Neighbor subgraph centered on a single entity."""

    entities: list[Entity] = Field(description="Entities in the neighborhood (includes the center entity)")
    relationships: list[Relationship] = Field(description="Relationships between returned entities")


class CorpusSnapshot(BaseModel):
    """Full replacement payload for one corpus, produced by the offline indexing job."""

    corpus: Corpus = Field(description="Corpus row to upsert")
    chunks: list[Chunk] = Field(default_factory=list, description="All chunks for the corpus")
    entities: list[Entity] = Field(default_factory=list, description="All graph entities for the corpus")
    relationships: list[Relationship] = Field(default_factory=list, description="All graph edges for the corpus")


class IndexResponse(BaseModel):
    """Response for re-index and delete operations."""

    ok: bool = Field(default=False, description="Whether the operation was performed")
    corpus_id: str | None = Field(default=None, description="Corpus identifier")
    chunks: int = Field(default=0, ge=0, description="Chunks written")
    entities: int = Field(default=0, ge=0, description="Entities written")
    relationships: int = Field(default=0, ge=0, description="Relationships written")
    error: str | None = Field(default=None, description="Reason the operation was not performed")


# =============================================================================
# HEALTH API MODELS
# =============================================================================


class HealthServiceStatus(BaseModel):
    """Per-service status entry for /api/health."""

    status: str = Field(description="Service health status label (up/down/unknown).")
    error: str | None = Field(default=None, description="Optional error message if unhealthy/unreachable.")


class HealthStatus(BaseModel):
    """System health status payload for /api/health."""

    ok: bool = Field(default=True, description="Overall health boolean.")
    status: Literal["healthy", "unhealthy", "unknown"] = Field(default="healthy", description="Overall status label.")
    ts: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="Timestamp for this health snapshot (UTC).",
    )
    services: dict[str, HealthServiceStatus] = Field(
        default_factory=dict,
        description="Map of service name -> status entry.",
    )


# =============================================================================
# CHAT API MODELS
# =============================================================================


class ActiveSources(BaseModel):
    """Which corpora a chat message retrieves from."""

    corpus_ids: list[str] = Field(default_factory=list, description="Corpus identifiers to search")


class Message(BaseModel):
    """Chat message in a conversation."""

    role: Literal["user", "assistant", "system"] = Field(description="Message role")
    content: str = Field(description="Message content")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When message was created",
    )


class ChatRequest(BaseModel):
    """Request payload for chat endpoints."""

    message: str = Field(default="", description="User's message")
    sources: ActiveSources | None = Field(default=None, description="Explicit corpus selection")
    corpus_id: str | None = Field(
        default=None,
        description="Fallback corpus identifier when no sources are given",
        validation_alias=AliasChoices("corpus_id", "repo_id"),
    )
    conversation_id: str | None = Field(default=None, description="Continue existing conversation")
    model_override: str | None = Field(
        default=None,
        description="Explicit model, optionally prefixed with a provider kind (e.g. 'openrouter:model')",
    )
    include_vector: bool = Field(default=False, description="Vector leg requested (not available in the demo)")
    include_sparse: bool = Field(default=True, description="Include sparse/FTS retrieval results")
    include_graph: bool = Field(default=False, description="Graph leg requested (not used for chat context)")
    top_k: int | None = Field(default=None, description="Override chat.top_k for this message (clamped to 1-50)")


class ChatDebugInfo(BaseModel):
    """Developer-facing debug metadata for a single chat answer."""

    confidence: float | None = Field(default=None, ge=0.0, le=1.0, description="Heuristic confidence (0-1)")
    include_vector: bool = Field(default=False, description="Vector leg requested for this message")
    include_sparse: bool = Field(default=True, description="Sparse leg requested for this message")
    include_graph: bool = Field(default=False, description="Graph leg requested for this message")
    vector_enabled: bool = Field(default=False, description="Vector leg enabled in config")
    sparse_enabled: bool = Field(default=True, description="Sparse leg enabled in config")
    graph_enabled: bool = Field(default=False, description="Graph leg enabled for chat context")
    fusion_method: str = Field(default="sparse", description="Retrieval method used")
    corpus_ids: list[str] = Field(default_factory=list, description="Corpora searched for this message")
    final_k_used: int | None = Field(default=None, ge=1, description="Final K used for retrieval context")
    final_results: int = Field(default=0, ge=0, description="Final merged results returned")
    llm_used: bool = Field(default=False, description="Whether a generation provider produced the answer")
    llm_error: str | None = Field(default=None, description="Provider error when generation failed")
    provider: str | None = Field(default=None, description="Provider kind used (or attempted)")
    model: str | None = Field(default=None, description="Model used (or attempted)")


class ChatResponse(BaseModel):
    """Response from chat endpoint."""

    run_id: str = Field(description="Unique identifier for this chat run")
    started_at_ms: int = Field(ge=0, description="Chat run start time (epoch milliseconds)")
    ended_at_ms: int = Field(ge=0, description="Chat run end time (epoch milliseconds)")
    debug: ChatDebugInfo = Field(description="Developer debug metadata for this answer")
    conversation_id: str = Field(description="Conversation identifier")
    message: Message = Field(description="Assistant's response message")
    sources: list[ChunkMatch] = Field(default_factory=list, description="Sources used for response")
    tokens_used: int = Field(default=0, ge=0, description="Tokens consumed")


class ProviderHealth(BaseModel):
    """Reachability of one generation provider."""

    provider: str = Field(description="Provider kind")
    base_url: str = Field(description="Provider base URL")
    status: Literal["up", "down", "unavailable"] = Field(description="Probe outcome")
    latency_ms: float | None = Field(default=None, ge=0.0, description="Probe latency in milliseconds")
    error: str | None = Field(default=None, description="Probe error (if any)")


class ProvidersHealthResponse(BaseModel):
    providers: list[ProviderHealth] = Field(default_factory=list, description="One entry per provider kind")


# =============================================================================
# EVAL API MODELS
# =============================================================================


class EvalDatasetItem(BaseModel):
    """Single evaluation dataset entry."""

    entry_id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        description="Unique identifier for this entry",
    )
    question: str = Field(description="The test question")
    expected_paths: list[str] = Field(
        default_factory=list,
        description="File paths that should be retrieved",
        validation_alias=AliasChoices("expected_paths", "expected_chunks"),
    )
    expected_answer: str | None = Field(default=None, description="Expected answer if testing generation")
    tags: list[str] = Field(default_factory=list, description="Tags for filtering/grouping")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When this entry was created",
    )


class EvalRequest(BaseModel):
    """Request payload for a synthetic evaluation run."""

    corpus_id: str = Field(
        description="Corpus identifier to evaluate",
        validation_alias=AliasChoices("corpus_id", "repo_id"),
    )
    dataset_id: str | None = Field(default=None, description="Dataset label (None = corpus default)")
    sample_size: int | None = Field(default=None, ge=1, description="Number of entries to evaluate (None = all)")
    seed: int | None = Field(default=None, description="Override evaluation.seed for this run")
    accuracy_bias: float | None = Field(
        default=None, ge=0.0, le=1.0, description="Override evaluation.accuracy_bias for this run"
    )


class EvalMetrics(BaseModel):
    """Aggregated retrieval metrics from an evaluation run."""

    mrr: float = Field(ge=0.0, le=1.0, description="Mean Reciprocal Rank")
    recall_at_5: float = Field(ge=0.0, le=1.0, description="Recall at top 5")
    recall_at_10: float = Field(ge=0.0, le=1.0, description="Recall at top 10")
    recall_at_20: float = Field(ge=0.0, le=1.0, description="Recall at top 20")
    precision_at_5: float = Field(ge=0.0, le=1.0, description="Precision at top 5")
    ndcg_at_10: float = Field(ge=0.0, le=1.0, description="NDCG at top 10")
    latency_p50_ms: float = Field(ge=0.0, description="50th percentile latency in ms")
    latency_p95_ms: float = Field(ge=0.0, description="95th percentile latency in ms")


class EvalDoc(BaseModel):
    """Lightweight scored retrieval doc for eval drill-down."""

    file_path: str = Field(description="Retrieved file path")
    score: float = Field(description="Synthetic retrieval score")
    source: str | None = Field(default="sparse", description="Retrieval source")


class EvalResult(BaseModel):
    """Per-entry evaluation result."""

    entry_id: str = Field(description="Dataset entry ID")
    question: str = Field(description="The test question")
    retrieved_paths: list[str] = Field(description="File paths that were retrieved (ranked)")
    expected_paths: list[str] = Field(description="File paths that should have been retrieved")
    top1_hit: bool = Field(default=False, description="Whether top-1 contained any expected path")
    topk_hit: bool = Field(default=False, description="Whether top-k contained any expected path")
    reciprocal_rank: float = Field(ge=0.0, le=1.0, description="Reciprocal rank for this entry")
    recall: float = Field(ge=0.0, le=1.0, description="Recall over the full retrieved list")
    recall_at_5: float = Field(default=0.0, ge=0.0, le=1.0, description="Recall at top 5")
    recall_at_10: float = Field(default=0.0, ge=0.0, le=1.0, description="Recall at top 10")
    recall_at_20: float = Field(default=0.0, ge=0.0, le=1.0, description="Recall at top 20")
    precision_at_5: float = Field(default=0.0, ge=0.0, le=1.0, description="Precision at top 5")
    ndcg_at_10: float = Field(default=0.0, ge=0.0, le=1.0, description="NDCG at top 10")
    latency_ms: float = Field(ge=0.0, description="Synthetic latency for this query")
    docs: list[EvalDoc] = Field(default_factory=list, description="Top docs with scores for drill-down")


class EvalRun(BaseModel):
    """Complete evaluation run record."""

    run_id: str = Field(description="Unique identifier for this run")
    corpus_id: str = Field(
        description="Corpus identifier evaluated",
        validation_alias=AliasChoices("corpus_id", "repo_id"),
    )
    dataset_id: str = Field(description="Dataset used")
    config_snapshot: dict[str, Any] = Field(description="Nested config state during evaluation")
    total: int = Field(default=0, ge=0, description="Total questions evaluated")
    top1_hits: int = Field(default=0, ge=0, description="Count of top-1 hits")
    topk_hits: int = Field(default=0, ge=0, description="Count of top-k hits")
    top1_accuracy: float = Field(default=0.0, ge=0.0, le=1.0, description="Top-1 accuracy")
    topk_accuracy: float = Field(default=0.0, ge=0.0, le=1.0, description="Top-k accuracy")
    duration_secs: float = Field(default=0.0, ge=0.0, description="Sum of synthetic latencies (seconds)")
    final_k: int = Field(default=0, ge=0, description="Final-k used for this run")
    seed: int = Field(description="Seed of the random source that generated this run")
    accuracy_bias: float = Field(ge=0.0, le=1.0, description="Probability of a rank-1 injection")
    synthetic: bool = Field(default=True, description="Results were synthesized, not measured")
    metrics: EvalMetrics = Field(description="Aggregated metrics")
    results: list[EvalResult] = Field(description="Per-entry results")
    started_at: datetime = Field(description="When evaluation started")
    completed_at: datetime = Field(description="When evaluation completed")


class EvalRunMeta(BaseModel):
    """Summary metadata for listing eval runs."""

    run_id: str = Field(description="Eval run ID")
    top1_accuracy: float = Field(ge=0.0, le=1.0, description="Top-1 accuracy")
    topk_accuracy: float = Field(ge=0.0, le=1.0, description="Top-k accuracy")
    mrr: float | None = Field(default=None, ge=0.0, le=1.0, description="Mean reciprocal rank")
    total: int = Field(ge=0, description="Total questions evaluated")
    duration_secs: float = Field(ge=0.0, description="Total run duration (seconds)")
    completed_at: datetime | None = Field(default=None, description="When the run completed")


class EvalRunsResponse(BaseModel):
    """Response for listing eval runs."""

    ok: bool = Field(default=True, description="Whether the request succeeded")
    runs: list[EvalRunMeta] = Field(default_factory=list, description="Run summaries (newest first)")


class EvalRunSummary(BaseModel):
    """Headline numbers of one run, as sent by the comparison UI."""

    run_id: str = Field(description="Eval run ID")
    top1_accuracy: float = Field(ge=0.0, le=1.0, description="Top-1 accuracy")
    topk_accuracy: float = Field(ge=0.0, le=1.0, description="Top-k accuracy")
    mrr: float = Field(default=0.0, ge=0.0, le=1.0, description="Mean reciprocal rank")
    total: int = Field(default=0, ge=0, description="Total questions evaluated")


class EvalConfigDiff(BaseModel):
    key: str = Field(description="Dotted config key")
    previous: Any = Field(default=None, description="Baseline value")
    current: Any = Field(default=None, description="Current value")


class EvalAnalyzeComparisonRequest(BaseModel):
    """Request for /eval/analyze_comparison.

    Either inline run summaries or run ids (loaded from the store) may be given.
    """

    current_run: EvalRunSummary | None = Field(default=None, description="Run being judged")
    compare_run: EvalRunSummary | None = Field(default=None, description="Baseline run")
    current_run_id: str | None = Field(default=None, description="Run being judged (by id)")
    compare_run_id: str | None = Field(default=None, description="Baseline run (by id)")
    config_diffs: list[EvalConfigDiff] = Field(default_factory=list, description="Config changes between runs")


class EvalAnalyzeComparisonResponse(BaseModel):
    """Response for /eval/analyze_comparison."""

    ok: bool = Field(default=False, description="Whether analysis succeeded")
    analysis: str | None = Field(default=None, description="Markdown analysis")
    model_used: str | None = Field(default=None, description="Model identifier (template for the fixed report)")
    deltas: dict[str, float] = Field(default_factory=dict, description="Metric deltas in percentage points")
    regressions: list[str] = Field(default_factory=list, description="Metrics that regressed")
    error: str | None = Field(default=None, description="Error message (if any)")


# =============================================================================
# CONFIG MODELS - Tunable settings tree (one per scope)
# =============================================================================


class SparseSearchConfig(BaseModel):
    """Configuration for sparse (Postgres FTS) search."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = Field(default=True, description="Enable sparse search")
    top_k: int = Field(default=10, ge=1, le=50, description="Default number of results for /search")
    ts_config: str = Field(default="english", description="Postgres text search configuration")


class GraphSearchConfig(BaseModel):
    """Configuration for graph exploration endpoints."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = Field(default=True, description="Enable graph endpoints")
    max_hops: int = Field(default=2, ge=1, le=5, description="Default neighbor walk depth")
    neighbor_limit: int = Field(default=200, ge=10, le=2000, description="Default relationship limit")
    entity_limit: int = Field(default=50, ge=1, le=500, description="Default ranked entity limit")


class OpenRouterConfig(BaseModel):
    """OpenRouter provider settings."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = Field(default=False, description="Allow routing chat through OpenRouter")
    base_url: str = Field(default="https://openrouter.ai/api/v1", description="OpenRouter API base URL")
    default_model: str = Field(default="openai/gpt-4o-mini", description="Model used when none is given")
    site_name: str = Field(default="ragweld", description="X-Title header sent to OpenRouter")


class LocalModelConfig(BaseModel):
    """Local OpenAI-compatible server settings (Ollama, llama.cpp, ...)."""

    model_config = ConfigDict(extra="forbid")

    base_url: str = Field(default="http://127.0.0.1:11434/v1", description="Local server base URL")
    default_model: str = Field(default="qwen3:8b", description="Model used when none is given")


class ChatConfig(BaseModel):
    """Chat orchestration settings."""

    model_config = ConfigDict(extra="forbid")

    default_provider: Literal["openai", "openrouter", "local"] = Field(
        default="openai", description="Provider used when the request does not name one"
    )
    default_model: str = Field(default="gpt-4o-mini", description="Model used with the default provider")
    openai_base_url: str = Field(default="https://api.openai.com/v1", description="OpenAI API base URL")
    temperature: float = Field(default=0.2, ge=0.0, le=2.0, description="Sampling temperature")
    max_tokens: int = Field(default=1024, ge=1, le=32768, description="Maximum tokens to generate")
    top_k: int = Field(default=8, ge=1, le=50, description="Default retrieval depth for chat context")
    max_context_chunks: int = Field(default=8, ge=1, le=50, description="Context blocks embedded in the prompt")
    timeout_s: float = Field(default=60.0, gt=0, description="Generation request timeout (seconds)")
    health_timeout_s: float = Field(default=3.0, gt=0, description="Provider health probe timeout (seconds)")
    active_sources: ActiveSources = Field(default_factory=ActiveSources, description="Default corpus selection")
    openrouter: OpenRouterConfig = Field(default_factory=OpenRouterConfig)
    local: LocalModelConfig = Field(default_factory=LocalModelConfig)


class EvaluationConfig(BaseModel):
    """Synthetic evaluation settings."""

    model_config = ConfigDict(extra="forbid")

    seed: int = Field(default=1337, description="Seed for the synthetic result generator")
    accuracy_bias: float = Field(default=0.72, ge=0.0, le=1.0, description="Probability of a rank-1 injection")
    rank_window_weight: float = Field(
        default=0.2, ge=0.0, le=1.0, description="Probability mass of an injection elsewhere in the top-k window"
    )
    final_k: int = Field(default=10, ge=1, le=50, description="Retrieved paths per synthetic query")
    latency_min_ms: float = Field(default=40.0, ge=0.0, description="Lower bound of synthetic latency")
    latency_max_ms: float = Field(default=180.0, ge=0.0, description="Upper bound of synthetic latency")
    seed_dataset_size: int = Field(default=25, ge=1, le=500, description="Entries seeded from chunk file paths")


class SystemPromptsConfig(BaseModel):
    """Prompt slot overrides. A null slot reads as its built-in default text."""

    model_config = ConfigDict(extra="forbid")

    main_rag_chat: str | None = Field(default=None, description="System prompt for RAG chat answers")
    query_expansion: str | None = Field(default=None, description="Query variant generation")
    query_rewrite: str | None = Field(default=None, description="Query rewrite for search")
    semantic_chunk_summaries: str | None = Field(default=None, description="Chunk summarization")
    lightweight_chunk_summaries: str | None = Field(default=None, description="Fast chunk summarization")
    semantic_kg_extraction: str | None = Field(default=None, description="Entity/relation extraction")
    eval_analysis: str | None = Field(default=None, description="Eval comparison analysis")


class RagweldConfig(BaseModel):
    """Root settings tree for one scope."""

    model_config = ConfigDict(extra="ignore")

    sparse_search: SparseSearchConfig = Field(default_factory=SparseSearchConfig)
    graph_search: GraphSearchConfig = Field(default_factory=GraphSearchConfig)
    chat: ChatConfig = Field(default_factory=ChatConfig)
    evaluation: EvaluationConfig = Field(default_factory=EvaluationConfig)
    system_prompts: SystemPromptsConfig = Field(default_factory=SystemPromptsConfig)


class PromptUpdateRequest(BaseModel):
    value: str = Field(default="", description="New prompt text")


class PromptMetadata(BaseModel):
    """Editor metadata for one prompt slot."""

    label: str = Field(description="Display label")
    category: Literal["chat", "retrieval", "indexing", "evaluation"] = Field(description="Grouping in the editor")
    is_default: bool = Field(default=True, description="Whether the slot still reads its built-in default")


class PromptsResponse(BaseModel):
    prompts: dict[str, str] = Field(default_factory=dict, description="Effective prompt text per slot")
    metadata: dict[str, PromptMetadata] = Field(default_factory=dict, description="Metadata per slot")


class PromptUpdateResponse(BaseModel):
    ok: bool = Field(default=True, description="Whether the update was applied")
    prompt_key: str = Field(description="Slot that was updated")
    message: str = Field(default="", description="Human-readable result")
