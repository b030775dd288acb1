"""Server models - all types exported from ragweld_config_model.py.

Import domain models and config types from this module.
"""
from server.models.ragweld_config_model import (
    # Corpus + index models
    Chunk,
    Corpus,
    CorpusScope,
    CorpusSnapshot,
    IndexResponse,
    # Retrieval models
    ChunkMatch,
    McpSearchHit,
    McpSearchResponse,
    SearchRequest,
    SearchResponse,
    # Chat models
    ActiveSources,
    ChatDebugInfo,
    ChatRequest,
    ChatResponse,
    Message,
    ProviderHealth,
    ProvidersHealthResponse,
    # Graph models
    Entity,
    GraphNeighborsResponse,
    GraphStats,
    Relationship,
    # Eval models
    EvalAnalyzeComparisonRequest,
    EvalAnalyzeComparisonResponse,
    EvalConfigDiff,
    EvalDatasetItem,
    EvalDoc,
    EvalMetrics,
    EvalRequest,
    EvalResult,
    EvalRun,
    EvalRunMeta,
    EvalRunSummary,
    EvalRunsResponse,
    # Health
    HealthServiceStatus,
    HealthStatus,
    # Config
    ChatConfig,
    EvaluationConfig,
    GraphSearchConfig,
    LocalModelConfig,
    OpenRouterConfig,
    PromptMetadata,
    PromptsResponse,
    PromptUpdateRequest,
    PromptUpdateResponse,
    RagweldConfig,
    SparseSearchConfig,
    SystemPromptsConfig,
)

__all__ = [
    "ActiveSources",
    "ChatConfig",
    "ChatDebugInfo",
    "ChatRequest",
    "ChatResponse",
    "Chunk",
    "ChunkMatch",
    "Corpus",
    "CorpusScope",
    "CorpusSnapshot",
    "Entity",
    "EvalAnalyzeComparisonRequest",
    "EvalAnalyzeComparisonResponse",
    "EvalConfigDiff",
    "EvalDatasetItem",
    "EvalDoc",
    "EvalMetrics",
    "EvalRequest",
    "EvalResult",
    "EvalRun",
    "EvalRunMeta",
    "EvalRunSummary",
    "EvalRunsResponse",
    "EvaluationConfig",
    "GraphNeighborsResponse",
    "GraphSearchConfig",
    "GraphStats",
    "HealthServiceStatus",
    "HealthStatus",
    "IndexResponse",
    "LocalModelConfig",
    "McpSearchHit",
    "McpSearchResponse",
    "Message",
    "OpenRouterConfig",
    "PromptMetadata",
    "PromptsResponse",
    "PromptUpdateRequest",
    "PromptUpdateResponse",
    "ProviderHealth",
    "ProvidersHealthResponse",
    "RagweldConfig",
    "Relationship",
    "SearchRequest",
    "SearchResponse",
    "SparseSearchConfig",
    "SystemPromptsConfig",
]
