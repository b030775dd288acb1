"""Scope-aware configuration store.

Each scope (a corpus id, or "global") owns a full RagweldConfig tree held in
process memory. Scopes are created lazily from the global template and live
until the process exits or the scope is reset. Writes are last-write-wins.

Patches are applied with `deep_merge` on the plain-dict form of the tree and
re-validated, so unknown sections are rejected at patch time and every Field
constraint still applies to the merged result.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Literal

from server.config import load_config as load_global_config
from server.models.ragweld_config_model import RagweldConfig

logger = logging.getLogger(__name__)

GLOBAL_SCOPE = "global"

# Pseudo-corpus used by the chat memory UI. It is never a retrieval source.
RECALL_CORPUS_ID = "recall_default"


class UnknownConfigSectionError(KeyError):
    """Raised when a patch targets a section the settings tree does not have."""


class UnknownPromptError(KeyError):
    """Raised for prompt keys that are not registered slots."""


def deep_merge(base: Mapping[str, Any], patch: Mapping[str, Any]) -> dict[str, Any]:
    """Return `base` with `patch` applied.

    Nested mappings merge key by key; arrays and scalars in `patch` replace
    the base value wholesale. Neither input is mutated.
    """
    merged: dict[str, Any] = {k: copy.deepcopy(v) for k, v in base.items()}
    for key, value in patch.items():
        current = merged.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def normalize_scope(scope: str | None) -> str:
    s = (scope or "").strip()
    return s or GLOBAL_SCOPE


# ---------------------------------------------------------------------------
# Prompt slots
# ---------------------------------------------------------------------------

PromptCategory = Literal["chat", "retrieval", "indexing", "evaluation"]


@dataclass(frozen=True)
class PromptSlot:
    key: str
    label: str
    category: PromptCategory
    default: str


DEFAULT_RAG_SYSTEM_PROMPT = "\n".join(
    [
        "You are ragweld, a retrieval-augmented assistant.",
        "Answer using ONLY the provided context when possible.",
        "If the context is insufficient, say what is missing and suggest where to look.",
        "Cite sources inline by referencing the bracketed chunk numbers like [1], [2].",
    ]
)

PROMPT_SLOTS: dict[str, PromptSlot] = {
    slot.key: slot
    for slot in (
        PromptSlot("main_rag_chat", "Main RAG Chat", "chat", DEFAULT_RAG_SYSTEM_PROMPT),
        PromptSlot(
            "query_rewrite",
            "Query Rewrite",
            "retrieval",
            "You rewrite developer questions into search-optimized queries without changing meaning.",
        ),
        PromptSlot(
            "query_expansion",
            "Query Expansion",
            "retrieval",
            "\n".join(
                [
                    "You are a code search query expander. Given a developer's question,",
                    "generate alternative search queries that might find the same code using different terminology.",
                    "Output one query variant per line, 3-8 words each, with no explanations.",
                ]
            ),
        ),
        PromptSlot(
            "semantic_chunk_summaries",
            "Semantic Chunk Summaries",
            "indexing",
            "Summarize this chunk for code search: its purpose, key symbols, and domain concepts. Reply as JSON.",
        ),
        PromptSlot(
            "lightweight_chunk_summaries",
            "Lightweight Chunk Summaries",
            "indexing",
            "Summarize this chunk in one sentence, naming the main symbol it defines.",
        ),
        PromptSlot(
            "semantic_kg_extraction",
            "Semantic KG Extraction",
            "indexing",
            "Extract entities (module, class, function, concept) and their relations from this chunk as JSON.",
        ),
        PromptSlot(
            "eval_analysis",
            "Eval Analysis",
            "evaluation",
            "Compare two retrieval evaluation runs. Lead with regressions, then tie each change to a config diff.",
        ),
    )
}


class ConfigStore:
    """In-memory RagweldConfig per scope."""

    def __init__(self, template_loader: Callable[[], RagweldConfig] = load_global_config):
        self._template_loader = template_loader
        self._scopes: dict[str, RagweldConfig] = {}

    def _defaults_for(self, scope: str) -> RagweldConfig:
        cfg = self._template_loader().model_copy(deep=True)
        if scope != GLOBAL_SCOPE and scope != RECALL_CORPUS_ID:
            sources = cfg.chat.active_sources.corpus_ids
            if scope not in sources:
                sources.insert(0, scope)
        return cfg

    def get(self, scope: str | None = None) -> RagweldConfig:
        key = normalize_scope(scope)
        cfg = self._scopes.get(key)
        if cfg is None:
            cfg = self._defaults_for(key)
            self._scopes[key] = cfg
        return cfg

    def peek(self, scope: str | None = None) -> RagweldConfig:
        """Read a scope without materializing it; unknown scopes yield fresh defaults."""
        key = normalize_scope(scope)
        cfg = self._scopes.get(key)
        return cfg if cfg is not None else self._defaults_for(key)

    def has_scope(self, scope: str | None) -> bool:
        return normalize_scope(scope) in self._scopes

    def replace(self, scope: str | None, config: RagweldConfig) -> RagweldConfig:
        key = normalize_scope(scope)
        self._scopes[key] = config
        return config

    def patch_section(self, scope: str | None, section: str, partial: Mapping[str, Any]) -> RagweldConfig:
        """Deep-merge `partial` into one top-level section and re-validate.

        Raises UnknownConfigSectionError for unknown sections and
        pydantic.ValidationError when the merged tree is invalid; in both
        cases the stored tree is unchanged.
        """
        if section not in RagweldConfig.model_fields:
            raise UnknownConfigSectionError(section)
        current = self.get(scope)
        base = current.model_dump()
        section_base = base.get(section)
        if not isinstance(section_base, Mapping):
            raise UnknownConfigSectionError(section)
        base[section] = deep_merge(section_base, partial)
        updated = RagweldConfig.model_validate(base)
        return self.replace(scope, updated)

    def reset(self, scope: str | None = None) -> RagweldConfig:
        """Discard the scope; the next read re-derives defaults."""
        key = normalize_scope(scope)
        self._scopes.pop(key, None)
        logger.info("config scope reset: %s", key)
        return self.get(key)

    def clear(self) -> None:
        self._scopes.clear()

    # -- prompt slots --------------------------------------------------------

    def get_prompt(self, scope: str | None, key: str) -> str:
        slot = PROMPT_SLOTS.get(key)
        if slot is None:
            raise UnknownPromptError(key)
        value = getattr(self.get(scope).system_prompts, key)
        return value if value else slot.default

    def is_prompt_default(self, scope: str | None, key: str) -> bool:
        if key not in PROMPT_SLOTS:
            raise UnknownPromptError(key)
        return not getattr(self.get(scope).system_prompts, key)

    def set_prompt(self, scope: str | None, key: str, value: str) -> RagweldConfig:
        if key not in PROMPT_SLOTS:
            raise UnknownPromptError(key)
        return self.patch_section(scope, "system_prompts", {key: value})

    def reset_prompt(self, scope: str | None, key: str) -> RagweldConfig:
        if key not in PROMPT_SLOTS:
            raise UnknownPromptError(key)
        return self.patch_section(scope, "system_prompts", {key: None})

    def list_prompts(self, scope: str | None) -> dict[str, str]:
        return {key: self.get_prompt(scope, key) for key in PROMPT_SLOTS}


_store: ConfigStore | None = None


def get_config_store() -> ConfigStore:
    """Get the process-wide ConfigStore singleton."""
    global _store
    if _store is None:
        _store = ConfigStore()
    return _store
