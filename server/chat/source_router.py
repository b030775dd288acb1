"""Helpers for resolving the corpora a chat message retrieves from.

Recall (chat memory) is represented by the corpus id ``recall_default`` and is
never searched as a document corpus.
"""

from __future__ import annotations

from server.models.ragweld_config_model import ActiveSources
from server.services.config_store import RECALL_CORPUS_ID


def resolve_sources(sources: ActiveSources | None, fallback_corpus_id: str | None = None) -> list[str]:
    """Resolve and normalize the corpus ids for a chat request.

    Explicit sources win; a single fallback corpus id is used only when no
    explicit source survives normalization.
    """
    resolved: list[str] = []
    seen: set[str] = set()

    for corpus_id in sources.corpus_ids if sources is not None else []:
        cid = (corpus_id or "").strip()
        if not cid or cid == RECALL_CORPUS_ID or cid in seen:
            continue
        seen.add(cid)
        resolved.append(cid)

    if resolved:
        return resolved

    fallback = (fallback_corpus_id or "").strip()
    if fallback and fallback != RECALL_CORPUS_ID:
        return [fallback]
    return []
