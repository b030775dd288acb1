from __future__ import annotations

import asyncio
import json
import logging
import math
import re
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import UTC, datetime

from server.chat.generation import GenerationResult, generate_chat_text, probe_provider
from server.chat.prompt_builder import build_rag_prompt
from server.chat.provider_router import (
    ProviderKind,
    ProviderRoute,
    ProviderUnavailableError,
    parse_model_override,
    select_provider_route,
)
from server.chat.source_router import resolve_sources
from server.models.ragweld_config_model import (
    ChatConfig,
    ChatDebugInfo,
    ChatRequest,
    ChatResponse,
    ChunkMatch,
    Message,
    ProviderHealth,
    RagweldConfig,
)
from server.observability.metrics import CHAT_GENERATION_LATENCY_SECONDS, CHAT_PROVIDER_ERRORS_TOTAL, timed
from server.retrieval.bounds import SEARCH_TOP_K_MAX, SEARCH_TOP_K_MIN, clamp_int
from server.retrieval.sparse import SparseRetriever
from server.services.config_store import ConfigStore

logger = logging.getLogger(__name__)

# Smallest per-corpus fetch when the retrieval budget is split across corpora.
_MIN_PER_CORPUS_K = 3

Generator = Callable[..., Awaitable[GenerationResult]]


def _safe_error_message(e: Exception, *, max_len: int = 400) -> str:
    # Best-effort redaction; keep debugging useful without leaking secrets.
    msg = str(e) or type(e).__name__
    msg = re.sub(r"sk-[A-Za-z0-9_\-]{10,}", "sk-REDACTED", msg)
    msg = re.sub(r"(Bearer\s+)[A-Za-z0-9_.\-]{10,}", r"\1REDACTED", msg)
    msg = msg.replace("\n", " ").replace("\r", " ").strip()
    return msg[: int(max_len)]


def _format_diagnostic_answer(*, error: str, chunks: list[ChunkMatch]) -> str:
    """Deterministic, LLM-free answer that still gives the user something actionable."""
    lines = ["Demo backend is not fully configured.", "", error]
    if chunks:
        lines.extend(["", "Top matching sources:"])
        for i, ch in enumerate(chunks[:8], start=1):
            lines.append(f"[{i}] {ch.file_path}:{int(ch.start_line)}-{int(ch.end_line)} (score {float(ch.score):.4f})")
    return "\n".join(lines)


def per_corpus_top_k(top_k: int, n_corpora: int) -> int:
    return max(_MIN_PER_CORPUS_K, math.ceil(top_k / max(1, n_corpora)))


class ChatOrchestrator:
    """Retrieval-augmented answer for one chat message.

    Retrieval failures propagate (the store is required). Generation failures
    never do: the caller always gets an assistant message, either the model's
    answer or a diagnostic that lists the retrieved sources.
    """

    def __init__(
        self,
        *,
        retriever: SparseRetriever,
        config_store: ConfigStore,
        hosted: bool = True,
        generator: Generator = generate_chat_text,
        clock: Callable[[], float] = time.time,
    ):
        self.retriever = retriever
        self.config_store = config_store
        self.hosted = hosted
        self.generator = generator
        self.clock = clock

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    async def retrieve(self, corpus_ids: list[str], query: str, top_k: int, config: RagweldConfig) -> list[ChunkMatch]:
        if not corpus_ids:
            return []
        k = per_corpus_top_k(top_k, len(corpus_ids))
        ts_config = config.sparse_search.ts_config
        per_corpus = await asyncio.gather(
            *(self.retriever.search(cid, query, k, ts_config=ts_config) for cid in corpus_ids)
        )
        merged = [m for matches in per_corpus for m in matches]
        merged.sort(key=lambda m: m.score, reverse=True)
        return merged[:top_k]

    async def answer(self, request: ChatRequest) -> ChatResponse:
        started_at_ms = self._now_ms()
        run_id = f"rw-run-{started_at_ms}"
        conversation_id = (request.conversation_id or "").strip() or f"rw-{started_at_ms}"

        corpus_ids = resolve_sources(request.sources, request.corpus_id)
        config = self.config_store.get(corpus_ids[0] if corpus_ids else None)
        chat_cfg = config.chat
        top_k = clamp_int(
            request.top_k if request.top_k is not None else chat_cfg.top_k,
            SEARCH_TOP_K_MIN,
            SEARCH_TOP_K_MAX,
            chat_cfg.top_k,
        )

        sparse_enabled = bool(request.include_sparse and config.sparse_search.enabled)
        sources = await self.retrieve(corpus_ids, request.message, top_k, config) if sparse_enabled else []

        system_prompt, user_prompt = build_rag_prompt(
            question=request.message,
            chunks=sources,
            system_prompt=self.config_store.get_prompt(corpus_ids[0] if corpus_ids else None, "main_rag_chat"),
            max_blocks=chat_cfg.max_context_chunks,
        )

        requested_kind, _ = parse_model_override(request.model_override)
        provider = (requested_kind or ProviderKind(chat_cfg.default_provider)).value
        model: str | None = None
        llm_error: str | None = None
        tokens_used = 0
        try:
            route = select_provider_route(
                chat_config=chat_cfg,
                model_override=request.model_override,
                hosted=self.hosted,
            )
            provider, model = route.kind.value, route.model
            with timed(CHAT_GENERATION_LATENCY_SECONDS):
                result = await self.generator(
                    route=route,
                    chat_config=chat_cfg,
                    system_prompt=system_prompt,
                    user_prompt=user_prompt,
                )
            content = result.text
            tokens_used = result.tokens_used
        except Exception as e:
            llm_error = _safe_error_message(e)
            logger.warning("chat generation failed (provider=%s): %s", provider, llm_error)
            CHAT_PROVIDER_ERRORS_TOTAL.labels(provider=provider).inc()
            content = _format_diagnostic_answer(error=llm_error, chunks=sources)

        ended_at_ms = self._now_ms()
        debug = ChatDebugInfo(
            confidence=0.8 if sources else 0.4,
            include_vector=bool(request.include_vector),
            include_sparse=bool(request.include_sparse),
            include_graph=bool(request.include_graph),
            vector_enabled=False,
            sparse_enabled=sparse_enabled,
            graph_enabled=False,
            fusion_method="sparse",
            corpus_ids=corpus_ids,
            final_k_used=top_k,
            final_results=len(sources),
            llm_used=llm_error is None,
            llm_error=llm_error,
            provider=provider,
            model=model,
        )
        return ChatResponse(
            run_id=run_id,
            started_at_ms=started_at_ms,
            ended_at_ms=ended_at_ms,
            debug=debug,
            conversation_id=conversation_id,
            message=Message(role="assistant", content=content, timestamp=datetime.now(UTC)),
            sources=sources,
            tokens_used=tokens_used,
        )

    async def stream(self, request: ChatRequest) -> AsyncIterator[str]:
        """SSE frames: exactly one `text` event, then one `done` event."""
        response = await self.answer(request)
        yield f"data: {json.dumps({'type': 'text', 'content': response.message.content})}\n\n"
        done = {
            "type": "done",
            "sources": [s.model_dump(mode="json") for s in response.sources],
            "conversation_id": response.conversation_id,
            "run_id": response.run_id,
            "started_at_ms": response.started_at_ms,
            "ended_at_ms": response.ended_at_ms,
            "debug": response.debug.model_dump(mode="json"),
        }
        yield f"data: {json.dumps(done)}\n\n"


async def check_providers(chat_config: ChatConfig, *, hosted: bool) -> list[ProviderHealth]:
    """Probe every provider kind; local is reported unavailable in hosted mode."""
    checks: list[ProviderHealth] = []
    for kind in ProviderKind:
        try:
            route: ProviderRoute = select_provider_route(
                chat_config=chat_config,
                model_override=f"{kind.value}:",
                hosted=hosted,
            )
        except ProviderUnavailableError as e:
            base_url = {
                ProviderKind.OPENAI: chat_config.openai_base_url,
                ProviderKind.OPENROUTER: chat_config.openrouter.base_url,
                ProviderKind.LOCAL: chat_config.local.base_url,
            }[kind]
            checks.append(ProviderHealth(provider=kind.value, base_url=base_url, status="unavailable", error=str(e)))
            continue
        checks.append(
            await probe_provider(
                kind=kind,
                base_url=route.base_url,
                api_key=route.api_key,
                timeout_s=chat_config.health_timeout_s,
            )
        )
    return checks
