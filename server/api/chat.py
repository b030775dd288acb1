"""Chat API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from starlette.responses import StreamingResponse

from server.api.deps import get_config_store, get_corpus_store, get_settings
from server.chat.generation import generate_chat_text
from server.chat.handler import ChatOrchestrator, Generator, check_providers
from server.config import ServerSettings
from server.db.postgres import PostgresClient
from server.models.ragweld_config_model import ChatRequest, ChatResponse, ProvidersHealthResponse
from server.observability.metrics import CHAT_REQUESTS_TOTAL
from server.retrieval.sparse import SparseRetriever
from server.services.config_store import ConfigStore

router = APIRouter(tags=["chat"])

_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def get_chat_generator() -> Generator:
    """Outbound generation call. Override in tests to avoid network access."""
    return generate_chat_text


def get_chat_orchestrator(
    store: PostgresClient = Depends(get_corpus_store),
    config_store: ConfigStore = Depends(get_config_store),
    settings: ServerSettings = Depends(get_settings),
    generator: Generator = Depends(get_chat_generator),
) -> ChatOrchestrator:
    return ChatOrchestrator(
        retriever=SparseRetriever(store),
        config_store=config_store,
        hosted=settings.hosted,
        generator=generator,
    )


def _require_message(request: ChatRequest) -> None:
    if not request.message.strip():
        raise HTTPException(status_code=422, detail="message is required")


@router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest, orchestrator: ChatOrchestrator = Depends(get_chat_orchestrator)) -> ChatResponse:
    """Answer one message with retrieved context (never fails on provider errors)."""
    _require_message(request)
    CHAT_REQUESTS_TOTAL.labels(mode="json").inc()
    return await orchestrator.answer(request)


@router.post("/chat/stream")
async def chat_stream(
    request: ChatRequest,
    orchestrator: ChatOrchestrator = Depends(get_chat_orchestrator),
) -> StreamingResponse:
    """Same answer as /chat, delivered as one `text` event followed by one `done` event."""
    _require_message(request)
    CHAT_REQUESTS_TOTAL.labels(mode="stream").inc()
    return StreamingResponse(orchestrator.stream(request), media_type="text/event-stream", headers=_SSE_HEADERS)


@router.get("/chat/providers/health", response_model=ProvidersHealthResponse)
async def providers_health(
    config_store: ConfigStore = Depends(get_config_store),
    settings: ServerSettings = Depends(get_settings),
) -> ProvidersHealthResponse:
    providers = await check_providers(config_store.get().chat, hosted=settings.hosted)
    return ProvidersHealthResponse(providers=providers)
