"""Tests for the chat orchestrator (retrieval, generation and fallback)."""

from __future__ import annotations

import json

import pytest

from server.chat.generation import GenerationResult
from server.chat.handler import ChatOrchestrator, _safe_error_message, check_providers, per_corpus_top_k
from server.models.ragweld_config_model import ActiveSources, ChatConfig, ChatRequest, RagweldConfig
from server.retrieval.sparse import SparseRetriever
from server.services.config_store import ConfigStore
from tests.fakes import FakeCorpusStore, build_demo_snapshot


def _orchestrator(generator, *, store: FakeCorpusStore | None = None) -> ChatOrchestrator:
    if store is None:
        store = FakeCorpusStore()
        store.load(build_demo_snapshot("faxbot"))
    return ChatOrchestrator(
        retriever=SparseRetriever(store),  # type: ignore[arg-type]
        config_store=ConfigStore(template_loader=RagweldConfig),
        generator=generator,
        clock=lambda: 1700000000.0,
    )


async def _failing(**kwargs) -> GenerationResult:
    raise RuntimeError("upstream said no: Bearer abcdefghijklmnop")


async def _ok(**kwargs) -> GenerationResult:
    return GenerationResult(text="The webhook is verified in [1].", tokens_used=42, provider_response_id="r1")


def test_per_corpus_top_k() -> None:
    assert per_corpus_top_k(8, 1) == 8
    assert per_corpus_top_k(8, 2) == 4
    assert per_corpus_top_k(8, 4) == 3
    assert per_corpus_top_k(10, 3) == 4


def test_safe_error_message_redacts_secrets() -> None:
    msg = _safe_error_message(RuntimeError("bad key sk-abcdefghijklmnop and Bearer zzzzzzzzzzzz\nmore"))
    assert "sk-REDACTED" in msg
    assert "Bearer REDACTED" in msg
    assert "\n" not in msg


@pytest.mark.asyncio
async def test_answer_uses_generator_output(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-key-1234567890")
    calls: list[dict] = []

    async def generator(**kwargs) -> GenerationResult:
        calls.append(kwargs)
        return await _ok(**kwargs)

    response = await _orchestrator(generator).answer(ChatRequest(message="webhook signature", corpus_id="faxbot"))

    assert response.message.content == "The webhook is verified in [1]."
    assert response.tokens_used == 42
    assert response.debug.llm_used is True
    assert response.debug.provider == "openai"
    assert response.debug.model == "gpt-4o-mini"
    assert response.debug.confidence == 0.8
    assert response.sources[0].file_path == "api/app/phaxio_service.py"
    assert response.run_id == "rw-run-1700000000000"
    assert response.conversation_id == "rw-1700000000000"
    assert "[1] api/app/phaxio_service.py:1-40" in calls[0]["user_prompt"]


@pytest.mark.asyncio
async def test_answer_degrades_to_diagnostic_on_provider_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-key-1234567890")
    response = await _orchestrator(_failing).answer(ChatRequest(message="webhook", corpus_id="faxbot"))

    assert response.debug.llm_used is False
    assert response.debug.llm_error is not None
    assert "REDACTED" in response.debug.llm_error
    assert response.message.role == "assistant"
    assert response.message.content.startswith("Demo backend is not fully configured.")
    assert "Top matching sources:" in response.message.content


@pytest.mark.asyncio
async def test_answer_without_api_key_never_calls_generator(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    calls: list[dict] = []

    async def generator(**kwargs) -> GenerationResult:
        calls.append(kwargs)
        return await _ok(**kwargs)

    response = await _orchestrator(generator).answer(ChatRequest(message="webhook", corpus_id="faxbot"))

    assert calls == []
    assert response.debug.llm_used is False
    assert "OPENAI_API_KEY" in (response.debug.llm_error or "")


@pytest.mark.asyncio
async def test_answer_without_sources_has_low_confidence(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-key-1234567890")
    response = await _orchestrator(_ok).answer(ChatRequest(message="zebra", corpus_id="faxbot"))
    assert response.sources == []
    assert response.debug.confidence == 0.4


@pytest.mark.asyncio
async def test_answer_merges_multiple_corpora_and_keeps_conversation(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-key-1234567890")
    store = FakeCorpusStore()
    store.load(build_demo_snapshot("faxbot"))
    store.load(build_demo_snapshot("faxbot_docs"))

    response = await _orchestrator(_ok, store=store).answer(
        ChatRequest(
            message="webhook",
            sources=ActiveSources(corpus_ids=["faxbot", "faxbot_docs", "recall_default"]),
            conversation_id="conv-1",
            top_k=4,
        )
    )

    assert response.conversation_id == "conv-1"
    assert response.debug.corpus_ids == ["faxbot", "faxbot_docs"]
    assert response.debug.final_k_used == 4
    assert {s.metadata["corpus_id"] for s in response.sources} == {"faxbot", "faxbot_docs"}
    scores = [s.score for s in response.sources]
    assert scores == sorted(scores, reverse=True)


@pytest.mark.asyncio
async def test_stream_emits_text_then_done(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-key-1234567890")
    frames = [f async for f in _orchestrator(_ok).stream(ChatRequest(message="webhook", corpus_id="faxbot"))]

    assert len(frames) == 2
    assert all(f.startswith("data: ") and f.endswith("\n\n") for f in frames)
    text = json.loads(frames[0][len("data: ") :])
    done = json.loads(frames[1][len("data: ") :])
    assert text == {"type": "text", "content": "The webhook is verified in [1]."}
    assert done["type"] == "done"
    assert done["run_id"] == "rw-run-1700000000000"
    assert done["sources"]


@pytest.mark.asyncio
async def test_check_providers_hosted_without_keys(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)

    checks = await check_providers(ChatConfig(), hosted=True)

    assert [c.provider for c in checks] == ["openai", "openrouter", "local"]
    assert all(c.status == "unavailable" for c in checks)
