"""Chat API should always respond, with or without a configured provider."""

from __future__ import annotations

import json
from typing import Any

import pytest
from httpx import AsyncClient

from server.api.chat import get_chat_generator
from server.chat.generation import GenerationResult
from server.main import app


def _sse_events(text: str) -> list[dict[str, Any]]:
    return [json.loads(line[len("data: ") :]) for line in text.split("\n\n") if line.startswith("data: ")]


@pytest.mark.asyncio
async def test_chat_returns_200_without_provider_key(
    client: AsyncClient, monkeypatch: pytest.MonkeyPatch, generator_calls: list[dict[str, Any]]
) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    res = await client.post("/api/chat", json={"message": "how is the webhook verified?", "corpus_id": "faxbot"})

    assert res.status_code == 200
    body = res.json()
    assert body["message"]["role"] == "assistant"
    assert body["message"]["content"].startswith("Demo backend is not fully configured.")
    assert "OPENAI_API_KEY" in body["message"]["content"]
    assert body["debug"]["llm_used"] is False
    assert body["debug"]["provider"] == "openai"
    assert body["sources"]
    assert body["run_id"].startswith("rw-run-")
    assert body["ended_at_ms"] >= body["started_at_ms"]
    assert generator_calls == []


@pytest.mark.asyncio
async def test_chat_uses_generator_when_configured(client: AsyncClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-key-1234567890")

    async def generate(**kwargs: Any) -> GenerationResult:
        return GenerationResult(text="See [1].", tokens_used=9, provider_response_id=None)

    app.dependency_overrides[get_chat_generator] = lambda: generate

    res = await client.post("/api/chat", json={"message": "webhook", "corpus_id": "faxbot", "conversation_id": "c1"})

    assert res.status_code == 200
    body = res.json()
    assert body["message"]["content"] == "See [1]."
    assert body["tokens_used"] == 9
    assert body["conversation_id"] == "c1"
    assert body["debug"]["llm_used"] is True


@pytest.mark.asyncio
async def test_chat_provider_error_degrades(
    client: AsyncClient, monkeypatch: pytest.MonkeyPatch, generator_calls: list[dict[str, Any]]
) -> None:
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-key-1234567890")
    res = await client.post("/api/chat", json={"message": "webhook", "corpus_id": "faxbot"})
    assert res.status_code == 200
    assert len(generator_calls) == 1
    assert res.json()["debug"]["llm_error"]


@pytest.mark.asyncio
async def test_chat_requires_message(client: AsyncClient) -> None:
    res = await client.post("/api/chat", json={"message": "  ", "corpus_id": "faxbot"})
    assert res.status_code == 422
    assert res.json()["detail"] == "message is required"

    stream = await client.post("/api/chat/stream", json={"message": "", "corpus_id": "faxbot"})
    assert stream.status_code == 422


@pytest.mark.asyncio
async def test_chat_stream_emits_text_then_done(client: AsyncClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    res = await client.post("/api/chat/stream", json={"message": "webhook", "corpus_id": "faxbot"})

    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/event-stream")
    assert res.headers["cache-control"] == "no-cache"
    assert res.headers["x-accel-buffering"] == "no"
    events = _sse_events(res.text)
    assert [e["type"] for e in events] == ["text", "done"]
    assert events[0]["content"].startswith("Demo backend is not fully configured.")
    assert events[1]["sources"]
    assert events[1]["debug"]["llm_used"] is False


@pytest.mark.asyncio
async def test_providers_health_hosted(client: AsyncClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)

    res = await client.get("/api/chat/providers/health")

    assert res.status_code == 200
    providers = {p["provider"]: p for p in res.json()["providers"]}
    assert set(providers) == {"openai", "openrouter", "local"}
    assert providers["local"]["status"] == "unavailable"
    assert "hosted" in providers["local"]["error"]
