"""API tests for system prompt slots."""

import pytest
from httpx import AsyncClient

from server.services.config_store import DEFAULT_RAG_SYSTEM_PROMPT, PROMPT_SLOTS


@pytest.mark.asyncio
async def test_list_prompts_returns_every_slot_with_metadata(client: AsyncClient) -> None:
    res = await client.get("/api/prompts")
    assert res.status_code == 200
    body = res.json()
    assert set(body["prompts"]) == set(PROMPT_SLOTS)
    assert body["prompts"]["main_rag_chat"] == DEFAULT_RAG_SYSTEM_PROMPT
    meta = body["metadata"]["main_rag_chat"]
    assert meta == {"label": "Main RAG Chat", "category": "chat", "is_default": True}


@pytest.mark.asyncio
async def test_update_and_reset_prompt(client: AsyncClient) -> None:
    res = await client.put("/api/prompts/main_rag_chat", params={"corpus_id": "faxbot"}, json={"value": "Be terse."})
    assert res.status_code == 200
    assert res.json() == {"ok": True, "prompt_key": "main_rag_chat", "message": "Prompt updated"}

    listed = (await client.get("/api/prompts", params={"corpus_id": "faxbot"})).json()
    assert listed["prompts"]["main_rag_chat"] == "Be terse."
    assert listed["metadata"]["main_rag_chat"]["is_default"] is False

    # Global scope is untouched.
    global_listed = (await client.get("/api/prompts")).json()
    assert global_listed["prompts"]["main_rag_chat"] == DEFAULT_RAG_SYSTEM_PROMPT

    reset = await client.post("/api/prompts/reset/main_rag_chat", params={"corpus_id": "faxbot"})
    assert reset.status_code == 200
    after = (await client.get("/api/prompts", params={"corpus_id": "faxbot"})).json()
    assert after["prompts"]["main_rag_chat"] == DEFAULT_RAG_SYSTEM_PROMPT


@pytest.mark.asyncio
async def test_update_prompt_requires_value(client: AsyncClient) -> None:
    res = await client.put("/api/prompts/main_rag_chat", json={"value": "   "})
    assert res.status_code == 422
    assert res.json()["detail"] == "value is required"


@pytest.mark.asyncio
async def test_unknown_prompt_key_is_404(client: AsyncClient) -> None:
    res = await client.put("/api/prompts/nope", json={"value": "x"})
    assert res.status_code == 404
    assert res.json()["detail"] == "Unknown prompt key: nope"

    reset = await client.post("/api/prompts/reset/nope")
    assert reset.status_code == 404
