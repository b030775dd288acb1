"""API tests for scoped configuration endpoints."""

import pytest
from httpx import AsyncClient

from server.models.ragweld_config_model import RagweldConfig


@pytest.mark.asyncio
async def test_get_config_defaults(client: AsyncClient) -> None:
    res = await client.get("/api/config")
    assert res.status_code == 200
    body = res.json()
    assert set(body) == set(RagweldConfig.model_fields)
    assert body["chat"]["temperature"] == RagweldConfig().chat.temperature


@pytest.mark.asyncio
async def test_corpus_scope_lists_itself_as_active_source(client: AsyncClient) -> None:
    res = await client.get("/api/config", params={"corpus_id": "faxbot"})
    assert res.status_code == 200
    assert res.json()["chat"]["active_sources"]["corpus_ids"] == ["faxbot"]


@pytest.mark.asyncio
async def test_patch_section_deep_merges(client: AsyncClient) -> None:
    before = (await client.get("/api/config", params={"corpus_id": "faxbot"})).json()

    res = await client.patch("/api/config/chat", params={"corpus_id": "faxbot"}, json={"temperature": 0.9})

    assert res.status_code == 200
    chat = res.json()["chat"]
    assert chat["temperature"] == 0.9
    assert chat["max_tokens"] == before["chat"]["max_tokens"]

    # Other scopes are untouched.
    other = (await client.get("/api/config", params={"corpus_id": "faxbot_docs"})).json()
    assert other["chat"]["temperature"] == before["chat"]["temperature"]


@pytest.mark.asyncio
async def test_patch_accepts_legacy_repo_id(client: AsyncClient) -> None:
    res = await client.patch("/api/config/evaluation", params={"repo_id": "faxbot"}, json={"seed": 7})
    assert res.status_code == 200
    scoped = (await client.get("/api/config", params={"corpus_id": "faxbot"})).json()
    assert scoped["evaluation"]["seed"] == 7


@pytest.mark.asyncio
async def test_patch_unknown_section_is_404(client: AsyncClient) -> None:
    res = await client.patch("/api/config/nope", json={"x": 1})
    assert res.status_code == 404
    assert res.json()["detail"] == "Unknown config section: nope"


@pytest.mark.asyncio
async def test_patch_invalid_value_is_422_and_keeps_config(client: AsyncClient) -> None:
    res = await client.patch("/api/config/chat", json={"temperature": 50})
    assert res.status_code == 422
    after = (await client.get("/api/config")).json()
    assert after["chat"]["temperature"] == RagweldConfig().chat.temperature


@pytest.mark.asyncio
async def test_patch_unknown_key_is_422_naming_the_field(client: AsyncClient) -> None:
    res = await client.patch(
        "/api/config/chat", params={"corpus_id": "faxbot"}, json={"unknown_knob": {"x": 1}, "temperature": 0.5}
    )
    assert res.status_code == 422
    assert "unknown_knob" in res.json()["detail"]
    after = (await client.get("/api/config", params={"corpus_id": "faxbot"})).json()
    assert "unknown_knob" not in after["chat"]
    assert after["chat"]["temperature"] == RagweldConfig().chat.temperature


@pytest.mark.asyncio
async def test_put_replaces_and_reset_restores(client: AsyncClient) -> None:
    cfg = RagweldConfig()
    cfg.sparse_search.top_k = 3
    res = await client.put("/api/config", params={"corpus_id": "faxbot"}, json=cfg.model_dump(mode="json"))
    assert res.status_code == 200
    assert res.json()["sparse_search"]["top_k"] == 3

    reset = await client.post("/api/config/reset", params={"corpus_id": "faxbot"})
    assert reset.status_code == 200
    assert reset.json()["sparse_search"]["top_k"] == RagweldConfig().sparse_search.top_k
