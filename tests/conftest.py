"""Pytest fixtures for ragweld demo API tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from server.api.chat import get_chat_generator
from server.api.deps import get_config_store, get_corpus_store, get_eval_service, get_settings
from server.chat.generation import GenerationResult
from server.config import ServerSettings
from server.main import app
from server.models.ragweld_config_model import RagweldConfig
from server.services.config_store import ConfigStore
from server.services.eval_service import EvalService, LatestRunCache
from tests.fakes import FakeCorpusStore, StepClock, build_demo_snapshot


@pytest.fixture
def store() -> FakeCorpusStore:
    fake = FakeCorpusStore()
    fake.load(build_demo_snapshot("faxbot"))
    return fake


@pytest.fixture
def config_store() -> ConfigStore:
    # Model defaults only; never read a ragweld_config.json from the working tree.
    return ConfigStore(template_loader=RagweldConfig)


@pytest.fixture
def settings() -> ServerSettings:
    return ServerSettings(database_url="postgresql://unused", hosted=True, read_only=True)


@pytest.fixture
def eval_cache() -> LatestRunCache:
    return LatestRunCache()


@pytest.fixture
def generator_calls() -> list[dict[str, Any]]:
    return []


@pytest.fixture
def chat_generator(generator_calls: list[dict[str, Any]]):
    """Default generator: always fails like an unconfigured provider."""

    async def _generate(**kwargs: Any) -> GenerationResult:
        generator_calls.append(kwargs)
        raise RuntimeError("OpenAI not configured (set OPENAI_API_KEY)")

    return _generate


@pytest_asyncio.fixture
async def client(
    store: FakeCorpusStore,
    config_store: ConfigStore,
    settings: ServerSettings,
    eval_cache: LatestRunCache,
    chat_generator,
) -> AsyncGenerator[AsyncClient, None]:
    """Async test client with the store, config and generator swapped for fakes."""
    clock = StepClock()

    async def _store() -> FakeCorpusStore:
        return store

    def _eval_service() -> EvalService:
        return EvalService(store, config_store, cache=eval_cache, clock=clock)  # type: ignore[arg-type]

    app.dependency_overrides[get_corpus_store] = _store
    app.dependency_overrides[get_config_store] = lambda: config_store
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_eval_service] = _eval_service
    app.dependency_overrides[get_chat_generator] = lambda: chat_generator

    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()
