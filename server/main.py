from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from pathlib import Path


def _load_dotenv_file(dotenv_path: Path) -> bool:
    """Load a local .env without clobbering variables the host already set.

    Hosted deployments inject DATABASE_URL and provider keys directly, so a
    missing file is normal and returns False.
    """
    from dotenv import load_dotenv

    if not dotenv_path.exists():
        return False
    return bool(load_dotenv(dotenv_path=dotenv_path, override=False))


# Must run before the settings below are read.
_load_dotenv_file(Path(__file__).resolve().parents[1] / ".env")

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import Response

from server.api import chat, config, corpora, dataset, eval, graph, health, index, mcp, prompts, search
from server.api.deps import get_settings
from server.db.postgres import PostgresClient
from server.observability.metrics import SEARCH_ERRORS_TOTAL, SEARCH_LATENCY_SECONDS, render_latest

logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

API_ROUTERS: tuple[APIRouter, ...] = (
    health.router,
    config.router,
    prompts.router,
    corpora.router,
    index.router,
    search.router,
    mcp.router,
    chat.router,
    graph.router,
    dataset.router,
    eval.router,
)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    logger.info("ragweld demo API starting (hosted=%s, read_only=%s)", settings.hosted, settings.read_only)
    try:
        yield
    finally:
        await PostgresClient.close_shared_pools()


app = FastAPI(title="ragweld demo API", version="0.1.0", lifespan=lifespan)

# The demo UI is a static site on a different origin.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/metrics")
async def metrics() -> Response:
    body, content_type = render_latest()
    return Response(content=body, media_type=content_type)


@app.middleware("http")
async def search_latency_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    if request.url.path != "/api/search":
        return await call_next(request)
    with SEARCH_LATENCY_SECONDS.time():
        try:
            response = await call_next(request)
        except Exception:
            SEARCH_ERRORS_TOTAL.inc()
            raise
        if response.status_code >= 500:
            SEARCH_ERRORS_TOTAL.inc()
        return response


for _router in API_ROUTERS:
    app.include_router(_router, prefix="/api")
