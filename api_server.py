from __future__ import annotations  # FastAPI server exposing the screening chat

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import health_router, router as chat_router
from config import Settings, backends_from_settings, settings as default_settings
from interview import ConversationOrchestrator, PromptBuilder, StaticContent
from llm_gateway import BackendRouter, GeminiRestClient, ModelInvocationClient
from observability import configure_logging
from storage.records import SqliteRecordStore

logger = logging.getLogger(__name__)


def build_services(
    cfg: Settings,
    *,
    client: Optional[ModelInvocationClient] = None,
) -> tuple[ConversationOrchestrator, BackendRouter]:  # Wire store, router and prompts from settings
    backends = backends_from_settings(cfg)
    if client is None:
        client = GeminiRestClient(
            cfg.GEMINI_API_KEY,
            base_url=cfg.GEMINI_BASE_URL,
            generation=backends.generation,
        )
    if not cfg.GEMINI_API_KEY:
        logger.warning("GEMINI_API_KEY is not set; model calls will fail")
    backend_router = BackendRouter(
        backends.backends,
        client,
        retry_policy=backends.retry,
        enable_fallback=backends.enable_fallback,
    )
    store = SqliteRecordStore(cfg.DB_PATH)
    prompts = PromptBuilder(StaticContent.from_files(cfg.SYSTEM_PROMPT_PATH, cfg.KNOWLEDGE_BASE_PATH))
    orchestrator = ConversationOrchestrator(
        store,
        backend_router,
        prompts,
        default_job_id=cfg.DEFAULT_JOB_ID,
    )
    logger.info(
        "Services ready db=%s chain=%s fallback=%s",
        cfg.DB_PATH,
        " -> ".join(route.name for route in backend_router.backends),
        backends.enable_fallback,
    )
    return orchestrator, backend_router


def create_app(
    cfg: Optional[Settings] = None,
    *,
    client: Optional[ModelInvocationClient] = None,
) -> FastAPI:
    cfg = cfg or default_settings
    configure_logging()
    orchestrator, backend_router = build_services(cfg, client=client)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        close = getattr(backend_router.client, "aclose", None)
        if callable(close):
            await close()

    app = FastAPI(title="Screening Interview API", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.orchestrator = orchestrator
    app.state.backend_router = backend_router
    app.include_router(chat_router)
    app.include_router(health_router)
    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api_server:create_app", factory=True, host="0.0.0.0", port=8000)
