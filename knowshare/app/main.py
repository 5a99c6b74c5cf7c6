"""FastAPI application."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from knowshare.app.api.routes.chat import router as chat_router
from knowshare.app.api.routes.health import router as health_router
from knowshare.app.api.routes.knowledge import router as knowledge_router
from knowshare.app.api.routes.metrics import router as metrics_router
from knowshare.app.api.routes.notifications import router as notifications_router
from knowshare.app.api.routes.resources import router as resources_router
from knowshare.app.config import get_settings
from knowshare.app.embedding.gateway import create_embedding_gateway
from knowshare.app.errors import KnowledgeShareError, RetrievalError
from knowshare.app.llm.client import get_answer_composer
from knowshare.app.realtime.notifier import create_notifier
from knowshare.app.utils.logging import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build application-scoped collaborators once and release them on shutdown."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app.state.embedding_gateway = create_embedding_gateway(settings)
    app.state.answer_composer = get_answer_composer(settings)
    app.state.notifier = create_notifier(settings)

    try:
        yield
    finally:
        await app.state.notifier.close()


app = FastAPI(title="Knowshare API", version="0.1.0", lifespan=lifespan)


@app.exception_handler(KnowledgeShareError)
async def knowledge_share_error_handler(
    request: Request, exc: KnowledgeShareError
) -> JSONResponse:
    """Render domain errors as ``{"error": message}`` with their mapped status."""
    if isinstance(exc, RetrievalError):
        logger.error(f"{request.method} {request.url.path} failed: {exc.__cause__ or exc}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


# Register routes
app.include_router(health_router, tags=["health"])
app.include_router(metrics_router, tags=["metrics"])
app.include_router(knowledge_router)
app.include_router(resources_router)
app.include_router(notifications_router)
app.include_router(chat_router)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Knowshare API", "version": "0.1.0"}
