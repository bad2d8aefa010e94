"""FastAPI application entry point."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from relleno.api import health, tasks
from relleno.core.config import Settings, settings
from relleno.core.logging import setup_logging
from relleno.services.document_store import DocumentStore
from relleno.services.notifier import Notifier
from relleno.services.schema_service import SchemaValidator
from relleno.services.task_service import TaskService
from relleno.services.workflow_engine import WorkflowEngine

logger = logging.getLogger(__name__)


def build_services(app: FastAPI, config: Settings) -> Notifier:
    """Wire the store, validator, notifier and engine onto ``app.state``."""
    store = DocumentStore(config.DOCS_DIR, lock_timeout=config.LOCK_TIMEOUT)
    validator = SchemaValidator(cache_size=config.SCHEMA_CACHE_SIZE)
    notifier = Notifier(timeout=config.NOTIFY_TIMEOUT)
    app.state.task_service = TaskService(store, validator, default_spa_path=config.DEFAULT_SPA_PATH)
    app.state.workflow_engine = WorkflowEngine(store, notifier)
    app.state.notifier = notifier
    return notifier


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)
    logger.info("Starting %s...", settings.PROJECT_NAME)
    notifier = build_services(app, settings)
    logger.info("Serving task records from %s", app.state.task_service.store.root)
    yield
    logger.info("Shutting down %s...", settings.PROJECT_NAME)
    await notifier.aclose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Schema-gated task documents with a per-task state workflow",
    version=settings.VERSION,
    lifespan=lifespan,
)

if settings.CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.middleware("http")
async def log_request(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    client = f"{request.client.host}:{request.client.port}" if request.client else "-"
    logger.info("%s %s %s", client, request.method, request.url)
    return await call_next(request)


app.include_router(health.router, tags=["health"])
app.include_router(tasks.router, prefix="/doc", tags=["tasks"])
