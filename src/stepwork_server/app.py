"""Application factory and CLI entry point.

``create_app()`` builds the FastAPI application with:
  - Lifespan handler that loads the question scripts and builds the engine once
  - CORS middleware
  - Global exception handlers (SDK exceptions → 400/403/404/409)
  - All API routes mounted under ``/api/v1``
  - A ``/health`` endpoint for readiness probes

The ``cli()`` function is the ``stepwork-server`` console-script entry point.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm.exc import StaleDataError

from stepwork.engine import StepWorkEngine
from stepwork.llm import OpenAIReflectionGenerator
from stepwork.script import QuestionScriptStore
from stepwork_db.engine import dispose_engine, get_engine

from stepwork_server.config import ServerSettings, load_settings
from stepwork_server.errors import (
    generic_error_handler,
    key_error_handler,
    permission_error_handler,
    request_validation_error_handler,
    stale_data_error_handler,
    value_error_handler,
)
from stepwork_server.routes import register_routes

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Lifespan: runs once at startup/shutdown
# ------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialise shared resources at startup, tear down on shutdown.

    Startup:
      1. Load the YAML question scripts into a ``QuestionScriptStore``
         (a broken script fails startup)
      2. Build the text-generation collaborator if an API key is set
      3. Build ``StepWorkEngine`` and stash it on ``app.state``

    Shutdown:
      1. Dispose the database engine's connection pool
    """
    settings: ServerSettings = app.state.settings

    # --- Load question scripts ---
    store = QuestionScriptStore(script_dir=settings.script_dir)
    store.load()

    # --- Text generation ---
    reflector = None
    if settings.openai_api_key:
        reflector = OpenAIReflectionGenerator(
            settings.llm_model,
            api_key=settings.openai_api_key,
            timeout=settings.llm_timeout_seconds,
        )
        logger.info("Reflection generation enabled (model=%s)", settings.llm_model)
    else:
        logger.info("OPENAI_API_KEY not set; completion will use fallback texts")

    # --- Build engine ---
    engine = StepWorkEngine(
        store,
        reflector=reflector,
        generation_timeout=settings.llm_timeout_seconds,
    )

    app.state.store = store
    app.state.engine = engine

    yield

    # --- Shutdown ---
    await dispose_engine()
    logger.info("Database engine disposed")


# ------------------------------------------------------------------
# Factory
# ------------------------------------------------------------------

def create_app(settings: ServerSettings | None = None) -> FastAPI:
    """Build and return the configured FastAPI application."""
    if settings is None:
        settings = load_settings()

    # --- Configure logging ---
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title="Step Work Walk API",
        description="REST API for guided step-work walk sessions",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store settings so the lifespan handler can read them
    app.state.settings = settings

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Exception handlers ---
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(ValueError, value_error_handler)
    app.add_exception_handler(PermissionError, permission_error_handler)
    app.add_exception_handler(StaleDataError, stale_data_error_handler)
    app.add_exception_handler(KeyError, key_error_handler)
    app.add_exception_handler(Exception, generic_error_handler)

    # --- Health check (outside /api/v1 prefix) ---
    @app.get("/health")
    async def health() -> dict:
        """Readiness probe: verifies DB connectivity."""
        try:
            async with get_engine().connect() as conn:
                await conn.execute(text("SELECT 1"))
            return {"status": "ok"}
        except Exception as exc:
            logger.error("Health check failed: %s", exc)
            return {"status": "error", "detail": "database unavailable"}

    # --- Mount all API routes ---
    register_routes(app)

    return app


# ------------------------------------------------------------------
# Module-level ASGI export (for uvicorn stepwork_server.app:app)
# ------------------------------------------------------------------
app = create_app()


# ------------------------------------------------------------------
# CLI entry point
# ------------------------------------------------------------------

def cli() -> None:
    """Console-script entry point: ``stepwork-server``."""
    import uvicorn

    settings = load_settings()
    uvicorn.run(
        "stepwork_server.app:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False,
    )
