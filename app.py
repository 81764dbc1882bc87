"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires all services, registers routers, and refreshes reference data
on startup.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from deskmatch.controllers.match_controller import router as match_router
from deskmatch.controllers.match_controller import validation_exception_handler
from deskmatch.repository.data_repository import DataRepository
from deskmatch.services.matching_service import DeskMatchingService
from deskmatch.services.nlp_service import QueryParser
from deskmatch.services.preference_service import PreferenceNormalizer
from deskmatch.utils.config import Settings, get_settings
from deskmatch.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Instantiates all services with explicit dependency injection via app.state.
    Reference data is never held in module globals; every request loads its
    own snapshot through the repository.
    """
    settings = settings or get_settings()

    # --- Repository (single SQLite connection factory) ---
    repository = DataRepository(settings)

    # --- Services ---
    query_parser = QueryParser(settings=settings)
    normalizer = PreferenceNormalizer(parser=query_parser)
    matching_service = DeskMatchingService(
        repository=repository,
        normalizer=normalizer,
        settings=settings,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Recommends available desks from a natural-language request.",
        lifespan=lifespan,
    )

    # --- Routers ---
    app.include_router(match_router)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # --- Inject services into app.state for dependency resolution ---
    app.state.settings = settings
    app.state.repository = repository
    app.state.query_parser = query_parser
    app.state.matching_service = matching_service

    return app


def _startup(app: FastAPI) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    Schema must exist before reference data is loaded into it.
    """
    repository: DataRepository = app.state.repository

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    logger.info("Startup: refreshing reference data snapshot")
    repository.refresh_reference_data()

    if not app.state.query_parser.enabled:
        logger.warning("Startup: OPENAI_API_KEY not set; queries fall back to stored preferences")

    logger.info("Startup complete | system ready")


# Module-level app object for uvicorn
app = create_app()
