"""
FastAPI application for coursegate.

Provides REST API for:
- Learner progress (heartbeats, lesson completion, navigation locks)
- Knowledge checks (drafts, resume, submission)
- Admin analytics, enrollments and course settings
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from config import get_settings
from coursegate import __version__
from coursegate.course.catalog import CourseCatalog
from coursegate.db.database import init_db
from coursegate.db.store import ProgressStore
from coursegate.errors import StorageError
from coursegate.service import ProgressService

settings = get_settings()


def build_service() -> ProgressService:
    """Service over the configured database and content directory."""
    catalog = CourseCatalog.from_directory(settings.content_dir) if settings.content_dir else CourseCatalog()
    return ProgressService(ProgressStore(), catalog, settings)


def _check_database_health(service: ProgressService | None) -> tuple[str, str | None]:
    """
    Check database connectivity.

    Returns:
        Tuple of (status, error_message). Status is "ok", "error" or "not_initialized".
    """
    if service is None:
        return "not_initialized", None
    try:
        service.store.ping()
        return "ok", None
    except StorageError as e:
        return "error", str(e)


def create_app(service: ProgressService | None = None) -> FastAPI:
    """
    Build the application.

    Args:
        service: Pre-built service (tests); when omitted, startup initializes
            the database and loads courses from settings.content_dir
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting coursegate service...")
        if getattr(app.state, "service", None) is None:
            init_db()
            app.state.service = build_service()
        logger.info(f"Service started on {settings.api_host}:{settings.api_port}")

        yield

        logger.info("Shutting down coursegate service...")

    app = FastAPI(
        title="coursegate",
        description="""
        Learner progress and course gating engine.

        ## Features

        - **Heartbeats**: Capped, additive time-on-lesson accounting
        - **Knowledge Checks**: Server-graded drafts, resume, idempotent submission
        - **Gating**: Linear and knowledge-check lesson locking
        - **Analytics**: Completion breakdown, averages and module funnel
        """,
        version=__version__,
        lifespan=lifespan,
    )
    app.state.service = service

    # CORS middleware for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Restrict in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/", tags=["Health"])
    def root() -> dict[str, str]:
        """Root endpoint returning service info."""
        return {"service": "coursegate", "version": __version__, "status": "ok"}

    @app.get("/health", tags=["Health"])
    def health_check() -> dict[str, Any]:
        """Health check with an actual database round trip."""
        current = app.state.service
        db_status, db_error = _check_database_health(current)
        result: dict[str, Any] = {
            "status": "healthy" if db_status == "ok" else "unhealthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "components": {
                "database": db_status,
                "courses": current.catalog.slugs if current is not None else [],
            },
            "config": settings.get_heartbeat_config(),
        }
        if db_error:
            result["errors"] = {"database": db_error}
        return result

    from coursegate.api.routers import admin_router, progress_router

    app.include_router(progress_router.router, prefix="/api/progress", tags=["Progress"])
    app.include_router(admin_router.router, prefix="/api/admin", tags=["Admin"])
    return app


app = create_app()
