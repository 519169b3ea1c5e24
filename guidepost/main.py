"""Guidepost - FastAPI Application Entry Point.

Sensory guide lifecycle service: PDF audit in, validated guide versions
out, one live version per venue.
"""

import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from guidepost.api.deps import guide_error_handler
from guidepost.api.editor_routes import router as editor_router
from guidepost.api.guide_routes import router as guide_router
from guidepost.api.public_routes import router as public_router
from guidepost.api.venue_routes import router as venue_router
from guidepost.config import Settings, settings as default_settings
from guidepost.context import AppContext
from guidepost.core.errors import GuideError
from guidepost.core.logging import get_logger
from guidepost.scheduler.jobs import start_scheduler, stop_scheduler

logger = get_logger("main")

IS_SERVERLESS = bool(
    os.environ.get("VERCEL") or os.environ.get("AWS_LAMBDA_FUNCTION_NAME")
)


def create_app(
    settings: Optional[Settings] = None,
    context: Optional[AppContext] = None,
) -> FastAPI:
    """Build the app. Tests pass a context with injected collaborators."""
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown lifecycle."""
        logger.info("🚀 Guidepost starting up...")
        logger.info(f"🌍 Environment: {'SERVERLESS' if IS_SERVERLESS else 'LOCAL'}")
        ctx = (context or AppContext(settings)).init()
        app.state.context = ctx
        if not IS_SERVERLESS:
            start_scheduler(ctx)
        yield
        if not IS_SERVERLESS:
            stop_scheduler()
        ctx.dispose()
        logger.info("Guidepost shut down")

    app = FastAPI(
        title="Guidepost",
        description="Turn sensory audit PDFs into validated, versioned, publishable sensory guides.",
        version="1.0.0",
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(GuideError, guide_error_handler)

    # Routers
    app.include_router(venue_router)
    app.include_router(guide_router)
    app.include_router(editor_router)
    app.include_router(public_router)

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": "guidepost",
            "version": "1.0.0",
        }

    return app


app = create_app()
