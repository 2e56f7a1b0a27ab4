"""
FastAPI application factory.

Creates and configures the FastAPI application with middleware and routes.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..config import get_settings
from ..services.runtime import SessionRuntime, close_session_runtime, get_session_runtime
from ..utils.exceptions import TradingSessionError
from .dependencies import get_session_runtime_dep
from .middleware import error_handler_middleware
from .routes import health, session

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager for startup/shutdown tasks.

    Resolves the trading session on startup and cancels every session timer
    on shutdown.
    """
    runtime: SessionRuntime | None = app.state.runtime
    if runtime is None:
        runtime = get_session_runtime(get_settings())

    # Startup
    try:
        phase = await runtime.machine.initialize()
        logger.info(f"Trading session initialized in phase {phase.value}")
    except TradingSessionError as e:
        logger.error(f"Trading session initialization failed: {e.message}")

    yield

    # Shutdown
    if app.state.runtime is None:
        await close_session_runtime()
    else:
        await runtime.aclose()


def create_app(runtime: SessionRuntime | None = None) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        runtime: Session runtime to serve; defaults to the process-wide one

    Returns:
        Configured FastAPI application instance

    Configuration:
        - CORS middleware for cross-origin requests
        - Error handling middleware for domain exceptions
        - Session initialization on startup, reset on shutdown
        - Health check endpoint
        - Interactive API docs at /docs and /redoc
    """
    app = FastAPI(
        title="Trading Session Guard API",
        description="Step-up trading session lifecycle and read-only mode",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.runtime = runtime
    if runtime is not None:
        app.dependency_overrides[get_session_runtime_dep] = lambda: runtime

    # CORS middleware - the presentation layer may be served from another origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # TODO: Restrict in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Error handling middleware
    app.middleware("http")(error_handler_middleware)

    # Register routes
    app.include_router(health.router)
    app.include_router(session.router)

    return app
