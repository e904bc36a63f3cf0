"""FastAPI Application Factory.

Creates the switchover control API with its middleware stack:
security headers, request tracing, error handling, and CORS.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from src.api.config import APIConfig, DEFAULT_API_CONFIG
from src.api.models import HealthResponse
from src.api.routes import switchover
from src.api_errors import ErrorHandlingMiddleware, register_exception_handlers
from src.bluegreen import SwitchoverSystem, build_system
from src.logging_config import RequestTracingMiddleware, configure_logging
from src.settings import Settings, get_settings

logger = logging.getLogger(__name__)


# ── Security Headers Middleware ───────────────────────────────────────


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds standard security headers to all HTTP responses."""

    async def dispatch(self, request: Request, call_next: Any) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Cache-Control"] = "no-store"
        return response


# ── Lifespan (startup / shutdown) ────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and run the background health monitor."""
    # ── Startup ──
    configure_logging()
    system: SwitchoverSystem = app.state.system
    if app.state.monitor_enabled:
        system.start()
    logger.info(
        "Switchover API starting up (active=%s)", system.active_store.current().value
    )
    yield
    # ── Shutdown ──
    await system.stop()
    logger.info("Switchover API shutting down")


# ── App Factory ──────────────────────────────────────────────────────


def create_app(
    config: Optional[APIConfig] = None,
    system: Optional[SwitchoverSystem] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Middleware stack (outermost → innermost):
        SecurityHeaders → RequestTracing → ErrorHandling → CORS → App

    Args:
        config: API configuration. Uses defaults if not provided.
        system: Pre-built switchover components. Built from settings if
            not provided.
        settings: Service settings. Loaded from the environment if not
            provided.

    Returns:
        Configured FastAPI application.
    """
    config = config or DEFAULT_API_CONFIG
    settings = settings or get_settings()
    system = system or build_system(settings.to_migration_config())

    app = FastAPI(
        title=config.title,
        version=config.version,
        description=config.description,
        docs_url=config.docs_url,
        lifespan=lifespan,
    )
    app.state.system = system
    app.state.monitor_enabled = settings.monitor_enabled

    # ── Middleware stack ──────────────────────────────────────────
    # add_middleware prepends, so order here is innermost-first.

    cors_origins = os.environ.get("BLUEGREEN_CORS_ORIGINS", "").split(",")
    cors_origins = [o.strip() for o in cors_origins if o.strip()] or config.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_methods=config.cors_methods,
        allow_headers=config.cors_headers,
    )
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestTracingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)

    register_exception_handlers(app)

    # ── Health check ─────────────────────────────────────────────

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(
            service=config.service_name,
            version=config.version,
            features=config.features,
        )

    # ── Route modules ────────────────────────────────────────────

    app.include_router(switchover.router, prefix=config.prefix)

    logger.info("Switchover API v%s initialized", config.version)
    return app
