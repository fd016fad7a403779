"""
AssetHub Backend — FastAPI Application Factory
===============================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes middleware registration, route mounting, error mapping
       and lifecycle management in one place.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
       The ServiceContainer is either passed in (tests) or built from
       settings in the lifespan (uvicorn assethub.main:app).

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌──────────────┐ ┌─────────────────┐ ┌──────────┐  │
    │  │   Req ID     │→│  Logging        │→│  CORS    │  │
    │  └──────────────┘ └─────────────────┘ └──────────┘  │
    │                                                     │
    │  Routes (/api/v1):                                  │
    │  folders · notes · teams · oversight · /health      │
    │                                                     │
    │  Exception Handlers:                                │
    │  ┌──────────────────────────────────────────────┐   │
    │  │ Validation→400 │ Denied→403/404 │ NotFound→404│  │
    │  │ Conflict→409 │ Dependency→503 │ Database→500 │   │
    │  └──────────────────────────────────────────────┘   │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging → container (cache/bus fall back to no-op when
              unreachable) → subscribe invalidator
    Shutdown: drain events → close bus → close cache → dispose engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from assethub import __version__
from assethub.config import Settings, settings as default_settings
from assethub.container import ServiceContainer
from assethub.exceptions import (
    AccessDeniedError,
    AssetHubError,
    ConflictError,
    DatabaseError,
    DependencyError,
    NotFoundError,
    ValidationError,
)
from assethub.middleware.logging import RequestLoggingMiddleware
from assethub.middleware.request_id import RequestIDMiddleware, request_id_var
from assethub.routes import folders, health, manager, notes, teams

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str = "INFO") -> None:
    """
    Configure process-wide logging.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s

    Called once from the lifespan, before any component is constructed.
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Chatty at INFO for every operation
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiokafka").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    app_settings: Settings = app.state.settings
    setup_logging(app_settings.log_level)
    logger.info("=" * 60)
    logger.info("AssetHub Backend starting up...")

    # A container handed to create_app() belongs to the caller
    owns_container = getattr(app.state, "container", None) is None
    if owns_container:
        app.state.container = await ServiceContainer.from_settings(app_settings)
    container: ServiceContainer = app.state.container
    await container.start()

    logger.info("Server ready at http://%s:%d", app_settings.backend_host, app_settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("AssetHub Backend shutting down...")
    if owns_container:
        await container.close()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error(status: int, error: str, message: str, details: Optional[dict] = None) -> JSONResponse:
    content = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map the exception taxonomy to HTTP responses.

    Handler hierarchy:
        ValidationError         → 400 (client can fix the input)
        AccessDeniedError       → 403, or 404 when the caller is unrelated
        NotFoundError           → 404
        ConflictError           → 409
        DatabaseError           → 500 (details logged, never returned)
        DependencyError         → 503 (transient, retry later)
        AssetHubError (base)    → 500
        Exception (fallback)    → 500

    Unrelated denials share the not-found body so that probing ids reveals
    nothing about other users' assets.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error(400, "validation_error", exc.message, exc.context)

    @app.exception_handler(AccessDeniedError)
    async def handle_access_denied(request: Request, exc: AccessDeniedError):
        logger.info("[%s] Access denied: %s %s", request_id_var.get(""), exc.message, exc.context)
        if exc.unrelated:
            return _error(404, "not_found", "Resource not found")
        return _error(403, "access_denied", exc.message)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error(404, "not_found", exc.message)

    @app.exception_handler(ConflictError)
    async def handle_conflict(request: Request, exc: ConflictError):
        return _error(409, "conflict", exc.message, exc.context)

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error(
            "[%s] Database error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context
        )
        return _error(500, "server_error", "An internal error occurred. Please try again later.")

    @app.exception_handler(DependencyError)
    async def handle_dependency_error(request: Request, exc: DependencyError):
        logger.error("[%s] Dependency error: %s", request_id_var.get(""), exc.message)
        return _error(503, "service_unavailable", exc.message)

    @app.exception_handler(AssetHubError)
    async def handle_app_error(request: Request, exc: AssetHubError):
        logger.error("[%s] Unhandled application error: %s", request_id_var.get(""), exc.message)
        return _error(500, "server_error", exc.message)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("[%s] Unexpected error: %s", request_id_var.get(""), exc, exc_info=True)
        return _error(
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    container: Optional[ServiceContainer] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        container: Pre-built services. Tests pass one so requests work
            without running the lifespan; production leaves it None.
        settings: Defaults to the container's settings, then to the
            environment.
    """
    app_settings = settings or (container.settings if container else default_settings)

    app = FastAPI(
        title="AssetHub API",
        description=(
            "Permissioned folder and note storage with sharing, teams and "
            "manager oversight."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.state.container = container

    # Middleware executes in reverse order of addition
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(folders.router)
    app.include_router(notes.router)
    app.include_router(teams.router)
    app.include_router(manager.router)
    app.include_router(health.router)

    return app


# uvicorn assethub.main:app
app = create_app()
