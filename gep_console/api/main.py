"""
Name: FastAPI Application Factory

Responsibilities:
  - Build the FastAPI application (metadata, middleware, routers, handlers)
  - Own the process-wide console state through the lifespan:
      startup  -> build backend adapters, SessionManager, NavigationGate,
                  run the one-time session bootstrap
      shutdown -> close the gate and the manager (liveness off, provider
                  listener unsubscribed), close the HTTP client
  - Expose health check and metrics endpoints

Collaborators:
  - container.build_backend / container.build_console
  - RequestContextMiddleware: request id + request metrics
  - CORSMiddleware
  - auth_routes, navigation_routes, dashboard_routes

Notes:
  - Middleware order matters: RequestContext → CORS → routes
  - /healthz follows Kubernetes health check convention
  - /metrics exposes Prometheus metrics
  - The console lives on app.state and reaches handlers via Depends
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..container import BackendAdapters, build_backend, build_console
from ..crosscutting.config import Settings, get_settings
from ..crosscutting.logger import logger
from ..crosscutting.metrics import get_metrics_response
from ..crosscutting.middleware import RequestContextMiddleware
from .auth_routes import router as auth_router
from .dashboard_routes import router as dashboard_router
from .exception_handlers import register_exception_handlers
from .navigation_routes import router as navigation_router

BackendFactory = Callable[[Settings], BackendAdapters]


def create_app(
    settings: Settings | None = None,
    backend_factory: BackendFactory = build_backend,
) -> FastAPI:
    """
    Construye la app.

    Args:
        settings: override de configuración (tests); por defecto get_settings().
        backend_factory: construye los adapters del backend en el startup.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup/shutdown lifecycle: bootstrap de sesión y teardown."""
        console = build_console(settings, backend_factory(settings))
        app.state.console = console
        try:
            session = await console.sessions.bootstrap()
            logger.info(
                "GEP Console API starting up",
                extra={
                    "app_env": settings.app_env,
                    "connection_status": session.connection_status.value,
                    "in_memory_backend": console.backend.http_client is None,
                },
            )
            yield
        finally:
            await console.aclose()
            app.state.console = None
            logger.info("GEP Console API shutting down")

    app = FastAPI(
        title="GEP Console API",
        version=__version__,
        lifespan=lifespan,
        openapi_tags=[
            {"name": "auth", "description": "Session lifecycle (login/logout/state)"},
            {"name": "navigation", "description": "Role-based module access"},
            {"name": "dashboard", "description": "Captured documents KPIs"},
            {"name": "diagnostics", "description": "Backend connectivity checks"},
        ],
    )

    # R: Middleware order (bottom = first to execute):
    # 1. CORSMiddleware - handles preflight
    # 2. RequestContextMiddleware - sets request_id
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_allowed_origins_list(),
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Request-Id"],
    )

    app.include_router(auth_router)
    app.include_router(navigation_router)
    app.include_router(dashboard_router)
    register_exception_handlers(app)

    @app.get("/healthz", tags=["diagnostics"])
    async def healthz(request: Request) -> dict:
        console = getattr(request.app.state, "console", None)
        status = (
            console.sessions.session.connection_status.value
            if console is not None
            else "unavailable"
        )
        return {"ok": True, "connection_status": status}

    @app.get("/metrics", tags=["diagnostics"])
    async def metrics() -> Response:
        body, content_type = get_metrics_response()
        return Response(content=body, media_type=content_type)

    return app
