"""
===============================================================================
TARJETA CRC: gep_console/api/dependencies.py (Inyección vía Depends)
===============================================================================

Responsabilidades:
  - Exponer el estado de proceso (app.state.console) a los handlers.
  - Guards de request: backend conectado (503) y sesión autenticada (401).

Colaboradores:
  - container.Console
  - crosscutting.error_responses
===============================================================================
"""

from __future__ import annotations

from fastapi import Depends, Request

from ..application.dashboard import DashboardService
from ..container import Console
from ..context import bind_session_context
from ..crosscutting.error_responses import service_unavailable, unauthorized
from ..domain.services import BackendProbe
from ..identity.navigation import NavigationGate
from ..identity.session import ConnectionStatus, SessionManager


def get_console(request: Request) -> Console:
    console = getattr(request.app.state, "console", None)
    if console is None:
        raise service_unavailable("consola no inicializada")
    return console


async def get_session_manager(
    console: Console = Depends(get_console),
) -> SessionManager:
    """Manager del proceso; de paso deja la sesión vigente en el contexto de log."""
    current = console.sessions.session
    bind_session_context(actor=current.email, auth_status=current.auth_status.value)
    return console.sessions


def get_navigation(console: Console = Depends(get_console)) -> NavigationGate:
    return console.navigation


def get_dashboard(console: Console = Depends(get_console)) -> DashboardService:
    return console.dashboard


def get_probe(console: Console = Depends(get_console)) -> BackendProbe:
    return console.backend.probe


def require_connected(
    sessions: SessionManager = Depends(get_session_manager),
) -> SessionManager:
    """503 mientras la conexión con el backend esté en error."""
    if sessions.session.connection_status is ConnectionStatus.ERROR:
        raise service_unavailable("backend de autenticación")
    return sessions


def require_authenticated(
    sessions: SessionManager = Depends(require_connected),
) -> SessionManager:
    if not sessions.session.is_authenticated:
        raise unauthorized()
    return sessions
