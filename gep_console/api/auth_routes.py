"""
===============================================================================
TARJETA CRC: gep_console/api/auth_routes.py (Sesión: login / logout / estado)
===============================================================================

Responsabilidades:
  - POST /auth/login: inicio de sesión con la taxonomía de errores como
    problem+json (`code` = NotRegistered | WrongPassword | AccountInactive |
    ProviderError).
  - POST /auth/logout: cierre de sesión idempotente acotado por watchdog.
  - GET /auth/session: snapshot de la sesión (rol, estado, módulos).

Colaboradores:
  - identity.session.SessionManager (vía Depends)
  - crosscutting.error_responses.sign_in_failed
===============================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator

from ..crosscutting.error_responses import OPENAPI_ERROR_RESPONSES, sign_in_failed
from ..identity.roles import Module
from ..identity.session import AuthStatus, ConnectionStatus, SessionManager
from .dependencies import get_session_manager, require_connected

router = APIRouter(prefix="/auth", tags=["auth"], responses=OPENAPI_ERROR_RESPONSES)


# -----------------------------------------------------------------------------
# Modelos HTTP (DTOs)
# -----------------------------------------------------------------------------


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=1, max_length=512)

    @field_validator("email")
    @classmethod
    def normalizar_email(cls, v: str) -> str:
        return v.strip().lower()


class SessionResponse(BaseModel):
    email: str | None
    role: str | None
    connection_status: ConnectionStatus
    auth_status: AuthStatus
    loading: bool
    allowed_modules: list[Module]
    nombre: str | None = None
    apellido: str | None = None


class LoginResponse(BaseModel):
    success: bool = True
    session: SessionResponse


class LogoutResponse(BaseModel):
    provider_acknowledged: bool
    session: SessionResponse


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def session_snapshot(sessions: SessionManager) -> SessionResponse:
    current = sessions.session
    profile = current.profile
    return SessionResponse(
        email=current.email,
        role=current.role.value if current.role else None,
        connection_status=current.connection_status,
        auth_status=current.auth_status,
        loading=sessions.loading,
        allowed_modules=list(sessions.allowed_modules()),
        nombre=profile.nombre if profile else None,
        apellido=profile.apellido if profile else None,
    )


# -----------------------------------------------------------------------------
# Endpoints
# -----------------------------------------------------------------------------


@router.post("/login", response_model=LoginResponse)
async def login(
    req: LoginRequest, sessions: SessionManager = Depends(require_connected)
) -> LoginResponse:
    result = await sessions.sign_in(req.email, req.password)
    if not result.success:
        raise sign_in_failed(result.error.value, result.message or "")
    return LoginResponse(session=session_snapshot(sessions))


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    sessions: SessionManager = Depends(get_session_manager),
) -> LogoutResponse:
    acknowledged = await sessions.sign_out_with_timeout()
    return LogoutResponse(
        provider_acknowledged=acknowledged, session=session_snapshot(sessions)
    )


@router.get("/session", response_model=SessionResponse)
async def current_session(
    sessions: SessionManager = Depends(get_session_manager),
) -> SessionResponse:
    return session_snapshot(sessions)
