# gep_console/crosscutting/exceptions.py
"""
===============================================================================
MÓDULO: Excepciones tipadas de la consola
===============================================================================

Cada error interno lleva:
- `error_code`: identificador estable (constante de clase)
- `error_id`: uuid por instancia; viaja en el log y en la respuesta HTTP
- `message`: texto apto para mostrar (nunca credenciales ni tokens)

Taxonomía de inicio de sesión (AuthErrorCode)
---------------------------------------------
- NotRegistered     -> el email no tiene perfil aprovisionado.
- WrongPassword     -> el perfil existe pero el proveedor rechazó credenciales.
- AccountInactive   -> el perfil está marcado inactivo (antes o después del login).
- ProviderError     -> cualquier otro error del proveedor (mensaje verbatim).

No llegan al usuario:
- ProfileLookupTimeout -> la absorbe el fallback de ProfileResolver.
- BootstrapTimeout  -> se publica como connection_status = error.

Colaboradores:
  - api/exception_handlers.py (GEPError -> problem+json)
  - identity/session.py (AuthError -> SignInResult)
===============================================================================
"""

from __future__ import annotations

from enum import Enum
from uuid import uuid4


class GEPError(Exception):
    """Base de los errores internos de la consola."""

    error_code: str = "GEP_ERROR"

    def __init__(
        self,
        message: str,
        error_id: str | None = None,
        original_error: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_id = error_id or uuid4().hex
        self.original_error = original_error


# ---------------------------------------------------------------------------
# Backend / conectividad
# ---------------------------------------------------------------------------


class AuthProviderError(GEPError):
    """Error reportado por el proveedor de autenticación (GoTrue o similar)."""

    error_code: str = "AUTH_PROVIDER_ERROR"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        original_error: Exception | None = None,
    ):
        super().__init__(message, original_error=original_error)
        self.status_code = status_code


class ProfileLookupError(GEPError):
    """Falla consultando la tabla de perfiles (red, HTTP no-2xx, shape inválido)."""

    error_code: str = "PROFILE_LOOKUP_ERROR"


class ProfileLookupTimeout(ProfileLookupError):
    """La consulta de perfil excedió su watchdog."""

    error_code: str = "PROFILE_LOOKUP_TIMEOUT"


class BootstrapTimeout(GEPError):
    """El arranque de sesión excedió su watchdog."""

    error_code: str = "BOOTSTRAP_TIMEOUT"


class StatisticsError(GEPError):
    """Falla consultando estadísticas de documentos capturados."""

    error_code: str = "STATISTICS_ERROR"


class UnknownModuleError(GEPError, ValueError):
    """Identificador de módulo fuera del catálogo cerrado."""

    error_code: str = "UNKNOWN_MODULE"

    def __init__(self, module_name: str):
        super().__init__(f"Módulo desconocido: {module_name!r}")
        self.module_name = module_name


# ---------------------------------------------------------------------------
# Autenticación (surfaced al usuario)
# ---------------------------------------------------------------------------


class AuthErrorCode(str, Enum):
    """Códigos estables de falla de inicio de sesión."""

    NOT_REGISTERED = "NotRegistered"
    WRONG_PASSWORD = "WrongPassword"
    ACCOUNT_INACTIVE = "AccountInactive"
    PROVIDER_ERROR = "ProviderError"


MSG_NOT_REGISTERED = (
    "El usuario no está registrado en la plataforma. "
    "Verifique sus datos o contacte al administrador."
)
MSG_WRONG_PASSWORD = "Contraseña incorrecta. Intente nuevamente."
MSG_ACCOUNT_INACTIVE = "Tu cuenta está inactiva. Contacta al administrador del sistema."
MSG_ACCOUNT_DEACTIVATED = (
    "Tu cuenta fue desactivada. Contacta al administrador del sistema."
)
MSG_CONNECTION_ERROR = (
    "Error de conexión. Verifique su internet e intente nuevamente."
)


class AuthError(GEPError):
    """Base de la taxonomía de fallas de inicio de sesión."""

    error_code: str = "AUTH_ERROR"
    auth_code: AuthErrorCode = AuthErrorCode.PROVIDER_ERROR


class NotRegistered(AuthError):
    error_code = "NOT_REGISTERED"
    auth_code = AuthErrorCode.NOT_REGISTERED

    def __init__(self, message: str = MSG_NOT_REGISTERED):
        super().__init__(message)


class WrongPassword(AuthError):
    error_code = "WRONG_PASSWORD"
    auth_code = AuthErrorCode.WRONG_PASSWORD

    def __init__(self, message: str = MSG_WRONG_PASSWORD):
        super().__init__(message)


class AccountInactive(AuthError):
    error_code = "ACCOUNT_INACTIVE"
    auth_code = AuthErrorCode.ACCOUNT_INACTIVE

    def __init__(self, message: str = MSG_ACCOUNT_INACTIVE):
        super().__init__(message)


class ProviderError(AuthError):
    """Error del proveedor que no es "credenciales inválidas" (mensaje verbatim)."""

    error_code = "PROVIDER_ERROR"
    auth_code = AuthErrorCode.PROVIDER_ERROR


# ---------------------------------------------------------------------------
# Autorización
# ---------------------------------------------------------------------------


class AccessDenied(GEPError):
    """La sesión actual no tiene permiso sobre el módulo pedido."""

    error_code: str = "ACCESS_DENIED"

    def __init__(self, module_name: str, message: str | None = None):
        super().__init__(message or f"Sin permisos para el módulo {module_name!r}")
        self.module_name = module_name
