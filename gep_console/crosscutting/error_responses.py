# gep_console/crosscutting/error_responses.py
"""
===============================================================================
MÓDULO: Respuestas de error (RFC 7807 / Problem Details)
===============================================================================

Todas las respuestas de error de la API son `application/problem+json` con un
`code` estable. Para el login, `code` es directamente el AuthErrorCode
(NotRegistered / WrongPassword / AccountInactive / ProviderError), así el
cliente elige el mensaje sin parsear texto.

-------------------------------------------------------------------------------
CRC (Component Card)
-------------------------------------------------------------------------------
Componente:
  ErrorCode + AppHTTPException + app_exception_handler

Responsabilidades:
  - Catálogo de códigos con su status HTTP
  - Factories para los errores que la API levanta
  - Serializar a problem+json (con request_id cuando existe)

Colaboradores:
  - crosscutting/middleware.py (request_id en request.state)
  - api/exception_handlers.py (errores internos -> AppHTTPException)
===============================================================================
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

PROBLEM_JSON_MEDIA_TYPE = "application/problem+json"


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"

    NOT_REGISTERED = "NotRegistered"
    WRONG_PASSWORD = "WrongPassword"
    ACCOUNT_INACTIVE = "AccountInactive"
    PROVIDER_ERROR = "ProviderError"

    INTERNAL_ERROR = "INTERNAL_ERROR"
    BACKEND_ERROR = "BACKEND_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self]


_HTTP_STATUS: dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: 422,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.NOT_FOUND: 404,
    # R: credenciales -> 401, cuenta dada de baja -> 403, proveedor caído -> 502
    ErrorCode.NOT_REGISTERED: 401,
    ErrorCode.WRONG_PASSWORD: 401,
    ErrorCode.ACCOUNT_INACTIVE: 403,
    ErrorCode.PROVIDER_ERROR: 502,
    ErrorCode.INTERNAL_ERROR: 500,
    ErrorCode.BACKEND_ERROR: 502,
    ErrorCode.SERVICE_UNAVAILABLE: 503,
}


class ErrorDetail(BaseModel):
    """Problem Details + `code` estable y `errors` opcionales."""

    type: str = "about:blank"
    title: str
    status: int
    detail: str
    code: ErrorCode
    instance: str | None = None
    errors: list[dict[str, Any]] | None = None


def _openapi_problem(description: str) -> dict[str, Any]:
    return {
        "description": description,
        "model": ErrorDetail,
        "content": {
            PROBLEM_JSON_MEDIA_TYPE: {
                "schema": {"$ref": "#/components/schemas/ErrorDetail"}
            }
        },
    }


OPENAPI_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    401: _openapi_problem("Sin sesión o credenciales inválidas"),
    403: _openapi_problem("Sin permiso o cuenta inactiva"),
    404: _openapi_problem("Módulo inexistente"),
    502: _openapi_problem("Falla del backend o del proveedor de auth"),
    503: _openapi_problem("Backend no disponible"),
}


class AppHTTPException(HTTPException):
    """HTTPException con `code` estable; el status sale del código."""

    def __init__(
        self,
        code: ErrorCode,
        detail: str,
        errors: list[dict[str, Any]] | None = None,
        *,
        status_code: int | None = None,
    ):
        super().__init__(status_code=status_code or code.http_status, detail=detail)
        self.code = code
        self.errors = errors


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------
def unauthorized(detail: str = "Inicia sesión para continuar") -> AppHTTPException:
    return AppHTTPException(ErrorCode.UNAUTHORIZED, detail)


def forbidden(detail: str = "Acceso denegado") -> AppHTTPException:
    return AppHTTPException(ErrorCode.FORBIDDEN, detail)


def service_unavailable(service: str) -> AppHTTPException:
    return AppHTTPException(
        ErrorCode.SERVICE_UNAVAILABLE, f"Servicio no disponible: {service}"
    )


def backend_error(detail: str = "Falla consultando el backend") -> AppHTTPException:
    return AppHTTPException(ErrorCode.BACKEND_ERROR, detail)


def sign_in_failed(code: str, detail: str) -> AppHTTPException:
    """AuthErrorCode (valor) -> problem+json con el mismo `code`."""
    return AppHTTPException(ErrorCode(code), detail)


# ---------------------------------------------------------------------------
# Handler FastAPI
# ---------------------------------------------------------------------------
async def app_exception_handler(
    request: Request, exc: AppHTTPException
) -> JSONResponse:
    errors = list(exc.errors or [])
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        errors.append({"request_id": request_id})

    problem = ErrorDetail(
        type=f"about:blank/{exc.code.value.lower()}",
        title=exc.code.value.replace("_", " ").title(),
        status=exc.status_code,
        detail=str(exc.detail),
        code=exc.code,
        instance=request.url.path,
        errors=errors or None,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=problem.model_dump(mode="json", exclude_none=True),
        headers=getattr(exc, "headers", None),
        media_type=PROBLEM_JSON_MEDIA_TYPE,
    )
