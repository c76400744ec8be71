"""
===============================================================================
TARJETA CRC: gep_console/api/exception_handlers.py (Manejo Centralizado)
===============================================================================

Responsabilidades:
  - Traducir excepciones de la consola a problem+json.
  - Loguear cada error con error_id (el mismo que viaja en `errors`).
  - No filtrar detalles internos de errores no controlados en producción.

Mapeo:
  - UnknownModuleError -> 404 NOT_FOUND
  - AccessDenied       -> 403 FORBIDDEN
  - StatisticsError    -> 502 BACKEND_ERROR
  - GEPError (resto)   -> 500 INTERNAL_ERROR
  - Exception          -> 500 INTERNAL_ERROR

Colaboradores:
  - crosscutting.error_responses
  - crosscutting.exceptions
===============================================================================
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..crosscutting.config import get_settings
from ..crosscutting.error_responses import (
    AppHTTPException,
    ErrorCode,
    app_exception_handler,
)
from ..crosscutting.exceptions import (
    AccessDenied,
    GEPError,
    StatisticsError,
    UnknownModuleError,
)
from ..crosscutting.logger import logger

# R: de lo más específico a lo más general; el primero que matchea gana.
_CONSOLE_ERROR_CODES: tuple[tuple[type[GEPError], ErrorCode], ...] = (
    (UnknownModuleError, ErrorCode.NOT_FOUND),
    (AccessDenied, ErrorCode.FORBIDDEN),
    (StatisticsError, ErrorCode.BACKEND_ERROR),
    (GEPError, ErrorCode.INTERNAL_ERROR),
)


def code_for(exc: GEPError) -> ErrorCode:
    for error_type, code in _CONSOLE_ERROR_CODES:
        if isinstance(exc, error_type):
            return code
    return ErrorCode.INTERNAL_ERROR


async def console_error_handler(request: Request, exc: GEPError) -> JSONResponse:
    code = code_for(exc)
    log = logger.error if code.http_status >= 500 else logger.info
    log(
        "Error de la consola",
        extra={
            "code": code.value,
            "error_code": exc.error_code,
            "error_id": exc.error_id,
            "error_message": exc.message,
        },
    )
    return await app_exception_handler(
        request,
        AppHTTPException(code, exc.message, errors=[{"error_id": exc.error_id}]),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Excepción no controlada", exc_info=exc)
    detail = "Error interno." if get_settings().is_production() else str(exc)
    return await app_exception_handler(
        request, AppHTTPException(ErrorCode.INTERNAL_ERROR, detail)
    )


def register_exception_handlers(app: FastAPI) -> None:
    for error_type, _ in _CONSOLE_ERROR_CODES:
        app.add_exception_handler(error_type, console_error_handler)
    app.add_exception_handler(AppHTTPException, app_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)


__all__ = ["register_exception_handlers", "code_for"]
