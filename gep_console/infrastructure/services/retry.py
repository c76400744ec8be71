"""gep_console.infrastructure.services.retry

Name: Retry de lecturas del backend (tenacity, backoff exponencial + jitter)

Alcance
-------
- Solo lo usan las estadísticas del dashboard (HttpDocumentStats).
- Auth y perfiles NO se reintentan: el login muestra el error del proveedor
  tal cual y la resolución de perfil ya tiene su propio fallback.

CRC (Component Card)
--------------------
Component: retry helper
Responsibilities:
  - Clasificar errores: transitorio (reintentar) vs permanente (fail-fast)
  - Construir el decorator de tenacity a partir de Settings o parámetros
  - Loguear cada reintento
Collaborators:
  - tenacity
  - httpx (tipos de error)
  - crosscutting.config.get_settings
"""

from __future__ import annotations

from typing import Callable, TypeVar

import httpx
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from ...crosscutting.config import get_settings
from ...crosscutting.logger import logger

T = TypeVar("T")

# R: 408 timeout, 425/429 rate limit, 5xx de gateway/upstream (PostgREST detrás de un proxy)
TRANSIENT_HTTP_CODES: frozenset[int] = frozenset({408, 425, 429, 500, 502, 503, 504})


def status_of(exc: BaseException) -> int | None:
    """Status HTTP asociado al error, si lo tiene."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    status = getattr(exc, "status_code", None)
    return status if isinstance(status, int) else None


def is_transient_error(exc: BaseException) -> bool:
    """
    Reintentable si:
      - el backend respondió un status transitorio, o
      - falló el transporte (timeout, conexión, protocolo), o
      - es un TimeoutError / ConnectionError built-in.
    Cualquier otro error (4xx, JSON inválido, bugs) falla de inmediato.
    """
    status = status_of(exc)
    if status is not None:
        return status in TRANSIENT_HTTP_CODES
    if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError)):
        return True
    return isinstance(exc, (TimeoutError, ConnectionError))


def _log_retry(state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome is not None else None
    logger.warning(
        "Reintentando lectura del backend",
        extra={
            "function": getattr(state.fn, "__qualname__", "?"),
            "attempt": state.attempt_number,
            "wait_seconds": round(state.next_action.sleep, 2) if state.next_action else 0,
            "status_code": status_of(exc) if exc else None,
            "error_type": type(exc).__name__ if exc else None,
        },
    )


def create_retry_decorator(
    max_attempts: int | None = None,
    base_delay: float | None = None,
    max_delay: float | None = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator de tenacity (sirve para funciones y coroutines).

    Los parámetros en None toman el valor de Settings (retry_*). Al agotar los
    intentos se re-levanta el último error original.
    """
    settings = get_settings()
    attempts = settings.retry_max_attempts if max_attempts is None else max_attempts
    initial = settings.retry_base_delay_seconds if base_delay is None else base_delay
    ceiling = settings.retry_max_delay_seconds if max_delay is None else max_delay

    if attempts < 1:
        raise ValueError("max_attempts must be >= 1")
    if initial < 0:
        raise ValueError("base_delay must be >= 0")
    if ceiling <= 0:
        raise ValueError("max_delay must be > 0")

    return retry(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential_jitter(initial=initial, max=ceiling, jitter=initial),
        retry=retry_if_exception(is_transient_error),
        before_sleep=_log_retry,
        reraise=True,
    )
