# gep_console/crosscutting/middleware.py
"""
===============================================================================
MÓDULO: Middleware HTTP (correlación + métricas)
===============================================================================

RequestContextMiddleware:
  - Toma `X-Request-Id` del cliente (si es razonable) o genera uno.
  - Abre el contexto de log del request y lo cierra siempre al final.
  - Registra latencia/estado en Prometheus y una línea de log por request
    (salvo /healthz y /metrics, que se sondean seguido).

Colaboradores:
  - gep_console/context.py
  - crosscutting/metrics.py
  - crosscutting/logger.py
===============================================================================
"""

from __future__ import annotations

import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from ..context import clear_context, set_request_context
from .logger import logger
from .metrics import record_request_metrics

REQUEST_ID_HEADER = "X-Request-Id"

_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")
_UNLOGGED_PATHS = frozenset({"/healthz", "/metrics"})


def resolve_request_id(incoming: str | None) -> str:
    """Id del cliente si es un token seguro para logs; si no, uno nuevo."""
    candidate = (incoming or "").strip()
    if _REQUEST_ID_RE.match(candidate):
        return candidate
    return uuid.uuid4().hex


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        set_request_context(
            request_id=request_id, method=request.method, path=request.url.path
        )

        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            elapsed = time.perf_counter() - started
            record_request_metrics(
                endpoint=request.url.path,
                method=request.method,
                status_code=status_code,
                latency_seconds=elapsed,
            )
            if request.url.path not in _UNLOGGED_PATHS:
                log = logger.warning if status_code >= 500 else logger.info
                log(
                    "request",
                    extra={
                        "status_code": status_code,
                        "latency_ms": round(elapsed * 1000, 1),
                    },
                )
            clear_context()
