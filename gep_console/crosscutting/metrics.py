# gep_console/crosscutting/metrics.py
"""
===============================================================================
MÓDULO: Métricas Prometheus de la consola
===============================================================================

Registro propio (no el global de prometheus_client) para que los tests puedan
crear apps repetidas sin "Duplicated timeseries".

Series:
  - gep_http_requests_total{route, method, status_class}
  - gep_http_request_duration_seconds{route, method}
  - gep_sign_in_total{outcome}            success | NotRegistered | ...
  - gep_session_revocations_total{source} sign_in | bootstrap | event:*
  - gep_profile_fallbacks_total{reason}   timeout | lookup_error | ...
  - gep_stale_session_writes_total{source}
  - gep_navigation_denied_total{module}

Labels acotados: `route` reemplaza el módulo de /navigation/{module}.
===============================================================================
"""

from __future__ import annotations

import re

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

_http_requests = Counter(
    "gep_http_requests_total",
    "Requests HTTP atendidos",
    ["route", "method", "status_class"],
    registry=REGISTRY,
)
_http_duration = Histogram(
    "gep_http_request_duration_seconds",
    "Duración de requests HTTP",
    ["route", "method"],
    buckets=(0.005, 0.025, 0.1, 0.5, 1.0, 5.0, 15.0),
    registry=REGISTRY,
)

_sign_in = Counter(
    "gep_sign_in_total", "Intentos de inicio de sesión", ["outcome"], registry=REGISTRY
)
_revocations = Counter(
    "gep_session_revocations_total",
    "Sesiones cerradas por cuenta inactiva",
    ["source"],
    registry=REGISTRY,
)
_profile_fallbacks = Counter(
    "gep_profile_fallbacks_total",
    "Perfiles resueltos con el rol de fallback",
    ["reason"],
    registry=REGISTRY,
)
_stale_writes = Counter(
    "gep_stale_session_writes_total",
    "Resultados de sesión descartados por existir un estado más nuevo",
    ["source"],
    registry=REGISTRY,
)
_navigation_denied = Counter(
    "gep_navigation_denied_total",
    "Navegaciones rechazadas por rol",
    ["module"],
    registry=REGISTRY,
)

_NAVIGATION_ROUTE = re.compile(r"^/navigation/[^/]+$")


def route_label(path: str) -> str:
    if _NAVIGATION_ROUTE.match(path):
        return "/navigation/{module}"
    return path


def record_request_metrics(
    endpoint: str, method: str, status_code: int, latency_seconds: float
) -> None:
    route = route_label(endpoint)
    _http_requests.labels(
        route=route, method=method, status_class=f"{status_code // 100}xx"
    ).inc()
    _http_duration.labels(route=route, method=method).observe(latency_seconds)


def record_sign_in(outcome: str) -> None:
    _sign_in.labels(outcome=outcome).inc()


def record_session_revocation(source: str) -> None:
    _revocations.labels(source=source).inc()


def record_profile_fallback(reason: str) -> None:
    _profile_fallbacks.labels(reason=reason).inc()


def record_stale_session_write(source: str) -> None:
    _stale_writes.labels(source=source).inc()


def record_navigation_denied(module: str) -> None:
    _navigation_denied.labels(module=module).inc()


def get_metrics_response() -> tuple[bytes, str]:
    """Body + content-type de /metrics."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
