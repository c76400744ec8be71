"""
============================================================
TARJETA CRC: infrastructure/backend/document_stats.py
============================================================
Class: HttpDocumentStats

Responsibilities:
  - Implementar DocumentStatsStore sobre PostgREST (tabla de documentos).
  - Contar con `Prefer: count=exact` leyendo el total de `Content-Range`.
  - Reintentar fallas transitorias (tenacity) y traducir el resto a
    StatisticsError.

Collaborators:
  - infrastructure.services.retry.create_retry_decorator
  - httpx.AsyncClient
============================================================
"""

from __future__ import annotations

from datetime import datetime

import httpx

from ...crosscutting.exceptions import StatisticsError
from ...crosscutting.logger import logger
from ..services.retry import create_retry_decorator
from .client import auth_headers


def parse_content_range_total(header: str | None) -> int:
    """Total de `Content-Range: 0-24/42` o `*/42`."""
    if not header or "/" not in header:
        raise StatisticsError(f"Content-Range inválido: {header!r}")
    total = header.rsplit("/", 1)[1].strip()
    if not total.isdigit():
        raise StatisticsError(f"Content-Range sin total exacto: {header!r}")
    return int(total)


class HttpDocumentStats:
    """Estadísticas de documentos capturados (created_at / fuente)."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        anon_key: str,
        table: str = "senado",
        max_attempts: int | None = None,
        base_delay: float | None = None,
        max_delay: float | None = None,
    ):
        self._client = client
        self._anon_key = anon_key
        self._path = f"/rest/v1/{table}"
        self._send = create_retry_decorator(
            max_attempts=max_attempts, base_delay=base_delay, max_delay=max_delay
        )(self._send_once)

    async def count_created_between(self, start: datetime, end: datetime) -> int:
        response = await self._call(
            "HEAD",
            params=[
                ("select", "*"),
                ("created_at", f"gte.{start.isoformat()}"),
                ("created_at", f"lt.{end.isoformat()}"),
            ],
            extra_headers={"Prefer": "count=exact"},
        )
        return parse_content_range_total(response.headers.get("content-range"))

    async def list_sources_since(self, start: datetime) -> list[str | None]:
        response = await self._call(
            "GET",
            params=[
                ("select", "fuente"),
                ("created_at", f"gte.{start.isoformat()}"),
            ],
        )
        try:
            rows = response.json()
        except ValueError as exc:
            raise StatisticsError(
                "Respuesta de documentos no es JSON", original_error=exc
            ) from exc
        if not isinstance(rows, list):
            raise StatisticsError("Respuesta de documentos con formato inesperado")
        return [row.get("fuente") if isinstance(row, dict) else None for row in rows]

    async def _call(
        self,
        method: str,
        *,
        params: list[tuple[str, str]],
        extra_headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        headers = auth_headers(self._anon_key)
        headers.update(extra_headers or {})
        try:
            return await self._send(method, params, headers)
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Estadísticas: el backend respondió error",
                extra={"status_code": exc.response.status_code, "path": self._path},
            )
            raise StatisticsError(
                f"Consulta de estadísticas falló ({exc.response.status_code})",
                original_error=exc,
            ) from exc
        except httpx.HTTPError as exc:
            logger.error(
                "Estadísticas: error de transporte",
                extra={"error_type": type(exc).__name__, "path": self._path},
            )
            raise StatisticsError(
                f"Error de conexión consultando estadísticas: {type(exc).__name__}",
                original_error=exc,
            ) from exc

    async def _send_once(
        self, method: str, params: list[tuple[str, str]], headers: dict[str, str]
    ) -> httpx.Response:
        response = await self._client.request(
            method, self._path, params=params, headers=headers
        )
        response.raise_for_status()
        return response
