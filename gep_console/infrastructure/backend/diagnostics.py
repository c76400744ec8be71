"""
============================================================
TARJETA CRC: infrastructure/backend/diagnostics.py
============================================================
Class: BackendDiagnostics

Responsibilities:
  - Sondear el backend hospedado: `/health`, `/rest/v1/`, `/auth/v1/settings`.
  - Nunca levantar: cada sonda devuelve un ProbeResult (ok / status / mensaje).

Collaborators:
  - domain.services.BackendProbe
  - httpx.AsyncClient
============================================================
"""

from __future__ import annotations

import httpx

from ...crosscutting.logger import logger
from ...domain.entities import ProbeResult
from .client import auth_headers

PROBES: tuple[tuple[str, str], ...] = (
    ("health", "/health"),
    ("rest", "/rest/v1/"),
    ("auth", "/auth/v1/settings"),
)


class BackendDiagnostics:
    """Sondas de conectividad contra el backend hospedado."""

    def __init__(self, client: httpx.AsyncClient, *, anon_key: str):
        self._client = client
        self._anon_key = anon_key

    async def run_probes(self) -> list[ProbeResult]:
        return [await self._probe(name, path) for name, path in PROBES]

    async def _probe(self, name: str, path: str) -> ProbeResult:
        try:
            response = await self._client.get(path, headers=auth_headers(self._anon_key))
        except httpx.HTTPError as exc:
            logger.warning(
                "Diagnóstico: sonda sin respuesta",
                extra={"probe": name, "error_type": type(exc).__name__},
            )
            return ProbeResult(name=name, ok=False, message=f"Error de conexión: {exc}")

        ok = response.status_code < 400
        return ProbeResult(
            name=name,
            ok=ok,
            status_code=response.status_code,
            message="OK" if ok else f"HTTP {response.status_code}",
        )
