"""
============================================================
TARJETA CRC: infrastructure/backend/client.py
============================================================
Responsibilities:
  - Construir el httpx.AsyncClient compartido contra el backend hospedado.
  - Centralizar headers (`apikey`, `Authorization`) y extracción de mensajes
    de error de respuestas GoTrue / PostgREST.

Collaborators:
  - httpx
  - crosscutting.config.Settings
============================================================
"""

from __future__ import annotations

import httpx

from ...crosscutting.config import Settings


def build_http_client(
    settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None
) -> httpx.AsyncClient:
    """Cliente async con base_url + apikey; `transport` permite MockTransport en tests."""
    if not settings.backend_url:
        raise ValueError("BACKEND_URL is required for the HTTP backend")
    return httpx.AsyncClient(
        base_url=settings.backend_url,
        headers={"apikey": settings.backend_anon_key},
        timeout=settings.http_timeout_seconds,
        transport=transport,
    )


def auth_headers(anon_key: str, access_token: str | None = None) -> dict[str, str]:
    """Headers de autorización: token del usuario si hay, si no la anon key."""
    return {
        "apikey": anon_key,
        "Authorization": f"Bearer {access_token or anon_key}",
    }


def error_message(response: httpx.Response) -> str:
    """
    Mensaje legible de una respuesta de error.

    GoTrue responde `{"msg": ..., "error_code": ...}` o
    `{"error": ..., "error_description": ...}`; PostgREST `{"message": ...}`.
    """
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        for key in ("msg", "error_description", "message", "error_code", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()

    text = (response.text or "").strip()
    return text or f"HTTP {response.status_code}"
