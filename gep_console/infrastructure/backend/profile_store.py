"""
============================================================
TARJETA CRC: infrastructure/backend/profile_store.py
============================================================
Class: HttpProfileStore

Responsibilities:
  - Implementar ProfileStore con una consulta PostgREST de una sola fila.
  - Distinguir ausencia confirmada (lista vacía -> None) de falla
    (transporte / HTTP no-2xx / shape inválido -> ProfileLookupError).

Collaborators:
  - domain.services.ProfileStore
  - httpx.AsyncClient
============================================================
"""

from __future__ import annotations

import httpx

from ...crosscutting.exceptions import ProfileLookupError
from ...crosscutting.logger import logger
from ...domain.entities import ProfileRecord
from .client import auth_headers, error_message

_PROFILE_COLUMNS = "perfil,activo,nombre,apellido"

_LIKE_SPECIALS = str.maketrans({"\\": "\\\\", "%": "\\%", "_": "\\_"})


def email_filter(email: str) -> str:
    """
    Filtro PostgREST case-insensitive para la columna email.

    `ilike` con los comodines de LIKE escapados; PostgREST además lee `*` como
    `%`, así que un email con `*` cae a `eq` (el email ya viene normalizado).
    """
    if "*" in email:
        return f"eq.{email}"
    return f"ilike.{email.translate(_LIKE_SPECIALS)}"


class HttpProfileStore:
    """Lectura de perfiles vía PostgREST (`/rest/v1/<tabla>`)."""

    def __init__(
        self, client: httpx.AsyncClient, *, anon_key: str, table: str = "usuarios"
    ):
        self._client = client
        self._anon_key = anon_key
        self._path = f"/rest/v1/{table}"

    async def find_by_email(self, email: str) -> ProfileRecord | None:
        try:
            response = await self._client.get(
                self._path,
                params={
                    "select": _PROFILE_COLUMNS,
                    "email": email_filter(email),
                    "limit": "1",
                },
                headers=auth_headers(self._anon_key),
            )
        except httpx.HTTPError as exc:
            raise ProfileLookupError(
                f"Error de transporte consultando perfil: {type(exc).__name__}",
                original_error=exc,
            ) from exc

        if response.status_code >= 400:
            raise ProfileLookupError(
                f"Consulta de perfil falló ({response.status_code}): "
                f"{error_message(response)}"
            )

        try:
            rows = response.json()
        except ValueError as exc:
            raise ProfileLookupError(
                "Respuesta de perfil no es JSON", original_error=exc
            ) from exc

        if not isinstance(rows, list):
            raise ProfileLookupError("Respuesta de perfil con formato inesperado")
        if not rows:
            return None

        row = rows[0]
        if not isinstance(row, dict) or not row.get("perfil"):
            raise ProfileLookupError("Fila de perfil sin columna 'perfil'")

        logger.debug("Perfil encontrado", extra={"email": email})
        activo = row.get("activo")
        return ProfileRecord(
            email=email,
            perfil=str(row["perfil"]),
            activo=activo if isinstance(activo, bool) else None,
            nombre=row.get("nombre"),
            apellido=row.get("apellido"),
        )
