"""
===============================================================================
TARJETA CRC: identity/profiles.py
===============================================================================

Módulo:
    Resolución de Perfil (email -> rol + estado activo)

Responsabilidades:
    - Consultar la tabla de perfiles por email (case-insensitive).
    - Acotar cada consulta con su propio watchdog (5 s por defecto).
    - Distinguir "no aprovisionado" (None) de "no se pudo consultar" (fallback).
    - Construir el perfil de fallback con la heurística de email.
    - Interpretar `activo` ausente como activo (inactivo debe ser explícito).

Colaboradores:
    - domain.services.ProfileStore: puerto de lectura.
    - identity.roles: Role + fallback_role_for_email.
    - crosscutting.metrics: contador de fallbacks.

Notas:
    - Un `perfil` fuera del catálogo cerrado se trata como falla de consulta:
      la sesión nunca debe ver una identidad sin rol válido.
    - Los fallbacks salen marcados `degraded=True` para que la UI pueda
      advertir en vez de conceder acceso en silencio.
===============================================================================
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from ..crosscutting.exceptions import ProfileLookupError, ProfileLookupTimeout
from ..crosscutting.logger import logger
from ..crosscutting.metrics import record_profile_fallback
from ..domain.services import ProfileStore
from .roles import Role, fallback_role_for_email

FALLBACK_TIMEOUT = "timeout"
FALLBACK_LOOKUP_ERROR = "lookup_error"
FALLBACK_UNKNOWN_ROLE = "unknown_role"
FALLBACK_NOT_PROVISIONED = "not_provisioned"
FALLBACK_UNEXPECTED = "unexpected_error"


@dataclass(frozen=True, slots=True)
class ResolvedProfile:
    """Perfil resuelto para una sesión."""

    email: str
    role: Role
    active: bool = True
    nombre: str | None = None
    apellido: str | None = None
    degraded: bool = False
    fallback_reason: str | None = None

    @classmethod
    def fallback(
        cls, email: str, reason: str, role: Role | None = None
    ) -> "ResolvedProfile":
        return cls(
            email=email,
            role=role or fallback_role_for_email(email),
            active=True,
            degraded=True,
            fallback_reason=reason,
        )


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class ProfileResolver:
    """Resuelve perfiles con watchdog y fallback."""

    def __init__(self, store: ProfileStore, *, timeout_seconds: float = 5.0):
        self._store = store
        self._timeout_seconds = timeout_seconds

    async def resolve(self, email: str) -> ResolvedProfile | None:
        """
        Resuelve el perfil de `email`.

        Returns:
            - ResolvedProfile con los datos de la fila.
            - ResolvedProfile degradado (fallback) si la consulta expiró o falló
              por cualquier motivo.
            - None si se confirmó que no existe una fila para el email.
        """
        normalized = normalize_email(email)
        if not normalized:
            return None

        try:
            record = await asyncio.wait_for(
                self._store.find_by_email(normalized),
                timeout=self._timeout_seconds,
            )
        except asyncio.TimeoutError:
            timeout = ProfileLookupTimeout(
                f"La consulta de perfil superó {self._timeout_seconds}s"
            )
            logger.warning(
                "Perfil: timeout, usando fallback",
                extra={"email": normalized, "error_id": timeout.error_id},
            )
            return self._fallback(normalized, FALLBACK_TIMEOUT)
        except ProfileLookupError as exc:
            logger.warning(
                "Perfil: consulta falló, usando fallback",
                extra={
                    "email": normalized,
                    "error_code": exc.error_code,
                    "error_id": exc.error_id,
                    "error": exc.message,
                },
            )
            return self._fallback(normalized, FALLBACK_LOOKUP_ERROR)
        except Exception:
            logger.exception(
                "Perfil: error inesperado en la consulta, usando fallback",
                extra={"email": normalized},
            )
            return self._fallback(normalized, FALLBACK_LOOKUP_ERROR)

        if record is None:
            logger.info("Perfil: email no aprovisionado", extra={"email": normalized})
            return None

        try:
            role = Role((record.perfil or "").strip())
        except ValueError:
            logger.warning(
                "Perfil: rol desconocido, usando fallback",
                extra={"email": normalized, "perfil": record.perfil},
            )
            return self._fallback(normalized, FALLBACK_UNKNOWN_ROLE)

        return ResolvedProfile(
            email=normalized,
            role=role,
            # R: ausente = activo; solo False explícito desactiva.
            active=record.activo is not False,
            nombre=record.nombre,
            apellido=record.apellido,
        )

    @staticmethod
    def _fallback(email: str, reason: str) -> ResolvedProfile:
        record_profile_fallback(reason)
        profile = ResolvedProfile.fallback(email, reason)
        logger.info(
            "Perfil: fallback aplicado",
            extra={"email": email, "role": profile.role.value, "reason": reason},
        )
        return profile
