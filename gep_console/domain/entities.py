"""
===============================================================================
TARJETA CRC: domain/entities.py
===============================================================================

Módulo:
    Entidades del Dominio (identidad del proveedor, perfil, sondas)

Responsabilidades:
    - Definir las estructuras que cruzan los puertos del backend hospedado.
    - Mantener tipos claros para identity/ y application/.

Colaboradores:
    - domain.services: puertos que producen/consumen estas entidades.
    - infrastructure.backend / infrastructure.in_memory: las construyen.
    - identity.session: cachea AuthIdentity durante la sesión.

Principios:
    - Sin dependencias a HTTP/FastAPI.
    - La identidad es propiedad del proveedor: acá solo hay copias de lectura.
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class AuthChangeEvent(str, Enum):
    """Notificaciones del stream de cambios de autenticación."""

    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"


@dataclass(frozen=True, slots=True)
class AuthIdentity:
    """Identidad opaca emitida por el proveedor externo."""

    id: str
    email: str


@dataclass(frozen=True, slots=True)
class ProviderSession:
    """Sesión del proveedor: identidad + tokens emitidos."""

    user: AuthIdentity
    access_token: str = field(repr=False)
    refresh_token: str = field(default="", repr=False)
    expires_in: int | None = None


@dataclass(frozen=True, slots=True)
class ProfileRecord:
    """
    Fila cruda de la tabla de perfiles (`usuarios`).

    `activo` puede venir ausente (None): la interpretación (ausente = activo)
    vive en identity.profiles, no acá.
    """

    email: str
    perfil: str
    activo: bool | None = None
    nombre: str | None = None
    apellido: str | None = None


@dataclass(frozen=True, slots=True)
class ProbeResult:
    """Resultado de una sonda de conectividad contra el backend."""

    name: str
    ok: bool
    status_code: int | None = None
    message: str = ""
