"""
===============================================================================
TARJETA CRC: domain/services.py
===============================================================================

Módulo:
    Puertos del Backend Hospedado (Protocols)

Responsabilidades:
    - Definir los cinco contratos de los que depende el Session Manager:
      get_session, sign_in_with_password, sign_out, on_auth_state_change y
      la búsqueda de perfil por email.
    - Definir contratos auxiliares (estadísticas de documentos, sondas).
    - Mantener identity/ y application/ independientes del transporte.

Colaboradores:
    - infrastructure/backend/*: implementaciones HTTP (httpx).
    - infrastructure/in_memory/*: implementaciones para tests/dev.

Reglas:
    - SOLO interfaces: nada de implementación.
    - Todas las operaciones de I/O son corrutinas.
===============================================================================
"""

from __future__ import annotations

from datetime import datetime
from typing import Awaitable, Callable, Protocol

from .entities import AuthChangeEvent, ProbeResult, ProfileRecord, ProviderSession

AuthStateCallback = Callable[
    [AuthChangeEvent, ProviderSession | None], Awaitable[None]
]
Unsubscribe = Callable[[], None]


class AuthProvider(Protocol):
    """Contrato del proveedor de autenticación."""

    async def get_session(self) -> ProviderSession | None:
        """Sesión existente (persistida) o None. Errores: AuthProviderError."""
        ...

    async def sign_in_with_password(
        self, email: str, password: str
    ) -> ProviderSession:
        """Autentica por contraseña. Errores: AuthProviderError."""
        ...

    async def sign_out(self) -> None:
        """Cierra la sesión en el proveedor. Errores: AuthProviderError."""
        ...

    def on_auth_state_change(self, callback: AuthStateCallback) -> Unsubscribe:
        """Suscribe un callback al stream de cambios; retorna el unsubscribe."""
        ...


class ProfileStore(Protocol):
    """Contrato de búsqueda de perfiles."""

    async def find_by_email(self, email: str) -> ProfileRecord | None:
        """
        Busca una fila por email (ya normalizado en minúsculas).

        Returns:
            ProfileRecord, o None si se confirmó que no existe la fila.

        Raises:
            ProfileLookupError: si la consulta falló (no confundir con ausencia).
        """
        ...


class DocumentStatsStore(Protocol):
    """Contrato de estadísticas sobre documentos capturados."""

    async def count_created_between(self, start: datetime, end: datetime) -> int:
        """Cantidad de documentos con created_at en [start, end)."""
        ...

    async def list_sources_since(self, start: datetime) -> list[str | None]:
        """Fuente (`fuente`) de cada documento creado desde `start`."""
        ...


class BackendProbe(Protocol):
    """Contrato de sondas de conectividad (panel de diagnóstico)."""

    async def run_probes(self) -> list[ProbeResult]: ...
