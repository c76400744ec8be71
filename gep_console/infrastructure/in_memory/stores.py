"""
============================================================
TARJETA CRC: infrastructure/in_memory/stores.py
============================================================
Classes:
  - InMemoryProfileStore
  - InMemoryDocumentStats
  - InMemoryBackendProbe

Responsibilities:
  - Implementar los puertos de lectura en memoria (tests / local dev).
  - Permitir simular fallas y demoras de la consulta de perfil.
  - Mantener comparaciones de email case-insensitive como la tabla real.

Collaborators:
  - domain.services.ProfileStore, DocumentStatsStore, BackendProbe
============================================================
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from threading import Lock

from ...crosscutting.exceptions import ProfileLookupError
from ...domain.entities import ProbeResult, ProfileRecord


class InMemoryProfileStore:
    """Tabla de perfiles en memoria (email -> ProfileRecord)."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._rows: dict[str, ProfileRecord] = {}

        self.fail_with: ProfileLookupError | None = None
        self.delay_seconds: float = 0.0
        self.lookups = 0

    def upsert(
        self,
        email: str,
        perfil: str,
        *,
        activo: bool | None = True,
        nombre: str | None = None,
        apellido: str | None = None,
    ) -> ProfileRecord:
        key = email.strip().lower()
        record = ProfileRecord(
            email=key, perfil=perfil, activo=activo, nombre=nombre, apellido=apellido
        )
        with self._lock:
            self._rows[key] = record
        return record

    def set_active(self, email: str, activo: bool | None) -> None:
        key = email.strip().lower()
        with self._lock:
            current = self._rows[key]
            self._rows[key] = ProfileRecord(
                email=current.email,
                perfil=current.perfil,
                activo=activo,
                nombre=current.nombre,
                apellido=current.apellido,
            )

    def remove(self, email: str) -> None:
        with self._lock:
            self._rows.pop(email.strip().lower(), None)

    async def find_by_email(self, email: str) -> ProfileRecord | None:
        self.lookups += 1
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.fail_with is not None:
            raise self.fail_with
        with self._lock:
            return self._rows.get(email.strip().lower())


class InMemoryDocumentStats:
    """Documentos capturados en memoria: (created_at, fuente)."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._documents: list[tuple[datetime, str | None]] = []

    def add(self, created_at: datetime, fuente: str | None = None) -> None:
        with self._lock:
            self._documents.append((created_at, fuente))

    async def count_created_between(self, start: datetime, end: datetime) -> int:
        with self._lock:
            return sum(1 for created, _ in self._documents if start <= created < end)

    async def list_sources_since(self, start: datetime) -> list[str | None]:
        with self._lock:
            return [fuente for created, fuente in self._documents if created >= start]


class InMemoryBackendProbe:
    """Sondas fijas; por defecto todas OK."""

    def __init__(self, results: list[ProbeResult] | None = None) -> None:
        self.results = results or [
            ProbeResult(name="health", ok=True, status_code=200, message="OK"),
            ProbeResult(name="rest", ok=True, status_code=200, message="OK"),
            ProbeResult(name="auth", ok=True, status_code=200, message="OK"),
        ]

    async def run_probes(self) -> list[ProbeResult]:
        return list(self.results)
