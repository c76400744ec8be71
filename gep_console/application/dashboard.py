"""
===============================================================================
USE CASE: Dashboard Summary (KPIs de documentos capturados)
===============================================================================

Business Goal:
    Mostrar en la pantalla inicial:
      - Documentos capturados hoy.
      - Documentos por fuente en los últimos 7 días, en el orden fijo del
        gráfico: Cámara de Diputados, Cámara de Senadores, Diario Oficial de
        la Federación, CONAMER.

Reglas:
    - Requiere acceso al módulo dashboard (sesión con rol).
    - Un documento sin `fuente` se cuenta como `sin_fuente` (no se grafica).
    - "Hoy" es el día UTC de `now`: [00:00, 24:00).

-------------------------------------------------------------------------------
CRC CARD
-------------------------------------------------------------------------------
Class:
    DashboardService

Responsibilities:
    - Verificar acceso al módulo.
    - Consultar DocumentStatsStore y agregar por fuente.

Collaborators:
    - domain.services.DocumentStatsStore
    - identity.session.SessionManager (has_access)
===============================================================================
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from typing import Callable

from ..crosscutting.exceptions import AccessDenied
from ..crosscutting.logger import logger
from ..domain.services import DocumentStatsStore
from ..identity.roles import Module
from ..identity.session import SessionManager

UNSOURCED_KEY = "sin_fuente"
CHART_WINDOW = timedelta(days=7)

# R: orden del gráfico (clave de `fuente` -> etiqueta).
CHART_SOURCES: tuple[tuple[str, str], ...] = (
    ("diputados", "Cámara de Diputados"),
    ("senado", "Cámara de Senadores"),
    ("dof", "Diario Oficial de la Federación"),
    ("conamer", "CONAMER"),
)


@dataclass(frozen=True, slots=True)
class SourceCount:
    key: str
    label: str
    documents: int


@dataclass(frozen=True, slots=True)
class DashboardSummary:
    documents_today: int
    sources: list[SourceCount]
    unsourced: int
    window_start: datetime
    generated_at: datetime


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DashboardService:
    """Calcula los KPIs del dashboard."""

    def __init__(
        self,
        stats: DocumentStatsStore,
        sessions: SessionManager,
        *,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self._stats = stats
        self._sessions = sessions
        self._clock = clock

    async def summary(self) -> DashboardSummary:
        """
        Raises:
            AccessDenied: si la sesión no permite el dashboard.
            StatisticsError: si el backend falló tras los reintentos.
        """
        if not self._sessions.has_access(Module.DASHBOARD):
            raise AccessDenied(Module.DASHBOARD.value)

        now = self._clock()
        day_start = datetime.combine(now.date(), time.min, tzinfo=timezone.utc)
        day_end = day_start + timedelta(days=1)
        window_start = now - CHART_WINDOW

        documents_today = await self._stats.count_created_between(day_start, day_end)
        per_source = Counter(
            fuente or UNSOURCED_KEY
            for fuente in await self._stats.list_sources_since(window_start)
        )

        logger.info(
            "Dashboard: KPIs calculados",
            extra={"documents_today": documents_today, "sources": dict(per_source)},
        )
        return DashboardSummary(
            documents_today=documents_today,
            sources=[
                SourceCount(key=key, label=label, documents=per_source.get(key, 0))
                for key, label in CHART_SOURCES
            ],
            unsourced=per_source.get(UNSOURCED_KEY, 0),
            window_start=window_start,
            generated_at=now,
        )
