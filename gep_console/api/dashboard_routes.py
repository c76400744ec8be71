"""
===============================================================================
TARJETA CRC: gep_console/api/dashboard_routes.py
===============================================================================

Responsabilidades:
  - GET /dashboard/summary: KPIs de documentos (requiere sesión + permiso).
  - GET /diagnostics: sondas de conectividad (sin autenticación, siempre
    responde, incluso con el backend caído).

Colaboradores:
  - application.dashboard.DashboardService
  - application.diagnostics.run_diagnostics
===============================================================================
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..application.dashboard import DashboardService
from ..application.diagnostics import run_diagnostics
from ..crosscutting.error_responses import OPENAPI_ERROR_RESPONSES
from ..domain.services import BackendProbe
from ..identity.session import ConnectionStatus, SessionManager
from .dependencies import (
    get_dashboard,
    get_probe,
    get_session_manager,
    require_authenticated,
)

router = APIRouter(responses=OPENAPI_ERROR_RESPONSES)


class SourceCountResponse(BaseModel):
    key: str
    label: str
    documents: int


class DashboardSummaryResponse(BaseModel):
    documents_today: int
    sources: list[SourceCountResponse]
    sin_fuente: int
    window_start: datetime
    generated_at: datetime


class ProbeResponse(BaseModel):
    name: str
    ok: bool
    status_code: int | None = None
    message: str = ""


class DiagnosticsResponse(BaseModel):
    connection_status: ConnectionStatus
    healthy: bool
    checks: list[ProbeResponse]


@router.get(
    "/dashboard/summary",
    response_model=DashboardSummaryResponse,
    tags=["dashboard"],
    dependencies=[Depends(require_authenticated)],
)
async def dashboard_summary(
    dashboard: DashboardService = Depends(get_dashboard),
) -> DashboardSummaryResponse:
    summary = await dashboard.summary()
    return DashboardSummaryResponse(
        documents_today=summary.documents_today,
        sources=[
            SourceCountResponse(key=s.key, label=s.label, documents=s.documents)
            for s in summary.sources
        ],
        sin_fuente=summary.unsourced,
        window_start=summary.window_start,
        generated_at=summary.generated_at,
    )


@router.get("/diagnostics", response_model=DiagnosticsResponse, tags=["diagnostics"])
async def diagnostics(
    probe: BackendProbe = Depends(get_probe),
    sessions: SessionManager = Depends(get_session_manager),
) -> DiagnosticsResponse:
    report = await run_diagnostics(probe, sessions)
    return DiagnosticsResponse(
        connection_status=report.connection_status,
        healthy=report.healthy,
        checks=[
            ProbeResponse(
                name=c.name, ok=c.ok, status_code=c.status_code, message=c.message
            )
            for c in report.checks
        ],
    )
