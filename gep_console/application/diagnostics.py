"""
===============================================================================
USE CASE: Connection Diagnostics
===============================================================================

Business Goal:
    Panel de diagnóstico: ¿responde el backend? ¿REST y Auth están arriba?
    Se combina con el connection_status de la sesión para explicar la
    pantalla de "Error de conexión".

CRC:
    Component: run_diagnostics
    Responsibilities:
      - Ejecutar las sondas y resumir el resultado
      - Nunca levantar por una sonda caída
    Collaborators:
      - domain.services.BackendProbe
      - identity.session.SessionManager
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass

from ..crosscutting.logger import logger
from ..domain.entities import ProbeResult
from ..domain.services import BackendProbe
from ..identity.session import ConnectionStatus, SessionManager


@dataclass(frozen=True, slots=True)
class DiagnosticsReport:
    connection_status: ConnectionStatus
    checks: list[ProbeResult]

    @property
    def healthy(self) -> bool:
        return all(check.ok for check in self.checks)


async def run_diagnostics(
    probe: BackendProbe, sessions: SessionManager
) -> DiagnosticsReport:
    checks = await probe.run_probes()
    report = DiagnosticsReport(
        connection_status=sessions.session.connection_status, checks=checks
    )
    if not report.healthy:
        logger.warning(
            "Diagnóstico: sondas con falla",
            extra={"failed": [c.name for c in checks if not c.ok]},
        )
    return report
