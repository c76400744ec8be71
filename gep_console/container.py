"""
===============================================================================
TARJETA CRC: gep_console/container.py (Composition Root / DI manual)
===============================================================================

Responsabilidades:
  - Componer los adapters del backend (HTTP o en memoria) según Settings.
  - Construir el estado de proceso: SessionManager + NavigationGate +
    servicios de aplicación.
  - Exponer teardown explícito (close / aclose).

Colaboradores:
  - gep_console.crosscutting.config.Settings
  - gep_console.infrastructure.backend.* / infrastructure.in_memory.*
  - gep_console.identity.* / gep_console.application.*

Notas:
  - Este archivo NO contiene lógica de negocio.
  - Este archivo NO depende de FastAPI: api/main.py lo usa desde el lifespan
    y deja el resultado en app.state.
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from .application.dashboard import DashboardService
from .application.dev_seed import seed_dev_profiles
from .crosscutting.config import Settings
from .crosscutting.logger import logger
from .domain.services import AuthProvider, BackendProbe, DocumentStatsStore, ProfileStore
from .identity.navigation import NavigationGate
from .identity.profiles import ProfileResolver
from .identity.session import SessionManager
from .infrastructure.backend import (
    BackendDiagnostics,
    HttpAuthProvider,
    HttpDocumentStats,
    HttpProfileStore,
    build_http_client,
)
from .infrastructure.in_memory import (
    InMemoryAuthProvider,
    InMemoryBackendProbe,
    InMemoryDocumentStats,
    InMemoryProfileStore,
)

# =============================================================================
# Helpers internos
# =============================================================================


def _use_in_memory(settings: Settings) -> bool:
    """
    Regla:
      - USE_IN_MEMORY_BACKEND=true o app_env ∈ {"test", "testing", "ci"}
        => adapters en memoria.
    """
    return settings.use_in_memory_backend or settings.is_test()


# =============================================================================
# Backend
# =============================================================================


@dataclass
class BackendAdapters:
    provider: AuthProvider
    profiles: ProfileStore
    stats: DocumentStatsStore
    probe: BackendProbe
    http_client: httpx.AsyncClient | None = None

    async def aclose(self) -> None:
        if self.http_client is not None:
            await self.http_client.aclose()


def build_backend(settings: Settings) -> BackendAdapters:
    """Adapters del backend hospedado (HTTP) o en memoria (tests / local)."""
    if _use_in_memory(settings):
        provider = InMemoryAuthProvider()
        profiles = InMemoryProfileStore()
        seed_dev_profiles(settings, provider=provider, profiles=profiles)
        logger.info("Backend: usando adapters en memoria")
        return BackendAdapters(
            provider=provider,
            profiles=profiles,
            stats=InMemoryDocumentStats(),
            probe=InMemoryBackendProbe(),
        )

    client = build_http_client(settings)
    key = settings.backend_anon_key
    logger.info("Backend: usando backend hospedado", extra={"url": settings.backend_url})
    return BackendAdapters(
        provider=HttpAuthProvider(client, anon_key=key),
        profiles=HttpProfileStore(client, anon_key=key, table=settings.profiles_table),
        stats=HttpDocumentStats(
            client,
            anon_key=key,
            table=settings.documents_table,
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay_seconds,
            max_delay=settings.retry_max_delay_seconds,
        ),
        probe=BackendDiagnostics(client, anon_key=key),
        http_client=client,
    )


# =============================================================================
# Estado de proceso
# =============================================================================


@dataclass
class Console:
    """Estado de proceso: un SessionManager y su NavigationGate."""

    backend: BackendAdapters
    sessions: SessionManager
    navigation: NavigationGate
    dashboard: DashboardService

    async def aclose(self) -> None:
        self.navigation.close()
        self.sessions.close()
        await self.backend.aclose()


def build_console(settings: Settings, backend: BackendAdapters) -> Console:
    resolver = ProfileResolver(
        backend.profiles, timeout_seconds=settings.profile_lookup_timeout_seconds
    )
    sessions = SessionManager(
        backend.provider,
        resolver,
        bootstrap_timeout_seconds=settings.bootstrap_timeout_seconds,
        sign_out_timeout_seconds=settings.sign_out_timeout_seconds,
    )
    navigation = NavigationGate(
        sessions, warning_seconds=settings.navigation_warning_seconds
    )
    return Console(
        backend=backend,
        sessions=sessions,
        navigation=navigation,
        dashboard=DashboardService(backend.stats, sessions),
    )
