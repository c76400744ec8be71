"""
===============================================================================
TASK: Dev Seed Profiles (solo backend en memoria)
===============================================================================

Qué es:
    Carga cuentas de demostración en los adapters en memoria para poder
    iniciar sesión en desarrollo local sin backend hospedado.

Seguridad:
    - Guard estricto: nunca en producción (también lo valida Settings).
    - Solo aplica sobre los adapters en memoria.

CRC:
    Component: seed_dev_profiles
    Responsibilities:
      - Registrar credenciales en el proveedor en memoria
      - Crear las filas de perfil correspondientes (idempotente)
    Collaborators:
      - InMemoryAuthProvider, InMemoryProfileStore
      - Settings
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from ..crosscutting.config import Settings
from ..crosscutting.logger import logger
from ..identity.roles import Role
from ..infrastructure.in_memory import InMemoryAuthProvider, InMemoryProfileStore


@dataclass(frozen=True, slots=True)
class DemoAccount:
    email: str
    role: Role
    active: bool
    nombre: str
    apellido: str


DEMO_ACCOUNTS: Final[tuple[DemoAccount, ...]] = (
    DemoAccount("admin@gep.com.mx", Role.ADMINISTRATOR, True, "Admin", "GEP"),
    DemoAccount("ana@gep.com.mx", Role.ANALYST, True, "Ana", "Analista"),
    DemoAccount("inactivo@gep.com.mx", Role.ANALYST, False, "Cuenta", "Inactiva"),
)


def seed_dev_profiles(
    settings: Settings,
    *,
    provider: InMemoryAuthProvider,
    profiles: InMemoryProfileStore,
) -> int:
    """
    Registra las cuentas demo si `dev_seed_profiles` está activo.

    Returns:
        Cantidad de cuentas sembradas (0 si está deshabilitado).
    """
    if not settings.dev_seed_profiles:
        return 0
    if settings.is_production():
        raise RuntimeError(
            "FATAL: DEV_SEED_PROFILES is enabled in production. "
            "Safety guard prevents seeding demo accounts."
        )

    for account in DEMO_ACCOUNTS:
        provider.register(account.email, settings.dev_seed_password)
        profiles.upsert(
            account.email,
            account.role.value,
            activo=account.active,
            nombre=account.nombre,
            apellido=account.apellido,
        )

    logger.info(
        "Dev seed: cuentas demo cargadas",
        extra={"emails": [a.email for a in DEMO_ACCOUNTS]},
    )
    return len(DEMO_ACCOUNTS)
