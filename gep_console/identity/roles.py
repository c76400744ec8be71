"""
===============================================================================
TARJETA CRC: identity/roles.py
===============================================================================

Módulo:
    Roles, Módulos y Permisos (catálogo cerrado)

Responsabilidades:
    - Definir el enum cerrado de roles (valores tal como se guardan en `perfil`).
    - Definir el enum cerrado de módulos de la consola.
    - Construir al importar el mapeo Role -> módulos permitidos (ordenado).
    - Exponer consultas puras: allowed_modules / role_has_access / page_title.

Colaboradores:
    - identity.profiles: parsea `perfil` a Role.
    - identity.session: consulta permisos del rol vigente.
    - identity.navigation: arma el menú lateral en este orden.

Notas:
    - Cada rol declara su conjunto de forma independiente; que Administrador
      sea superconjunto de Analista es un hecho de este catálogo, no una regla.
    - Identificadores de módulo desconocidos se rechazan (UnknownModuleError),
      nunca se interpretan como "sin acceso".
===============================================================================
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Mapping

from ..crosscutting.exceptions import UnknownModuleError


class Role(str, Enum):
    """Roles de la consola (valor = texto almacenado en la tabla de perfiles)."""

    ADMINISTRATOR = "Administrador"
    ANALYST = "Analista GEP"


class Module(str, Enum):
    """Secciones de la consola sujetas a control de acceso."""

    DASHBOARD = "dashboard"
    DOCUMENTS = "documents"
    ALERTS = "alerts"
    CLIENTS = "clients"
    COMPANIES = "companies"
    THEMES = "themes"
    USERS = "users"
    BOTS = "bots"

    @classmethod
    def parse(cls, value: "Module | str") -> "Module":
        """Convierte un identificador a Module o levanta UnknownModuleError."""
        if isinstance(value, Module):
            return value
        try:
            return cls((value or "").strip().lower())
        except ValueError as exc:
            raise UnknownModuleError(str(value)) from exc


DEFAULT_MODULE = Module.DASHBOARD

BASE_TITLE = "GEP - Sistema de Gestión Empresarial"

MODULE_LABELS: Mapping[Module, str] = MappingProxyType(
    {
        Module.DASHBOARD: "Dashboard",
        Module.DOCUMENTS: "Gestión Documental",
        Module.ALERTS: "Alertas y Monitoreo",
        Module.CLIENTS: "Gestión de Clientes",
        Module.COMPANIES: "Gestión de Empresas",
        Module.THEMES: "Gestión de Temas",
        Module.USERS: "Gestión de Usuarios",
        Module.BOTS: "Ejecución de Bots",
    }
)


def _build_permissions(
    table: dict[Role, tuple[Module, ...]],
) -> Mapping[Role, tuple[Module, ...]]:
    missing = [role.value for role in Role if not table.get(role)]
    if missing:
        raise ValueError(f"Roles sin módulos permitidos: {missing}")
    for role, modules in table.items():
        if len(set(modules)) != len(modules):
            raise ValueError(f"Módulos duplicados para el rol {role.value}")
    return MappingProxyType(dict(table))


ROLE_PERMISSIONS: Mapping[Role, tuple[Module, ...]] = _build_permissions(
    {
        Role.ADMINISTRATOR: (
            Module.DASHBOARD,
            Module.DOCUMENTS,
            Module.ALERTS,
            Module.CLIENTS,
            Module.COMPANIES,
            Module.THEMES,
            Module.USERS,
            Module.BOTS,
        ),
        Role.ANALYST: (
            Module.DASHBOARD,
            Module.DOCUMENTS,
            Module.ALERTS,
            Module.CLIENTS,
            Module.COMPANIES,
            Module.THEMES,
        ),
    }
)


def allowed_modules(role: Role | None) -> tuple[Module, ...]:
    """Módulos permitidos (en orden de menú); vacío si no hay rol."""
    if role is None:
        return ()
    return ROLE_PERMISSIONS[role]


def role_has_access(role: Role | None, module: Module | str) -> bool:
    """True si hay rol y el módulo está en su conjunto permitido."""
    target = Module.parse(module)
    if role is None:
        return False
    return target in ROLE_PERMISSIONS[role]


def fallback_role_for_email(email: str) -> Role:
    """Heurística de rol cuando no se pudo consultar el perfil."""
    lowered = (email or "").lower()
    if "admin" in lowered or "administrador" in lowered:
        return Role.ADMINISTRATOR
    return Role.ANALYST


def page_title(module: Module | str) -> str:
    """Título de página: base para el dashboard, "<label> | base" para el resto."""
    target = Module.parse(module)
    if target is DEFAULT_MODULE:
        return BASE_TITLE
    return f"{MODULE_LABELS[target]} | {BASE_TITLE}"
