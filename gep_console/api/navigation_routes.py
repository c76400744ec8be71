"""
===============================================================================
TARJETA CRC: gep_console/api/navigation_routes.py
===============================================================================

Responsabilidades:
  - GET /navigation: menú lateral, módulo activo, aviso y título de página.
  - POST /navigation/{module}: navegación con chequeo de permisos
    (403 si se deniega, 404 si el módulo no existe).

Colaboradores:
  - identity.navigation.NavigationGate (vía Depends)
===============================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..crosscutting.error_responses import OPENAPI_ERROR_RESPONSES, forbidden
from ..identity.navigation import NavigationGate
from ..identity.roles import Module
from .dependencies import get_navigation, require_connected

router = APIRouter(
    prefix="/navigation",
    tags=["navigation"],
    responses=OPENAPI_ERROR_RESPONSES,
    dependencies=[Depends(require_connected)],
)


class MenuItemResponse(BaseModel):
    module: Module
    label: str
    active: bool


class NavigationResponse(BaseModel):
    active_module: Module
    page_title: str
    warning: str | None = None
    menu: list[MenuItemResponse]


class NavigateResponse(BaseModel):
    allowed: bool
    module: Module
    page_title: str


def _navigation_view(gate: NavigationGate) -> NavigationResponse:
    return NavigationResponse(
        active_module=gate.active_module,
        page_title=gate.page_title(),
        warning=gate.warning,
        menu=[
            MenuItemResponse(module=item.module, label=item.label, active=item.active)
            for item in gate.menu()
        ],
    )


@router.get("", response_model=NavigationResponse)
async def get_navigation_state(
    gate: NavigationGate = Depends(get_navigation),
) -> NavigationResponse:
    return _navigation_view(gate)


@router.post("/{module}", response_model=NavigateResponse)
async def navigate(
    module: str, gate: NavigationGate = Depends(get_navigation)
) -> NavigateResponse:
    result = gate.navigate(module)
    if not result.allowed:
        raise forbidden(result.warning or "Acceso denegado")
    return NavigateResponse(
        allowed=True, module=result.module, page_title=gate.page_title()
    )
