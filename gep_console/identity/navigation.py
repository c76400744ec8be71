"""
===============================================================================
TARJETA CRC: identity/navigation.py
===============================================================================

Módulo:
    Navigation Gate (control de acceso por módulo)

Responsabilidades:
    - Mantener el módulo activo (por defecto: dashboard).
    - Chequear permisos al navegar (imperativo) y ante cada cambio de sesión
      (reactivo): un módulo que dejó de estar permitido no sigue "renderizado".
    - Redirigir al dashboard y publicar un aviso transitorio que se limpia
      solo a los N segundos.
    - Exponer el menú lateral ordenado y el título de página.

Colaboradores:
    - identity.session.SessionManager: has_access / allowed_modules / subscribe.
    - identity.roles: Module, etiquetas y títulos.
    - crosscutting.metrics: contador de accesos denegados.

Notas:
    - Debe usarse desde el event loop: el auto-limpiado del aviso es un
      `loop.call_later`.
===============================================================================
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from ..crosscutting.logger import logger
from ..crosscutting.metrics import record_navigation_denied
from .roles import DEFAULT_MODULE, MODULE_LABELS, Module
from .roles import page_title as _page_title
from .session import Session, SessionManager

ACCESS_DENIED_WARNING = "No tienes permisos para acceder a este módulo."


@dataclass(frozen=True, slots=True)
class NavigationResult:
    allowed: bool
    module: Module
    warning: str | None = None


@dataclass(frozen=True, slots=True)
class MenuItem:
    module: Module
    label: str
    active: bool


class NavigationGate:
    """
    ----------------------------------------------------------------------------
    CRC (Class Card)
    ----------------------------------------------------------------------------
    Clase:
      NavigationGate

    Responsabilidades:
      - Aplicar la política de acceso al navegar y al cambiar el rol
      - Aviso transitorio con auto-limpiado

    Colaboradores:
      - SessionManager
    ----------------------------------------------------------------------------
    """

    def __init__(self, sessions: SessionManager, *, warning_seconds: float = 5.0):
        self._sessions = sessions
        self._warning_seconds = warning_seconds
        self._active_module: Module = DEFAULT_MODULE
        self._warning: str | None = None
        self._clear_handle: asyncio.TimerHandle | None = None
        self._unsubscribe = sessions.subscribe(self._on_session_change)

    @property
    def active_module(self) -> Module:
        return self._active_module

    @property
    def warning(self) -> str | None:
        return self._warning

    def navigate(self, module: Module | str) -> NavigationResult:
        """
        Intenta activar `module`.

        Raises:
            UnknownModuleError: si el identificador no está en el catálogo.
        """
        target = Module.parse(module)
        if target is not DEFAULT_MODULE and not self._sessions.has_access(target):
            self._deny(target)
            return NavigationResult(
                allowed=False, module=self._active_module, warning=self._warning
            )

        self._active_module = target
        return NavigationResult(allowed=True, module=target, warning=self._warning)

    def menu(self) -> list[MenuItem]:
        """Ítems del menú lateral en el orden del rol actual."""
        return [
            MenuItem(
                module=module,
                label=MODULE_LABELS[module],
                active=module is self._active_module,
            )
            for module in self._sessions.allowed_modules()
        ]

    def page_title(self) -> str:
        return _page_title(self._active_module)

    def close(self) -> None:
        self._cancel_clear()
        self._unsubscribe()

    # ------------------------------------------------------------------
    # Internos
    # ------------------------------------------------------------------

    def _on_session_change(self, session: Session) -> None:
        if session.identity is None:
            # R: sin sesión no hay módulo que mostrar; vuelve al default sin aviso.
            self._active_module = DEFAULT_MODULE
            self._cancel_clear()
            self._warning = None
            return
        current = self._active_module
        if current is not DEFAULT_MODULE and not self._sessions.has_access(current):
            logger.warning(
                "Navegación: el rol ya no permite el módulo activo",
                extra={"module_name": current.value, "role": session.role.value},
            )
            self._deny(current)

    def _deny(self, module: Module) -> None:
        record_navigation_denied(module.value)
        logger.info(
            "Navegación: acceso denegado, redirigiendo al dashboard",
            extra={"module_name": module.value},
        )
        self._active_module = DEFAULT_MODULE
        self._show_warning(ACCESS_DENIED_WARNING)

    def _show_warning(self, message: str) -> None:
        self._cancel_clear()
        self._warning = message
        loop = asyncio.get_running_loop()
        self._clear_handle = loop.call_later(self._warning_seconds, self._clear_warning)

    def _clear_warning(self) -> None:
        self._warning = None
        self._clear_handle = None

    def _cancel_clear(self) -> None:
        if self._clear_handle is not None:
            self._clear_handle.cancel()
            self._clear_handle = None
