"""
===============================================================================
TARJETA CRC: gep_console/context.py (Contexto de log por request)
===============================================================================

Responsabilidades:
  - Guardar en ContextVars el request en curso (id, método, path) y quién
    lo hace (email de la sesión y su estado de auth).
  - Exponer ese contexto al formatter JSON sin pasarlo por parámetros.

Colaboradores:
  - crosscutting.middleware: abre y cierra el contexto del request.
  - api.dependencies: agrega la sesión vigente al contexto.
  - crosscutting.logger: lo lee con get_context_dict().

Restricciones:
  - Valores str; "" significa "no disponible" y no se emite.
===============================================================================
"""

from __future__ import annotations

from contextvars import ContextVar

_FIELDS = ("request_id", "method", "path", "actor", "auth_status")

_vars: dict[str, ContextVar[str]] = {
    name: ContextVar(f"gep_{name}", default="") for name in _FIELDS
}


def set_request_context(*, request_id: str, method: str, path: str) -> None:
    _vars["request_id"].set(request_id)
    _vars["method"].set(method)
    _vars["path"].set(path)


def bind_session_context(*, actor: str | None, auth_status: str) -> None:
    """Agrega quién hace el request (email o vacío si es anónimo)."""
    _vars["actor"].set(actor or "")
    _vars["auth_status"].set(auth_status)


def get_context_dict() -> dict[str, str]:
    return {name: var.get() for name, var in _vars.items() if var.get()}


def clear_context() -> None:
    for var in _vars.values():
        var.set("")
