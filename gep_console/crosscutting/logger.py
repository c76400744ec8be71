# gep_console/crosscutting/logger.py
"""
===============================================================================
MÓDULO: Logger estructurado (JSON) de la consola
===============================================================================

Objetivo
--------
Cada línea de log es un objeto JSON con:
- nivel, logger, mensaje y ubicación
- contexto del request y de la sesión (ver gep_console/context.py)
- los campos de `extra={...}`, ya redactados

Redacción
---------
- Claves sensibles (password, tokens, apikey, authorization) -> "***".
- Strings con forma de credencial (`Bearer ...`, JWT) -> "***" aunque vengan
  bajo una clave inocente (ej: el `error` de una excepción de httpx).

-------------------------------------------------------------------------------
CRC (Component Card)
-------------------------------------------------------------------------------
Componente:
  ConsoleJSONFormatter + setup_logger()

Colaboradores:
  - gep_console/context.py (ContextVars)
  - crosscutting/config.py (log_level / log_json)
===============================================================================
"""

from __future__ import annotations

import json
import logging
import re
import sys
import traceback
from datetime import datetime, timezone
from typing import Any

REDACTED = "***"

# R: atributos estándar de LogRecord; todo lo demás vino por `extra`.
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}

_SENSITIVE_KEYS = frozenset(
    {
        "password",
        "new_password",
        "access_token",
        "refresh_token",
        "token",
        "apikey",
        "api_key",
        "anon_key",
        "backend_anon_key",
        "authorization",
        "secret",
    }
)

_CREDENTIAL_PATTERNS = (
    re.compile(r"Bearer\s+[A-Za-z0-9._~+/=-]+", re.IGNORECASE),
    re.compile(r"eyJ[A-Za-z0-9_-]{8,}\.[A-Za-z0-9_-]{8,}\.[A-Za-z0-9_-]*"),
)

_MAX_STRING = 4_000
_MAX_DEPTH = 4


def redact(value: Any, *, key: str | None = None, depth: int = 0) -> Any:
    """Versión apta para log de `value` (recursiva, con límites)."""
    if key is not None and key.lower() in _SENSITIVE_KEYS:
        return REDACTED
    if depth > _MAX_DEPTH:
        return "…"

    if isinstance(value, str):
        for pattern in _CREDENTIAL_PATTERNS:
            value = pattern.sub(REDACTED, value)
        return value if len(value) <= _MAX_STRING else value[:_MAX_STRING] + "…"
    if isinstance(value, dict):
        return {
            str(k): redact(v, key=str(k), depth=depth + 1) for k, v in value.items()
        }
    if isinstance(value, (list, tuple, set, frozenset)):
        return [redact(v, key=key, depth=depth + 1) for v in value]
    if value is None or isinstance(value, (bool, int, float)):
        return value
    return str(value)


class ConsoleJSONFormatter(logging.Formatter):
    """LogRecord -> una línea JSON."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": redact(record.getMessage()),
            "where": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        from ..context import get_context_dict

        payload.update(get_context_dict())

        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRS:
                payload[key] = redact(value, key=key)

        if record.exc_info and record.exc_info[0] is not None:
            payload["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": redact(str(record.exc_info[1])),
                "stacktrace": traceback.format_exception(*record.exc_info),
            }

        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logger(name: str = "gep-console") -> logging.Logger:
    """
    Logger de la consola (idempotente: no duplica handlers al reimportar).

    Nivel y formato salen de Settings; si Settings no valida todavía (ej: falta
    BACKEND_URL en producción) el logger arranca con INFO + JSON.
    """
    from pydantic import ValidationError

    from .config import get_settings

    try:
        settings = get_settings()
        level, use_json = settings.log_level.upper(), settings.log_json
    except ValidationError:
        level, use_json = "INFO", True

    log = logging.getLogger(name)
    log.setLevel(getattr(logging, level, logging.INFO))

    if not log.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            ConsoleJSONFormatter()
            if use_json
            else logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
        log.addHandler(handler)

    return log


logger = setup_logger()
