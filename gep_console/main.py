"""
Name: ASGI Entrypoint (gep_console.main)

Responsibilities:
  - Expose the FastAPI app for ASGI servers (`uvicorn gep_console.main:app`)
  - Provide the `gep-console` console script (uvicorn runner)

Notes/Constraints:
  - No business logic here; wiring lives in gep_console.api.main
"""

from __future__ import annotations

import os

import uvicorn

from .api.main import create_app

app = create_app()


def run() -> None:
    """Arranca uvicorn con host/port de entorno (HOST / PORT)."""
    uvicorn.run(
        "gep_console.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
    )


__all__ = ["app", "run"]
