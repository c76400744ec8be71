"""Adapters HTTP (httpx) contra el backend hospedado (GoTrue + PostgREST)."""

from .auth_provider import HttpAuthProvider
from .client import build_http_client
from .diagnostics import BackendDiagnostics
from .document_stats import HttpDocumentStats
from .profile_store import HttpProfileStore

__all__ = [
    "BackendDiagnostics",
    "HttpAuthProvider",
    "HttpDocumentStats",
    "HttpProfileStore",
    "build_http_client",
]
