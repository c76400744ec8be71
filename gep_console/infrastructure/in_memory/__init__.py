"""Adapters en memoria (tests / desarrollo local)."""

from .auth_provider import InMemoryAuthProvider
from .stores import InMemoryBackendProbe, InMemoryDocumentStats, InMemoryProfileStore

__all__ = [
    "InMemoryAuthProvider",
    "InMemoryBackendProbe",
    "InMemoryDocumentStats",
    "InMemoryProfileStore",
]
