"""
============================================================
TARJETA CRC: infrastructure/in_memory/auth_provider.py
============================================================
Class: InMemoryAuthProvider

Responsibilities:
  - Implementar AuthProvider en memoria (tests / desarrollo local).
  - Validar credenciales registradas y emitir eventos como el proveedor real.
  - Exponer controles para simular fallas, bloqueos y eventos externos
    (otras pestañas, refresh de token).
  - Contar llamadas para verificar efectos laterales en tests.

Collaborators:
  - domain.services.AuthProvider

Notes:
  - Un proveedor "bloqueado" nunca responde: sirve para probar watchdogs.
============================================================
"""

from __future__ import annotations

import asyncio
from uuid import uuid4

from ...crosscutting.exceptions import AuthProviderError
from ...crosscutting.logger import logger
from ...domain.entities import AuthChangeEvent, AuthIdentity, ProviderSession
from ...domain.services import AuthStateCallback, Unsubscribe

INVALID_CREDENTIALS_MESSAGE = "Invalid login credentials"


class InMemoryAuthProvider:
    """Proveedor de autenticación en memoria con eventos controlables."""

    def __init__(self, credentials: dict[str, str] | None = None) -> None:
        self._passwords: dict[str, str] = {}
        self._user_ids: dict[str, str] = {}
        self._session: ProviderSession | None = None
        self._callbacks: list[AuthStateCallback] = []

        # R: controles de simulación
        self.block_get_session = False
        self.block_sign_out = False
        self.get_session_error: AuthProviderError | None = None
        self.sign_in_error: AuthProviderError | None = None
        self.sign_out_error: AuthProviderError | None = None

        # R: contadores para asserts
        self.get_session_calls = 0
        self.sign_in_calls = 0
        self.sign_out_calls = 0

        for email, password in (credentials or {}).items():
            self.register(email, password)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def register(self, email: str, password: str) -> AuthIdentity:
        key = email.strip().lower()
        self._passwords[key] = password
        user_id = self._user_ids.setdefault(key, str(uuid4()))
        return AuthIdentity(id=user_id, email=key)

    def persist_session_for(self, email: str) -> ProviderSession:
        """Simula una sesión persistida de una visita anterior."""
        key = email.strip().lower()
        if key not in self._passwords:
            raise KeyError(f"Usuario no registrado: {email}")
        self._session = self._issue(key)
        return self._session

    @property
    def current_session(self) -> ProviderSession | None:
        return self._session

    @property
    def subscriber_count(self) -> int:
        return len(self._callbacks)

    # ------------------------------------------------------------------
    # AuthProvider
    # ------------------------------------------------------------------

    async def get_session(self) -> ProviderSession | None:
        self.get_session_calls += 1
        if self.block_get_session:
            await asyncio.Event().wait()
        if self.get_session_error is not None:
            raise self.get_session_error
        return self._session

    async def sign_in_with_password(self, email: str, password: str) -> ProviderSession:
        self.sign_in_calls += 1
        if self.sign_in_error is not None:
            raise self.sign_in_error

        key = email.strip().lower()
        if self._passwords.get(key) != password:
            raise AuthProviderError(INVALID_CREDENTIALS_MESSAGE, status_code=400)

        self._session = self._issue(key)
        await self.emit(AuthChangeEvent.SIGNED_IN, self._session)
        return self._session

    async def sign_out(self) -> None:
        self.sign_out_calls += 1
        if self.block_sign_out:
            await asyncio.Event().wait()
        self._session = None
        await self.emit(AuthChangeEvent.SIGNED_OUT, None)
        if self.sign_out_error is not None:
            raise self.sign_out_error

    def on_auth_state_change(self, callback: AuthStateCallback) -> Unsubscribe:
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    # ------------------------------------------------------------------
    # Simulación de eventos externos
    # ------------------------------------------------------------------

    async def emit(
        self, event: AuthChangeEvent, session: ProviderSession | None
    ) -> None:
        """Entrega `event` a cada suscriptor, en orden de registro."""
        for callback in list(self._callbacks):
            try:
                await callback(event, session)
            except Exception:
                logger.exception(
                    "InMemoryAuth: callback falló", extra={"event": event.value}
                )

    async def refresh_session(self) -> ProviderSession:
        """Simula un refresh de token (TOKEN_REFRESHED con la misma identidad)."""
        if self._session is None:
            raise AuthProviderError("No hay sesión para renovar")
        self._session = self._issue(self._session.user.email)
        await self.emit(AuthChangeEvent.TOKEN_REFRESHED, self._session)
        return self._session

    def _issue(self, email: str) -> ProviderSession:
        return ProviderSession(
            user=AuthIdentity(id=self._user_ids[email], email=email),
            access_token=f"access-{uuid4().hex}",
            refresh_token=f"refresh-{uuid4().hex}",
            expires_in=3600,
        )
