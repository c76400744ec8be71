"""
============================================================
TARJETA CRC: infrastructure/backend/auth_provider.py
============================================================
Class: HttpAuthProvider

Responsibilities:
  - Implementar AuthProvider contra un servicio GoTrue (Supabase Auth).
  - Persistir en proceso la sesión emitida (tokens) y validarla al restaurar.
  - Emitir SIGNED_IN / SIGNED_OUT / TOKEN_REFRESHED a los suscriptores.
  - Traducir fallas HTTP / transporte a AuthProviderError(message, status).

Collaborators:
  - domain.services.AuthProvider
  - httpx.AsyncClient (construido en infrastructure/backend/client.py)

Notes:
  - Los callbacks se esperan en orden de registro; uno que falla se loguea
    y no rompe la operación que emitió el evento.
  - El sign-out descarta la sesión local aunque el backend falle.
============================================================
"""

from __future__ import annotations

from typing import Any

import httpx

from ...crosscutting.exceptions import AuthProviderError
from ...crosscutting.logger import logger
from ...domain.entities import AuthChangeEvent, AuthIdentity, ProviderSession
from ...domain.services import AuthStateCallback, Unsubscribe
from .client import auth_headers, error_message

_USER_PATH = "/auth/v1/user"
_TOKEN_PATH = "/auth/v1/token"
_LOGOUT_PATH = "/auth/v1/logout"

# R: el logout con token vencido o ya revocado no es un error para el cliente.
_IGNORED_LOGOUT_CODES = frozenset({401, 403, 404})


def _parse_identity(payload: dict[str, Any]) -> AuthIdentity:
    try:
        return AuthIdentity(
            id=str(payload["id"]), email=str(payload.get("email") or "")
        )
    except (KeyError, TypeError, AttributeError) as exc:
        raise AuthProviderError(
            "Respuesta de usuario inválida del proveedor", original_error=exc
        ) from exc


def _parse_session(payload: dict[str, Any]) -> ProviderSession:
    try:
        return ProviderSession(
            user=_parse_identity(payload["user"]),
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token") or "",
            expires_in=payload.get("expires_in"),
        )
    except (KeyError, TypeError) as exc:
        raise AuthProviderError(
            "Respuesta de sesión inválida del proveedor", original_error=exc
        ) from exc


class HttpAuthProvider:
    """Implementación de AuthProvider sobre HTTP (GoTrue)."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        anon_key: str,
        session: ProviderSession | None = None,
    ):
        self._client = client
        self._anon_key = anon_key
        self._session = session
        self._callbacks: list[AuthStateCallback] = []

    @property
    def current_session(self) -> ProviderSession | None:
        return self._session

    # ------------------------------------------------------------------
    # AuthProvider
    # ------------------------------------------------------------------

    async def get_session(self) -> ProviderSession | None:
        """Restaura la sesión persistida validándola contra /auth/v1/user."""
        session = self._session
        if session is None:
            return None

        try:
            payload = await self._request("GET", _USER_PATH, token=session.access_token)
        except AuthProviderError as exc:
            if exc.status_code not in (401, 403):
                raise
            if not session.refresh_token:
                logger.info("Auth: sesión persistida vencida, descartando")
                self._session = None
                return None
            return await self._refresh_or_drop(session)

        validated = ProviderSession(
            user=_parse_identity(payload),
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            expires_in=session.expires_in,
        )
        self._session = validated
        return validated

    async def sign_in_with_password(self, email: str, password: str) -> ProviderSession:
        payload = await self._request(
            "POST",
            _TOKEN_PATH,
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        session = _parse_session(payload)
        self._session = session
        logger.info("Auth: sesión emitida por el proveedor", extra={"email": session.user.email})
        await self._notify(AuthChangeEvent.SIGNED_IN, session)
        return session

    async def sign_out(self) -> None:
        session = self._session
        self._session = None
        try:
            if session is not None:
                try:
                    await self._request("POST", _LOGOUT_PATH, token=session.access_token)
                except AuthProviderError as exc:
                    if exc.status_code not in _IGNORED_LOGOUT_CODES:
                        raise
        finally:
            await self._notify(AuthChangeEvent.SIGNED_OUT, None)

    def on_auth_state_change(self, callback: AuthStateCallback) -> Unsubscribe:
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    # ------------------------------------------------------------------
    # Extras
    # ------------------------------------------------------------------

    async def refresh_session(self) -> ProviderSession:
        """Renueva tokens con el refresh_token actual y emite TOKEN_REFRESHED."""
        session = self._session
        if session is None or not session.refresh_token:
            raise AuthProviderError("No hay sesión para renovar")

        payload = await self._request(
            "POST",
            _TOKEN_PATH,
            params={"grant_type": "refresh_token"},
            json={"refresh_token": session.refresh_token},
        )
        refreshed = _parse_session(payload)
        self._session = refreshed
        await self._notify(AuthChangeEvent.TOKEN_REFRESHED, refreshed)
        return refreshed

    # ------------------------------------------------------------------
    # Internos
    # ------------------------------------------------------------------

    async def _refresh_or_drop(self, session: ProviderSession) -> ProviderSession | None:
        try:
            return await self.refresh_session()
        except AuthProviderError as exc:
            if exc.status_code is None or exc.status_code >= 500:
                raise
            logger.info(
                "Auth: refresh rechazado, descartando sesión persistida",
                extra={"status_code": exc.status_code},
            )
            self._session = None
            return None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        token: str | None = None,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        try:
            response = await self._client.request(
                method,
                path,
                params=params,
                json=json,
                headers=auth_headers(self._anon_key, token),
            )
        except httpx.HTTPError as exc:
            logger.error(
                "Auth: error de transporte",
                extra={"path": path, "error_type": type(exc).__name__},
            )
            raise AuthProviderError(
                str(exc) or type(exc).__name__, original_error=exc
            ) from exc

        if response.status_code >= 400:
            raise AuthProviderError(
                error_message(response), status_code=response.status_code
            )

        if not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError as exc:
            raise AuthProviderError(
                "Respuesta no JSON del proveedor",
                status_code=response.status_code,
                original_error=exc,
            ) from exc
        return payload if isinstance(payload, dict) else {}

    async def _notify(
        self, event: AuthChangeEvent, session: ProviderSession | None
    ) -> None:
        for callback in list(self._callbacks):
            try:
                await callback(event, session)
            except Exception:
                logger.exception(
                    "Auth: callback de cambio de estado falló",
                    extra={"event": event.value},
                )
