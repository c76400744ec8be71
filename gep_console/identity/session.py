"""
===============================================================================
TARJETA CRC: identity/session.py
===============================================================================

Módulo:
    Session Manager (identidad autenticada o ninguna, por proceso)

Responsabilidades:
    - Arrancar la sesión una sola vez (bootstrap) con watchdog de 15 s.
    - Resolver identidad -> rol + estado activo vía ProfileResolver.
    - Revocar en silencio cuentas inactivas (sign-out en el proveedor).
    - Iniciar / cerrar sesión con la taxonomía de errores de login.
    - Escuchar el stream de cambios de auth del proveedor durante toda la vida
      del proceso (otras pestañas, refresh de token).
    - Publicar el estado (Session) a suscriptores de solo lectura.
    - Responder consultas de autorización (has_access / allowed_modules).

Colaboradores:
    - domain.services.AuthProvider: get_session / sign_in / sign_out / eventos.
    - identity.profiles.ProfileResolver: rol + activo por email.
    - identity.roles: permisos por rol.
    - crosscutting.metrics / crosscutting.logger.

Máquina de estados:
    Bootstrapping -> {Connected-Authenticated, Connected-Anonymous, Error}
    Connected-Authenticated -> Connected-Anonymous (sign-out / desactivación)
    Connected-Anonymous -> Connected-Authenticated (sign-in)
    Error es terminal para el proceso (se reintenta recargando).

Concurrencia (un solo event loop):
    - Cada intento que escribe identidad toma un número de secuencia
      monotónico; un resultado con número menor al último aplicado se
      descarta (no pisa un estado más nuevo).
    - El sign-out toma su número al momento de aplicar: siempre gana.
    - Tras close() ninguna escritura se aplica (flag de vida).
===============================================================================
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable

from ..crosscutting.exceptions import (
    MSG_ACCOUNT_DEACTIVATED,
    MSG_CONNECTION_ERROR,
    AccountInactive,
    AuthError,
    AuthErrorCode,
    AuthProviderError,
    BootstrapTimeout,
    NotRegistered,
    ProviderError,
    WrongPassword,
)
from ..crosscutting.logger import logger
from ..crosscutting.metrics import (
    record_profile_fallback,
    record_session_revocation,
    record_sign_in,
    record_stale_session_write,
)
from ..domain.entities import AuthChangeEvent, AuthIdentity, ProviderSession
from ..domain.services import AuthProvider, Unsubscribe
from .profiles import (
    FALLBACK_NOT_PROVISIONED,
    FALLBACK_UNEXPECTED,
    ProfileResolver,
    ResolvedProfile,
    normalize_email,
)
from .roles import Module, Role, allowed_modules, role_has_access

# R: mensajes del proveedor que significan "credenciales inválidas".
_INVALID_CREDENTIALS_MARKERS = ("Invalid login credentials", "invalid_credentials")

# R: eventos que obligan a re-resolver perfil + chequeo de inactivo.
_RESOLVE_EVENTS = frozenset({AuthChangeEvent.SIGNED_IN, AuthChangeEvent.TOKEN_REFRESHED})


class ConnectionStatus(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class AuthStatus(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"
    DEGRADED = "degraded"


@dataclass(frozen=True, slots=True)
class Session:
    """
    Estado publicado de la sesión.

    Invariante: si hay identidad, hay un rol válido.
    """

    identity: AuthIdentity | None = None
    role: Role | None = None
    connection_status: ConnectionStatus = ConnectionStatus.CONNECTING
    profile: ResolvedProfile | None = None
    degraded: bool = False

    def __post_init__(self) -> None:
        if self.identity is not None and self.role is None:
            raise ValueError("Una sesión autenticada requiere un rol resuelto")

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None

    @property
    def auth_status(self) -> AuthStatus:
        if self.identity is None:
            return AuthStatus.ANONYMOUS
        if self.degraded:
            return AuthStatus.DEGRADED
        return AuthStatus.AUTHENTICATED

    @property
    def email(self) -> str | None:
        return self.identity.email if self.identity else None


@dataclass(frozen=True, slots=True)
class SignInResult:
    """Resultado de sign_in: éxito o código de la taxonomía + mensaje para UI."""

    success: bool
    error: AuthErrorCode | None = None
    message: str | None = None

    @classmethod
    def ok(cls) -> "SignInResult":
        return cls(success=True)

    @classmethod
    def failed(cls, exc: AuthError) -> "SignInResult":
        return cls(success=False, error=exc.auth_code, message=exc.message)


SessionListener = Callable[[Session], None]


def is_invalid_credentials(message: str) -> bool:
    return any(marker in (message or "") for marker in _INVALID_CREDENTIALS_MARKERS)


class SessionManager:
    """
    ----------------------------------------------------------------------------
    CRC (Class Card)
    ----------------------------------------------------------------------------
    Clase:
      SessionManager

    Responsabilidades:
      - Dueño único del estado Session durante la vida del proceso
      - bootstrap / sign_in / sign_out / eventos del proveedor
      - Autorización por rol

    Colaboradores:
      - AuthProvider, ProfileResolver
    ----------------------------------------------------------------------------
    """

    def __init__(
        self,
        provider: AuthProvider,
        profiles: ProfileResolver,
        *,
        bootstrap_timeout_seconds: float = 15.0,
        sign_out_timeout_seconds: float = 10.0,
    ):
        self._provider = provider
        self._profiles = profiles
        self._bootstrap_timeout_seconds = bootstrap_timeout_seconds
        self._sign_out_timeout_seconds = sign_out_timeout_seconds

        self._session = Session()
        self._loading = True
        self._alive = True
        self._bootstrapped = False

        self._issued_seq = 0
        self._applied_seq = 0

        self._listeners: list[SessionListener] = []
        self._provider_unsubscribe: Unsubscribe | None = None

    # ------------------------------------------------------------------
    # Lectura
    # ------------------------------------------------------------------

    @property
    def session(self) -> Session:
        return self._session

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def alive(self) -> bool:
        return self._alive

    def has_access(self, module: Module | str) -> bool:
        return role_has_access(self._session.role, module)

    def allowed_modules(self) -> tuple[Module, ...]:
        return allowed_modules(self._session.role)

    def subscribe(self, listener: SessionListener) -> Unsubscribe:
        """Registra un suscriptor de cambios; retorna la función para desuscribir."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Ciclo de vida
    # ------------------------------------------------------------------

    async def bootstrap(self) -> Session:
        """
        Restaura (o establece vacía) la sesión inicial. Se ejecuta una vez.

        - Timeout o cualquier error al pedir la sesión -> ERROR (no propaga).
        - Cuenta inactiva -> sign-out silencioso, queda CONNECTED anónimo.
        - Falla inesperada resolviendo perfil -> Analista, activo, degradado.
        """
        if self._bootstrapped:
            raise RuntimeError("bootstrap() ya fue ejecutado")
        self._bootstrapped = True

        ticket = self._next_ticket()
        self._set_connection(ConnectionStatus.CONNECTING)
        self._provider_unsubscribe = self._provider.on_auth_state_change(
            self._on_auth_state_change
        )
        logger.info("Sesión: iniciando bootstrap")

        try:
            try:
                provider_session = await asyncio.wait_for(
                    self._provider.get_session(),
                    timeout=self._bootstrap_timeout_seconds,
                )
            except asyncio.TimeoutError:
                err = BootstrapTimeout(
                    "La inicialización tardó demasiado "
                    f"({self._bootstrap_timeout_seconds}s)"
                )
                logger.error(
                    "Sesión: timeout de bootstrap",
                    extra={"error_code": err.error_code, "error_id": err.error_id},
                )
                self._set_connection(ConnectionStatus.ERROR)
                return self._session
            except AuthProviderError as exc:
                logger.error(
                    "Sesión: error obteniendo sesión del proveedor",
                    extra={"error": exc.message, "status_code": exc.status_code},
                )
                self._set_connection(ConnectionStatus.ERROR)
                return self._session
            except Exception:
                logger.exception("Sesión: error general de conexión en bootstrap")
                self._set_connection(ConnectionStatus.ERROR)
                return self._session

            self._set_connection(ConnectionStatus.CONNECTED)

            if provider_session is None:
                logger.info("Sesión: no hay sesión activa")
                self._commit(ticket, "bootstrap", None, None)
                return self._session

            await self._establish(ticket, provider_session.user, source="bootstrap")
            return self._session
        finally:
            if self._alive:
                self._loading = False
            logger.info(
                "Sesión: bootstrap finalizado",
                extra={
                    "connection_status": self._session.connection_status.value,
                    "auth_status": self._session.auth_status.value,
                },
            )

    def close(self) -> None:
        """Teardown: desuscribe del proveedor y bloquea escrituras pendientes."""
        if not self._alive:
            return
        self._alive = False
        if self._provider_unsubscribe is not None:
            self._provider_unsubscribe()
            self._provider_unsubscribe = None
        self._listeners.clear()
        logger.info("Sesión: manager cerrado")

    # ------------------------------------------------------------------
    # Operaciones
    # ------------------------------------------------------------------

    async def sign_in(self, email: str, password: str) -> SignInResult:
        """
        Inicia sesión.

        Orden: perfil primero (no aprovisionado / inactivo no tocan al
        proveedor), luego contraseña en el proveedor, luego re-resolución del
        perfil por si la cuenta se desactivó en el medio.
        """
        ticket = self._next_ticket()
        self._set_loading(True)
        try:
            identity, profile = await self._authenticate(ticket, email, password)
        except AuthError as exc:
            record_sign_in(exc.auth_code.value)
            logger.info(
                "Sesión: inicio de sesión rechazado",
                extra={"email": normalize_email(email), "reason": exc.auth_code.value},
            )
            return SignInResult.failed(exc)
        except Exception:
            record_sign_in(AuthErrorCode.PROVIDER_ERROR.value)
            logger.exception(
                "Sesión: error inesperado en inicio de sesión",
                extra={"email": normalize_email(email)},
            )
            # R: un fallo a mitad de camino no deja sesión abierta en ningún lado.
            await self._provider_sign_out()
            self._commit(self._next_ticket(), "sign_in", None, None)
            return SignInResult.failed(ProviderError(MSG_CONNECTION_ERROR))
        finally:
            self._set_loading(False)

        self._commit(ticket, "sign_in", identity, profile)
        record_sign_in("success")
        logger.info(
            "Sesión: inicio de sesión exitoso",
            extra={"email": identity.email, "role": profile.role.value},
        )
        return SignInResult.ok()

    async def sign_out(self) -> Session:
        """Cierra sesión en el proveedor (best-effort) y limpia el estado local."""
        self._set_loading(True)
        try:
            await self._provider_sign_out()
        finally:
            # R: el sign-out local no espera a nadie: ticket nuevo al aplicar.
            self._commit(self._next_ticket(), "sign_out", None, None)
            self._set_loading(False)
        return self._session

    async def sign_out_with_timeout(self, timeout_seconds: float | None = None) -> bool:
        """
        Carrera del sign-out contra un watchdog (10 s por defecto).

        Returns:
            True si el proveedor respondió a tiempo; False si se forzó el
            cierre local por timeout.
        """
        timeout = (
            self._sign_out_timeout_seconds if timeout_seconds is None else timeout_seconds
        )
        try:
            await asyncio.wait_for(self.sign_out(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(
                "Sesión: sign-out excedió el timeout, cierre local forzado",
                extra={"timeout_s": timeout},
            )
            self._commit(self._next_ticket(), "sign_out_timeout", None, None)
            self._set_loading(False)
            return False

    # ------------------------------------------------------------------
    # Internos
    # ------------------------------------------------------------------

    async def _authenticate(
        self, ticket: int, email: str, password: str
    ) -> tuple[AuthIdentity, ResolvedProfile]:
        normalized = normalize_email(email)

        profile = await self._profiles.resolve(normalized)
        if profile is None:
            raise NotRegistered()
        if not profile.active:
            raise AccountInactive()

        try:
            provider_session = await self._provider.sign_in_with_password(
                (email or "").strip(), password
            )
        except AuthProviderError as exc:
            if is_invalid_credentials(exc.message):
                raise WrongPassword() from exc
            raise ProviderError(exc.message, original_error=exc) from exc

        identity = provider_session.user
        final = await self._profiles.resolve(identity.email or normalized)
        if final is not None and not final.active:
            await self._provider_sign_out()
            self._commit(ticket, "sign_in", None, None)
            record_session_revocation("sign_in")
            raise AccountInactive(MSG_ACCOUNT_DEACTIVATED)

        if final is None:
            final = self._not_provisioned(identity.email or normalized)
        return identity, final

    async def _establish(
        self, ticket: int, identity: AuthIdentity, *, source: str
    ) -> None:
        """Resolución + chequeo de inactivo para una identidad del proveedor."""
        try:
            profile = await self._profiles.resolve(identity.email)
        except Exception:
            logger.exception(
                "Sesión: error obteniendo info del usuario, usando valores por defecto",
                extra={"email": identity.email, "source": source},
            )
            record_profile_fallback(FALLBACK_UNEXPECTED)
            profile = ResolvedProfile.fallback(
                normalize_email(identity.email), FALLBACK_UNEXPECTED, role=Role.ANALYST
            )

        if profile is not None and not profile.active:
            if self._is_stale(ticket):
                self._discard(ticket, source)
                return
            logger.warning(
                "Sesión: usuario inactivo detectado, cerrando sesión",
                extra={"email": identity.email, "source": source},
            )
            await self._provider_sign_out()
            self._commit(ticket, source, None, None)
            record_session_revocation(source)
            return

        if profile is None:
            profile = self._not_provisioned(identity.email)

        self._commit(ticket, source, identity, profile)

    async def _on_auth_state_change(
        self, event: AuthChangeEvent, provider_session: ProviderSession | None
    ) -> None:
        if not self._alive:
            return

        source = f"event:{event.value}"
        logger.info(
            "Sesión: cambio de estado de auth",
            extra={"event": event.value, "has_user": provider_session is not None},
        )

        ticket = self._next_ticket()
        if event in _RESOLVE_EVENTS and provider_session is not None:
            await self._establish(ticket, provider_session.user, source=source)
        elif event is AuthChangeEvent.SIGNED_OUT:
            self._commit(ticket, source, None, None)

        if self._alive:
            self._set_loading(False)

    async def _provider_sign_out(self) -> None:
        """Sign-out en el proveedor: se loguea el error pero no se propaga."""
        try:
            await self._provider.sign_out()
        except AuthProviderError as exc:
            logger.error(
                "Sesión: error al cerrar sesión en el proveedor",
                extra={"error": exc.message, "status_code": exc.status_code},
            )
        except Exception:
            logger.exception("Sesión: error inesperado al cerrar sesión")

    @staticmethod
    def _not_provisioned(email: str) -> ResolvedProfile:
        record_profile_fallback(FALLBACK_NOT_PROVISIONED)
        return ResolvedProfile.fallback(
            normalize_email(email), FALLBACK_NOT_PROVISIONED, role=Role.ANALYST
        )

    def _next_ticket(self) -> int:
        self._issued_seq += 1
        return self._issued_seq

    def _is_stale(self, ticket: int) -> bool:
        return ticket < self._applied_seq

    def _discard(self, ticket: int, source: str) -> None:
        record_stale_session_write(source)
        logger.info(
            "Sesión: resultado descartado por estado más nuevo",
            extra={"source": source, "ticket": ticket, "applied": self._applied_seq},
        )

    def _commit(
        self,
        ticket: int,
        source: str,
        identity: AuthIdentity | None,
        profile: ResolvedProfile | None,
    ) -> bool:
        """Aplica identidad/rol si el intento sigue vigente y el manager vive."""
        if not self._alive:
            return False
        if self._is_stale(ticket):
            self._discard(ticket, source)
            return False

        self._applied_seq = ticket
        if identity is None or profile is None:
            new_session = replace(
                self._session, identity=None, role=None, profile=None, degraded=False
            )
        else:
            new_session = replace(
                self._session,
                identity=identity,
                role=profile.role,
                profile=profile,
                degraded=profile.degraded,
            )
        self._publish(new_session)
        return True

    def _set_connection(self, status: ConnectionStatus) -> None:
        if not self._alive or self._session.connection_status is status:
            return
        self._publish(replace(self._session, connection_status=status))

    def _set_loading(self, value: bool) -> None:
        if self._alive:
            self._loading = value

    def _publish(self, new_session: Session) -> None:
        if new_session == self._session:
            return
        self._session = new_session
        for listener in list(self._listeners):
            try:
                listener(new_session)
            except Exception:
                logger.exception("Sesión: suscriptor falló al recibir cambio")
