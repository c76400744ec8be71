"""
Name: Session Manager Tests

Responsibilities:
  - Bootstrap: anonymous / restored / timeout / provider error / inactive /
    unexpected failure
  - Sign-in taxonomy and provider call counts
  - Sign-out idempotence and the timeout race
  - Live updates from the provider event stream
  - Ordering: stale results never overwrite newer state; nothing applies
    after close()
"""

import asyncio
import time

import pytest

from conftest import ADMIN_EMAIL, ANALYST_EMAIL, INACTIVE_ADMIN_EMAIL, PASSWORD
from gep_console.crosscutting.exceptions import (
    MSG_ACCOUNT_DEACTIVATED,
    MSG_ACCOUNT_INACTIVE,
    MSG_CONNECTION_ERROR,
    MSG_NOT_REGISTERED,
    MSG_WRONG_PASSWORD,
    AuthErrorCode,
    AuthProviderError,
    ProfileLookupError,
    UnknownModuleError,
)
from gep_console.domain.entities import AuthChangeEvent
from gep_console.identity.profiles import ProfileResolver
from gep_console.identity.roles import Module, Role
from gep_console.identity.session import (
    AuthStatus,
    ConnectionStatus,
    SessionManager,
    is_invalid_credentials,
)
from gep_console.infrastructure.in_memory import InMemoryProfileStore


class FlippingProfileStore(InMemoryProfileStore):
    """Devuelve la fila activa la primera vez y la desactiva a continuación."""

    async def find_by_email(self, email):
        record = await super().find_by_email(email)
        if self.lookups == 1 and record is not None:
            self.set_active(email, False)
        return record


class CrashingProfileStore(InMemoryProfileStore):
    """Responde la primera consulta y revienta con un error inesperado después."""

    async def find_by_email(self, email):
        if self.lookups >= 1:
            self.lookups += 1
            raise RuntimeError("driver bug")
        return await super().find_by_email(email)


class GatedProfileStore(InMemoryProfileStore):
    """Bloquea la consulta de emails marcados hasta que el test la libera."""

    def __init__(self):
        super().__init__()
        self.gates: dict[str, asyncio.Event] = {}
        self.entered: dict[str, asyncio.Event] = {}

    def gate(self, email: str) -> asyncio.Event:
        self.entered[email] = asyncio.Event()
        self.gates[email] = asyncio.Event()
        return self.gates[email]

    async def find_by_email(self, email):
        if email in self.gates:
            self.entered[email].set()
            await self.gates[email].wait()
        return await super().find_by_email(email)


# ============================================================================
# Bootstrap
# ============================================================================


@pytest.mark.unit
class TestBootstrap:
    def test_starts_loading_and_connecting(self, manager):
        assert manager.loading is True
        assert manager.session.connection_status is ConnectionStatus.CONNECTING
        assert manager.session.is_authenticated is False

    @pytest.mark.asyncio
    async def test_no_persisted_session_is_connected_anonymous(self, manager):
        session = await manager.bootstrap()

        assert session.connection_status is ConnectionStatus.CONNECTED
        assert session.auth_status is AuthStatus.ANONYMOUS
        assert manager.loading is False

    @pytest.mark.asyncio
    async def test_restores_persisted_session(self, manager, provider):
        provider.persist_session_for(ANALYST_EMAIL)

        session = await manager.bootstrap()

        assert session.email == ANALYST_EMAIL
        assert session.role is Role.ANALYST
        assert session.degraded is False
        assert session.profile.nombre == "Ana"
        assert manager.has_access(Module.DOCUMENTS) is True

    @pytest.mark.asyncio
    async def test_hanging_provider_times_out_to_error(self, manager, provider):
        provider.block_get_session = True

        started = time.monotonic()
        session = await manager.bootstrap()
        elapsed = time.monotonic() - started

        assert session.connection_status is ConnectionStatus.ERROR
        assert manager.loading is False
        assert elapsed >= 0.09
        assert elapsed < 1.0

    @pytest.mark.asyncio
    async def test_provider_error_is_connection_error(self, manager, provider):
        provider.get_session_error = AuthProviderError("503 upstream", status_code=503)

        session = await manager.bootstrap()

        assert session.connection_status is ConnectionStatus.ERROR
        assert manager.loading is False

    @pytest.mark.asyncio
    async def test_unexpected_provider_crash_is_connection_error(
        self, manager, provider
    ):
        provider.get_session_error = RuntimeError("socket exploded")  # type: ignore[assignment]

        session = await manager.bootstrap()

        assert session.connection_status is ConnectionStatus.ERROR
        assert session.is_authenticated is False
        assert manager.loading is False

    @pytest.mark.asyncio
    async def test_inactive_persisted_session_is_revoked_silently(
        self, manager, provider
    ):
        provider.persist_session_for(INACTIVE_ADMIN_EMAIL)

        session = await manager.bootstrap()

        assert session.connection_status is ConnectionStatus.CONNECTED
        assert session.is_authenticated is False
        assert provider.sign_out_calls == 1
        assert provider.current_session is None

    @pytest.mark.asyncio
    async def test_unexpected_failure_defaults_to_degraded_analyst(
        self, manager, provider, profile_store
    ):
        provider.persist_session_for(ADMIN_EMAIL)
        profile_store.fail_with = RuntimeError("driver bug")  # type: ignore[assignment]

        session = await manager.bootstrap()

        assert session.role is Role.ANALYST
        assert session.auth_status is AuthStatus.DEGRADED
        assert session.connection_status is ConnectionStatus.CONNECTED

    @pytest.mark.asyncio
    async def test_session_without_profile_row_is_degraded_analyst(
        self, manager, provider, profile_store
    ):
        provider.persist_session_for(ADMIN_EMAIL)
        profile_store.remove(ADMIN_EMAIL)

        session = await manager.bootstrap()

        assert session.role is Role.ANALYST
        assert session.degraded is True

    @pytest.mark.asyncio
    async def test_bootstrap_runs_once(self, manager):
        await manager.bootstrap()

        with pytest.raises(RuntimeError):
            await manager.bootstrap()


# ============================================================================
# Sign-in
# ============================================================================


@pytest.mark.unit
class TestSignIn:
    @pytest.mark.asyncio
    async def test_analyst_signs_in_and_gets_analyst_modules(self, manager):
        await manager.bootstrap()

        result = await manager.sign_in(ANALYST_EMAIL, PASSWORD)

        assert result.success is True
        assert result.error is None
        assert manager.session.email == ANALYST_EMAIL
        assert manager.has_access("users") is False
        assert manager.has_access("documents") is True
        assert manager.loading is False

    @pytest.mark.asyncio
    async def test_email_is_normalized(self, manager):
        await manager.bootstrap()

        result = await manager.sign_in("  ANA@gep.com.mx ", PASSWORD)

        assert result.success is True
        assert manager.session.role is Role.ANALYST

    @pytest.mark.asyncio
    async def test_not_registered_never_calls_provider(self, manager, provider):
        await manager.bootstrap()

        result = await manager.sign_in("nadie@gep.com.mx", PASSWORD)

        assert result.success is False
        assert result.error is AuthErrorCode.NOT_REGISTERED
        assert result.message == MSG_NOT_REGISTERED
        assert provider.sign_in_calls == 0
        assert manager.session.is_authenticated is False

    @pytest.mark.parametrize("password", [PASSWORD, "wrong"])
    @pytest.mark.asyncio
    async def test_inactive_profile_fails_regardless_of_password(
        self, manager, provider, password
    ):
        await manager.bootstrap()

        result = await manager.sign_in(INACTIVE_ADMIN_EMAIL, password)

        assert result.success is False
        assert result.error is AuthErrorCode.ACCOUNT_INACTIVE
        assert result.message == MSG_ACCOUNT_INACTIVE
        assert provider.sign_in_calls == 0

    @pytest.mark.asyncio
    async def test_wrong_password(self, manager, provider):
        await manager.bootstrap()

        result = await manager.sign_in(ANALYST_EMAIL, "nope")

        assert result.error is AuthErrorCode.WRONG_PASSWORD
        assert result.message == MSG_WRONG_PASSWORD
        assert provider.sign_in_calls == 1
        assert manager.session.is_authenticated is False

    @pytest.mark.asyncio
    async def test_other_provider_errors_are_verbatim(self, manager, provider):
        await manager.bootstrap()
        provider.sign_in_error = AuthProviderError("Email not confirmed", status_code=400)

        result = await manager.sign_in(ANALYST_EMAIL, PASSWORD)

        assert result.error is AuthErrorCode.PROVIDER_ERROR
        assert result.message == "Email not confirmed"

    @pytest.mark.asyncio
    async def test_deactivated_during_sign_in_tears_down_provider_session(
        self, provider
    ):
        store = FlippingProfileStore()
        store.upsert(ANALYST_EMAIL, Role.ANALYST.value, activo=True)
        manager = SessionManager(provider, ProfileResolver(store, timeout_seconds=1.0))
        await manager.bootstrap()

        result = await manager.sign_in(ANALYST_EMAIL, PASSWORD)

        assert result.success is False
        assert result.error is AuthErrorCode.ACCOUNT_INACTIVE
        assert result.message == MSG_ACCOUNT_DEACTIVATED
        assert provider.sign_in_calls == 1
        assert provider.sign_out_calls >= 1
        assert provider.current_session is None
        assert manager.session.is_authenticated is False

    @pytest.mark.asyncio
    async def test_lookup_failure_signs_in_degraded(self, manager, profile_store):
        await manager.bootstrap()
        profile_store.fail_with = ProfileLookupError("postgrest down")

        result = await manager.sign_in(ANALYST_EMAIL, PASSWORD)

        assert result.success is True
        assert manager.session.auth_status is AuthStatus.DEGRADED
        assert manager.session.role is Role.ANALYST

    @pytest.mark.asyncio
    async def test_store_crash_after_precheck_signs_in_degraded(self, provider):
        store = CrashingProfileStore()
        store.upsert(ANALYST_EMAIL, Role.ANALYST.value, activo=True)
        manager = SessionManager(provider, ProfileResolver(store, timeout_seconds=1.0))
        await manager.bootstrap()

        result = await manager.sign_in(ANALYST_EMAIL, PASSWORD)

        assert result.success is True
        assert manager.session.is_authenticated is True
        assert manager.session.auth_status is AuthStatus.DEGRADED
        assert manager.session.role is Role.ANALYST
        assert provider.current_session is not None

    @pytest.mark.asyncio
    async def test_unexpected_error_maps_to_connection_message(
        self, manager, provider
    ):
        await manager.bootstrap()
        provider.sign_in_error = RuntimeError("bug")  # type: ignore[assignment]

        result = await manager.sign_in(ANALYST_EMAIL, PASSWORD)

        assert result.error is AuthErrorCode.PROVIDER_ERROR
        assert result.message == MSG_CONNECTION_ERROR
        assert manager.loading is False
        assert manager.session.is_authenticated is False
        assert provider.sign_out_calls == 1
        assert provider.current_session is None

    def test_invalid_credentials_detection(self):
        assert is_invalid_credentials("Invalid login credentials")
        assert is_invalid_credentials("invalid_credentials")
        assert not is_invalid_credentials("Email not confirmed")
        assert not is_invalid_credentials("")


# ============================================================================
# Sign-out
# ============================================================================


@pytest.mark.unit
class TestSignOut:
    @pytest.mark.asyncio
    async def test_sign_out_twice_is_idempotent(self, manager):
        await manager.bootstrap()
        await manager.sign_in(ANALYST_EMAIL, PASSWORD)

        first = await manager.sign_out()
        second = await manager.sign_out()

        assert first.is_authenticated is False
        assert second.is_authenticated is False
        assert manager.allowed_modules() == ()

    @pytest.mark.asyncio
    async def test_provider_failure_still_clears_locally(self, manager, provider):
        await manager.bootstrap()
        await manager.sign_in(ANALYST_EMAIL, PASSWORD)
        provider.sign_out_error = AuthProviderError("network down")

        session = await manager.sign_out()

        assert session.is_authenticated is False
        assert manager.loading is False

    @pytest.mark.asyncio
    async def test_slow_provider_is_forced_locally(self, manager, provider):
        await manager.bootstrap()
        await manager.sign_in(ADMIN_EMAIL, PASSWORD)
        provider.block_sign_out = True

        acknowledged = await manager.sign_out_with_timeout(0.05)

        assert acknowledged is False
        assert manager.session.is_authenticated is False
        assert manager.loading is False

    @pytest.mark.asyncio
    async def test_zero_timeout_is_not_replaced_by_default(self, provider, resolver):
        manager = SessionManager(provider, resolver, sign_out_timeout_seconds=5.0)
        await manager.bootstrap()
        await manager.sign_in(ADMIN_EMAIL, PASSWORD)
        provider.block_sign_out = True

        started = time.monotonic()
        acknowledged = await manager.sign_out_with_timeout(0)
        elapsed = time.monotonic() - started

        assert acknowledged is False
        assert elapsed < 1.0
        assert manager.session.is_authenticated is False

    @pytest.mark.asyncio
    async def test_sign_out_with_timeout_acknowledged(self, manager):
        await manager.bootstrap()
        await manager.sign_in(ADMIN_EMAIL, PASSWORD)

        assert await manager.sign_out_with_timeout() is True
        assert manager.session.is_authenticated is False


# ============================================================================
# Live updates
# ============================================================================


@pytest.mark.unit
class TestLiveUpdates:
    @pytest.mark.asyncio
    async def test_signed_in_replay_detects_deactivation(
        self, manager, provider, profile_store
    ):
        await manager.bootstrap()
        await manager.sign_in(ANALYST_EMAIL, PASSWORD)
        sign_outs_before = provider.sign_out_calls
        profile_store.set_active(ANALYST_EMAIL, False)

        await provider.emit(AuthChangeEvent.SIGNED_IN, provider.current_session)

        assert manager.session.is_authenticated is False
        assert provider.sign_out_calls == sign_outs_before + 1

    @pytest.mark.asyncio
    async def test_token_refresh_rechecks_profile(
        self, manager, provider, profile_store
    ):
        await manager.bootstrap()
        await manager.sign_in(ADMIN_EMAIL, PASSWORD)
        profile_store.set_active(ADMIN_EMAIL, False)

        await provider.refresh_session()

        assert manager.session.is_authenticated is False

    @pytest.mark.asyncio
    async def test_external_sign_out_clears_session(self, manager, provider):
        await manager.bootstrap()
        await manager.sign_in(ANALYST_EMAIL, PASSWORD)

        await provider.emit(AuthChangeEvent.SIGNED_OUT, None)

        assert manager.session.is_authenticated is False

    @pytest.mark.asyncio
    async def test_sign_in_from_another_tab(self, manager, provider):
        await manager.bootstrap()
        other_tab = provider.persist_session_for(ADMIN_EMAIL)

        await provider.emit(AuthChangeEvent.SIGNED_IN, other_tab)

        assert manager.session.email == ADMIN_EMAIL
        assert manager.session.role is Role.ADMINISTRATOR

    @pytest.mark.asyncio
    async def test_role_change_is_picked_up(self, manager, provider, profile_store):
        await manager.bootstrap()
        await manager.sign_in(ANALYST_EMAIL, PASSWORD)
        profile_store.upsert(ANALYST_EMAIL, Role.ADMINISTRATOR.value)

        await provider.refresh_session()

        assert manager.has_access(Module.USERS) is True

    @pytest.mark.asyncio
    async def test_subscribers_receive_changes_until_unsubscribed(
        self, manager, provider
    ):
        seen = []
        unsubscribe = manager.subscribe(seen.append)
        await manager.bootstrap()
        await manager.sign_in(ANALYST_EMAIL, PASSWORD)
        count = len(seen)

        unsubscribe()
        await manager.sign_out()

        assert count >= 2
        assert seen[-1].email == ANALYST_EMAIL
        assert len(seen) == count


# ============================================================================
# Ordering & liveness
# ============================================================================


@pytest.mark.unit
class TestOrdering:
    @pytest.mark.asyncio
    async def test_slow_bootstrap_does_not_overwrite_newer_event(self, provider):
        store = GatedProfileStore()
        store.upsert(ANALYST_EMAIL, Role.ANALYST.value)
        store.upsert(ADMIN_EMAIL, Role.ADMINISTRATOR.value)
        release = store.gate(ANALYST_EMAIL)
        manager = SessionManager(provider, ProfileResolver(store, timeout_seconds=5.0))
        provider.persist_session_for(ANALYST_EMAIL)

        bootstrap = asyncio.create_task(manager.bootstrap())
        await store.entered[ANALYST_EMAIL].wait()

        newer = provider.persist_session_for(ADMIN_EMAIL)
        await provider.emit(AuthChangeEvent.SIGNED_IN, newer)
        assert manager.session.email == ADMIN_EMAIL

        release.set()
        await bootstrap

        assert manager.session.email == ADMIN_EMAIL
        assert manager.session.role is Role.ADMINISTRATOR
        assert manager.loading is False

    @pytest.mark.asyncio
    async def test_sign_out_wins_over_pending_resolution(self, provider):
        store = GatedProfileStore()
        store.upsert(ANALYST_EMAIL, Role.ANALYST.value)
        release = store.gate(ANALYST_EMAIL)
        manager = SessionManager(provider, ProfileResolver(store, timeout_seconds=5.0))
        provider.persist_session_for(ANALYST_EMAIL)

        bootstrap = asyncio.create_task(manager.bootstrap())
        await store.entered[ANALYST_EMAIL].wait()
        await manager.sign_out()
        release.set()
        await bootstrap

        assert manager.session.is_authenticated is False

    @pytest.mark.asyncio
    async def test_no_writes_after_close(self, provider):
        store = GatedProfileStore()
        store.upsert(ANALYST_EMAIL, Role.ANALYST.value)
        release = store.gate(ANALYST_EMAIL)
        manager = SessionManager(provider, ProfileResolver(store, timeout_seconds=5.0))
        provider.persist_session_for(ANALYST_EMAIL)

        bootstrap = asyncio.create_task(manager.bootstrap())
        await store.entered[ANALYST_EMAIL].wait()
        manager.close()
        release.set()
        await bootstrap

        assert manager.alive is False
        assert manager.session.is_authenticated is False
        assert provider.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_events_after_close_are_ignored(self, manager, provider):
        await manager.bootstrap()
        other_tab = provider.persist_session_for(ADMIN_EMAIL)
        manager.close()

        await provider.emit(AuthChangeEvent.SIGNED_IN, other_tab)

        assert manager.session.is_authenticated is False

    def test_unknown_module_is_rejected(self, manager):
        with pytest.raises(UnknownModuleError):
            manager.has_access("reports")
