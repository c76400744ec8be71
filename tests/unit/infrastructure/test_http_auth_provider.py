"""
Name: HTTP Auth Provider Tests (GoTrue over httpx.MockTransport)

Responsibilities:
  - Password grant, error message extraction, transport failures
  - Session restore with validation and refresh
  - Sign-out drops the local session even when the backend fails
  - Event delivery to subscribers
"""

import json

import httpx
import pytest

from gep_console.crosscutting.config import Settings
from gep_console.crosscutting.exceptions import AuthProviderError
from gep_console.domain.entities import AuthChangeEvent, AuthIdentity, ProviderSession
from gep_console.infrastructure.backend import HttpAuthProvider, build_http_client

USER = {"id": "u-1", "email": "ana@gep.com.mx"}


def _token_payload(access: str = "access-1", refresh: str = "refresh-1") -> dict:
    return {
        "access_token": access,
        "refresh_token": refresh,
        "expires_in": 3600,
        "token_type": "bearer",
        "user": USER,
    }


def _provider(handler, session: ProviderSession | None = None) -> HttpAuthProvider:
    settings = Settings(
        app_env="test", backend_url="https://backend.test/", backend_anon_key="anon-key"
    )
    client = build_http_client(settings, transport=httpx.MockTransport(handler))
    return HttpAuthProvider(client, anon_key="anon-key", session=session)


def _persisted(refresh: str = "refresh-0") -> ProviderSession:
    return ProviderSession(
        user=AuthIdentity(id="u-1", email="ana@gep.com.mx"),
        access_token="access-0",
        refresh_token=refresh,
    )


class Recorder:
    def __init__(self):
        self.events = []

    async def __call__(self, event, session):
        self.events.append((event, session))


@pytest.mark.unit
class TestSignIn:
    @pytest.mark.asyncio
    async def test_password_grant_issues_session_and_emits(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["grant"] = request.url.params.get("grant_type")
            seen["body"] = json.loads(request.content)
            seen["apikey"] = request.headers.get("apikey")
            return httpx.Response(200, json=_token_payload())

        provider = _provider(handler)
        recorder = Recorder()
        provider.on_auth_state_change(recorder)

        session = await provider.sign_in_with_password("ana@gep.com.mx", "pw")

        assert seen == {
            "path": "/auth/v1/token",
            "grant": "password",
            "body": {"email": "ana@gep.com.mx", "password": "pw"},
            "apikey": "anon-key",
        }
        assert session.user.email == "ana@gep.com.mx"
        assert provider.current_session == session
        assert recorder.events == [(AuthChangeEvent.SIGNED_IN, session)]

    @pytest.mark.parametrize(
        "body",
        [
            {"error": "invalid_grant", "error_description": "Invalid login credentials"},
            {"code": 400, "error_code": "invalid_credentials", "msg": "Invalid login credentials"},
        ],
    )
    @pytest.mark.asyncio
    async def test_invalid_credentials_message_is_extracted(self, body):
        provider = _provider(lambda request: httpx.Response(400, json=body))

        with pytest.raises(AuthProviderError) as exc_info:
            await provider.sign_in_with_password("ana@gep.com.mx", "bad")

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Invalid login credentials"
        assert provider.current_session is None

    @pytest.mark.asyncio
    async def test_transport_error_is_provider_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        provider = _provider(handler)

        with pytest.raises(AuthProviderError) as exc_info:
            await provider.sign_in_with_password("ana@gep.com.mx", "pw")

        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.original_error, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_malformed_session_payload(self):
        provider = _provider(lambda request: httpx.Response(200, json={"user": USER}))

        with pytest.raises(AuthProviderError):
            await provider.sign_in_with_password("ana@gep.com.mx", "pw")

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_break_sign_in(self):
        provider = _provider(lambda request: httpx.Response(200, json=_token_payload()))

        async def broken(event, session):
            raise RuntimeError("listener bug")

        recorder = Recorder()
        provider.on_auth_state_change(broken)
        provider.on_auth_state_change(recorder)

        session = await provider.sign_in_with_password("ana@gep.com.mx", "pw")

        assert session.access_token == "access-1"
        assert len(recorder.events) == 1

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_delivery(self):
        provider = _provider(lambda request: httpx.Response(200, json=_token_payload()))
        recorder = Recorder()
        unsubscribe = provider.on_auth_state_change(recorder)
        unsubscribe()

        await provider.sign_in_with_password("ana@gep.com.mx", "pw")

        assert recorder.events == []


@pytest.mark.unit
class TestGetSession:
    @pytest.mark.asyncio
    async def test_without_persisted_session_makes_no_request(self):
        def handler(request):
            raise AssertionError("no request expected")

        assert await _provider(handler).get_session() is None

    @pytest.mark.asyncio
    async def test_validates_persisted_session(self):
        def handler(request):
            assert request.url.path == "/auth/v1/user"
            assert request.headers["authorization"] == "Bearer access-0"
            return httpx.Response(200, json={"id": "u-1", "email": "ana.nueva@gep.com.mx"})

        session = await _provider(handler, _persisted()).get_session()

        assert session.user.email == "ana.nueva@gep.com.mx"
        assert session.access_token == "access-0"

    @pytest.mark.asyncio
    async def test_expired_token_is_refreshed(self):
        def handler(request):
            if request.url.path == "/auth/v1/user":
                return httpx.Response(401, json={"msg": "JWT expired"})
            assert request.url.params.get("grant_type") == "refresh_token"
            assert json.loads(request.content) == {"refresh_token": "refresh-0"}
            return httpx.Response(200, json=_token_payload(access="access-2"))

        provider = _provider(handler, _persisted())
        recorder = Recorder()
        provider.on_auth_state_change(recorder)

        session = await provider.get_session()

        assert session.access_token == "access-2"
        assert recorder.events[0][0] is AuthChangeEvent.TOKEN_REFRESHED

    @pytest.mark.asyncio
    async def test_rejected_refresh_drops_session(self):
        def handler(request):
            if request.url.path == "/auth/v1/user":
                return httpx.Response(401, json={"msg": "JWT expired"})
            return httpx.Response(400, json={"msg": "Invalid Refresh Token"})

        provider = _provider(handler, _persisted())

        assert await provider.get_session() is None
        assert provider.current_session is None

    @pytest.mark.asyncio
    async def test_expired_without_refresh_token_drops_session(self):
        provider = _provider(
            lambda request: httpx.Response(401, json={"msg": "JWT expired"}),
            _persisted(refresh=""),
        )

        assert await provider.get_session() is None

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, content=b""),
            httpx.Response(200, json={"email": "ana@gep.com.mx"}),
        ],
    )
    @pytest.mark.asyncio
    async def test_user_payload_without_id_is_provider_error(self, response):
        provider = _provider(lambda request: response, _persisted())

        with pytest.raises(AuthProviderError):
            await provider.get_session()

    @pytest.mark.asyncio
    async def test_server_errors_propagate(self):
        provider = _provider(lambda request: httpx.Response(503, text="upstream"), _persisted())

        with pytest.raises(AuthProviderError) as exc_info:
            await provider.get_session()

        assert exc_info.value.status_code == 503
        assert exc_info.value.message == "upstream"


@pytest.mark.unit
class TestSignOut:
    @pytest.mark.asyncio
    async def test_logout_posts_and_emits(self):
        calls = []

        def handler(request):
            calls.append((request.method, request.url.path))
            return httpx.Response(204)

        provider = _provider(handler, _persisted())
        recorder = Recorder()
        provider.on_auth_state_change(recorder)

        await provider.sign_out()

        assert calls == [("POST", "/auth/v1/logout")]
        assert provider.current_session is None
        assert recorder.events == [(AuthChangeEvent.SIGNED_OUT, None)]

    @pytest.mark.asyncio
    async def test_backend_failure_still_drops_local_session(self):
        provider = _provider(lambda request: httpx.Response(500, json={"msg": "boom"}), _persisted())
        recorder = Recorder()
        provider.on_auth_state_change(recorder)

        with pytest.raises(AuthProviderError):
            await provider.sign_out()

        assert provider.current_session is None
        assert recorder.events == [(AuthChangeEvent.SIGNED_OUT, None)]

    @pytest.mark.asyncio
    async def test_revoked_token_is_not_an_error(self):
        provider = _provider(lambda request: httpx.Response(401, json={"msg": "expired"}), _persisted())

        await provider.sign_out()

        assert provider.current_session is None

    @pytest.mark.asyncio
    async def test_without_session_makes_no_request(self):
        def handler(request):
            raise AssertionError("no request expected")

        await _provider(handler).sign_out()


@pytest.mark.unit
class TestRefresh:
    @pytest.mark.asyncio
    async def test_refresh_without_session_fails(self):
        provider = _provider(lambda request: httpx.Response(200, json=_token_payload()))

        with pytest.raises(AuthProviderError):
            await provider.refresh_session()
