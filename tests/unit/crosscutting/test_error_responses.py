"""
Unit tests for RFC 7807 error factories and the login error mapping.
"""

import pytest

from gep_console.api.exception_handlers import code_for
from gep_console.crosscutting.error_responses import (
    ErrorCode,
    backend_error,
    forbidden,
    service_unavailable,
    sign_in_failed,
    unauthorized,
)
from gep_console.crosscutting.exceptions import (
    AccessDenied,
    AuthErrorCode,
    ProfileLookupError,
    StatisticsError,
    UnknownModuleError,
)


@pytest.mark.unit
class TestSignInFailed:
    @pytest.mark.parametrize(
        "code,status",
        [
            (AuthErrorCode.NOT_REGISTERED, 401),
            (AuthErrorCode.WRONG_PASSWORD, 401),
            (AuthErrorCode.ACCOUNT_INACTIVE, 403),
            (AuthErrorCode.PROVIDER_ERROR, 502),
        ],
    )
    def test_status_per_code(self, code, status):
        exc = sign_in_failed(code.value, "detalle")

        assert exc.status_code == status
        assert exc.code.value == code.value
        assert exc.detail == "detalle"

    def test_unknown_code_is_rejected(self):
        with pytest.raises(ValueError):
            sign_in_failed("Bogus", "x")


@pytest.mark.unit
def test_factories():
    assert unauthorized().status_code == 401
    assert forbidden("no").code is ErrorCode.FORBIDDEN
    assert service_unavailable("auth").status_code == 503
    assert backend_error().code is ErrorCode.BACKEND_ERROR


@pytest.mark.unit
@pytest.mark.parametrize(
    "exc,code",
    [
        (UnknownModuleError("reports"), ErrorCode.NOT_FOUND),
        (AccessDenied("users"), ErrorCode.FORBIDDEN),
        (StatisticsError("down"), ErrorCode.BACKEND_ERROR),
        (ProfileLookupError("boom"), ErrorCode.INTERNAL_ERROR),
    ],
)
def test_console_errors_map_to_codes(exc, code):
    assert code_for(exc) is code
