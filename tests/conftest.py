"""
Name: Pytest Configuration and Shared Fixtures

Responsibilities:
  - Configure test environment (APP_ENV=test, no .env file)
  - Provide in-memory backend adapters and a wired SessionManager
  - Register markers

Collaborators:
  - pytest / pytest-asyncio
  - gep_console.infrastructure.in_memory
  - gep_console.identity

Notes:
  - Watchdogs are shortened (fractions of a second) so timeout paths run fast
  - Every fixture is function-scoped: one console per test
"""

import os
import sys
from pathlib import Path

import pytest

os.environ.setdefault("APP_ENV", "test")

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from gep_console.crosscutting import config as app_config  # noqa: E402

app_config.Settings.model_config["env_file"] = None

from gep_console.identity.profiles import ProfileResolver  # noqa: E402
from gep_console.identity.roles import Role  # noqa: E402
from gep_console.identity.session import SessionManager  # noqa: E402
from gep_console.infrastructure.in_memory import (  # noqa: E402
    InMemoryAuthProvider,
    InMemoryProfileStore,
)

PASSWORD = "s3cret-pass"

ANALYST_EMAIL = "ana@gep.com.mx"
ADMIN_EMAIL = "director@gep.com.mx"
INACTIVE_ADMIN_EMAIL = "baja@gep.com.mx"


def pytest_configure(config) -> None:
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line("markers", "api: HTTP surface tests (TestClient)")


# ============================================================================
# Backend fakes
# ============================================================================


@pytest.fixture
def provider() -> InMemoryAuthProvider:
    """R: Proveedor con tres cuentas registradas (misma contraseña)."""
    return InMemoryAuthProvider(
        {
            ANALYST_EMAIL: PASSWORD,
            ADMIN_EMAIL: PASSWORD,
            INACTIVE_ADMIN_EMAIL: PASSWORD,
        }
    )


@pytest.fixture
def profile_store() -> InMemoryProfileStore:
    store = InMemoryProfileStore()
    store.upsert(ANALYST_EMAIL, Role.ANALYST.value, activo=True, nombre="Ana")
    store.upsert(ADMIN_EMAIL, Role.ADMINISTRATOR.value, activo=True)
    store.upsert(INACTIVE_ADMIN_EMAIL, Role.ADMINISTRATOR.value, activo=False)
    return store


@pytest.fixture
def resolver(profile_store: InMemoryProfileStore) -> ProfileResolver:
    return ProfileResolver(profile_store, timeout_seconds=0.05)


@pytest.fixture
def manager(
    provider: InMemoryAuthProvider, resolver: ProfileResolver
) -> SessionManager:
    return SessionManager(
        provider,
        resolver,
        bootstrap_timeout_seconds=0.1,
        sign_out_timeout_seconds=0.1,
    )
