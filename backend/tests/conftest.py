"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend and give every test a clean,
in-memory wiring (identity provider fake, memory stores, fake verifier) so no
test depends on a running Keycloak or Postgres.
"""
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

# Ensure the repository root is importable so `backend.*` resolves in tests
REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from backend.identity_access.directory import AccountDirectory  # noqa: E402
from backend.identity_access.domain import Role  # noqa: E402
from backend.identity_access.profiles import MemoryProfileStore  # noqa: E402
from backend.identity_access.tokens import Identity  # noqa: E402
from backend.staff.registry import EmployeeRegistry, MemoryEmployeeRepo  # noqa: E402
from backend.tests.utils.fakes import FakeIdentityProvider, FakeVerifier  # noqa: E402
from backend.web import wiring  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _dev_env_defaults(monkeypatch: pytest.MonkeyPatch):
    """Keep env-driven toggles from leaking between tests.

    Individual tests opt into prod semantics explicitly.
    """
    for var in (
        "STAFFDESK_ENV",
        "RECORD_STORE_BACKEND",
        "CORS_ALLOWED_ORIGINS",
        "KC_EXPECTED_AUDIENCE",
        "APP_TOKEN_TTL_SECONDS",
        "UPSTREAM_TIMEOUT_SECONDS",
        "KEYCLOAK_CA_BUNDLE",
        "KC_ADMIN_REALM",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("APP_TOKEN_SECRET", "test-only-app-token-secret-0123456789abcdef")
    yield


@pytest.fixture(autouse=True)
def _reset_wiring():
    """Drop wired services before and after every test."""
    wiring.reset()
    yield
    wiring.reset()


@pytest.fixture
def idp() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def wired(idp: FakeIdentityProvider):
    """Wire the app against fakes with one identity per role.

    Bearer tokens: `sys-token`, `admin-token`, `user-token`.
    """
    sys_uid = idp.add_user("root@example.com", Role.SYSADMIN, first_name="Root", last_name="Admin")
    admin_uid = idp.add_user("ada@example.com", Role.ADMIN, first_name="Ada", last_name="Lovelace")
    user_uid = idp.add_user("joe@example.com", Role.USER, first_name="Joe", last_name="User")

    directory = AccountDirectory(idp, MemoryProfileStore())
    registry = EmployeeRegistry(MemoryEmployeeRepo())
    verifier = FakeVerifier(
        {
            "sys-token": Identity(uid=sys_uid, email="root@example.com", role=Role.SYSADMIN),
            "admin-token": Identity(uid=admin_uid, email="ada@example.com", role=Role.ADMIN),
            "user-token": Identity(uid=user_uid, email="joe@example.com", role=Role.USER),
        }
    )
    wiring.set_directory(directory)
    wiring.set_registry(registry)
    wiring.set_verifier(verifier)
    return SimpleNamespace(
        idp=idp,
        directory=directory,
        registry=registry,
        verifier=verifier,
        sys_uid=sys_uid,
        admin_uid=admin_uid,
        user_uid=user_uid,
    )
