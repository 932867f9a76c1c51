"""
Service wiring for the web adapter.

Why:
    Routes never reach for process-global clients. They resolve the wired
    `AccountDirectory`, `EmployeeRegistry`, `CredentialVerifier` and
    `AppTokenIssuer` through the accessors below, which build production
    defaults lazily on first use. Tests swap any of them via the `set_*`
    functions and restore defaults with `reset()`.

Store choice:
    `RECORD_STORE_BACKEND=db` selects the Postgres stores. When they cannot be
    constructed (no psycopg, no DSN) we log a warning and fall back to the
    in-memory stores so local development keeps working.
"""
from __future__ import annotations

import logging

from backend.identity_access.admin_client import AdminClient
from backend.identity_access.directory import AccountDirectory
from backend.identity_access.domain import Role
from backend.identity_access.oidc import load_oidc_config
from backend.identity_access.profiles import MemoryProfileStore
from backend.identity_access.tokens import AppTokenIssuer, CredentialVerifier
from backend.staff.registry import EmployeeRegistry, MemoryEmployeeRepo
from backend.storage.config import record_store_backend

logger = logging.getLogger("staffdesk.web")

_DIRECTORY: AccountDirectory | None = None
_REGISTRY: EmployeeRegistry | None = None
_VERIFIER: CredentialVerifier | None = None
_ISSUER: AppTokenIssuer | None = None


def _build_profile_store():
    if record_store_backend() != "db":
        return MemoryProfileStore()
    try:
        from backend.identity_access.profiles_db import DBProfileStore

        return DBProfileStore()
    except Exception as exc:  # pragma: no cover - exercised when DSN missing
        logger.warning("Profile store unavailable (%s); using in-memory fallback", exc.__class__.__name__)
        return MemoryProfileStore()


def _build_employee_repo():
    if record_store_backend() != "db":
        return MemoryEmployeeRepo()
    try:
        from backend.staff.repo_db import DBEmployeeRepo

        return DBEmployeeRepo()
    except Exception as exc:  # pragma: no cover - exercised when DSN missing
        logger.warning("Employee repo unavailable (%s); using in-memory fallback", exc.__class__.__name__)
        return MemoryEmployeeRepo()


def get_directory() -> AccountDirectory:
    global _DIRECTORY
    if _DIRECTORY is None:
        _DIRECTORY = AccountDirectory(AdminClient(load_oidc_config()), _build_profile_store())
    return _DIRECTORY


def get_registry() -> EmployeeRegistry:
    global _REGISTRY
    if _REGISTRY is None:
        _REGISTRY = EmployeeRegistry(_build_employee_repo())
    return _REGISTRY


def get_issuer() -> AppTokenIssuer:
    global _ISSUER
    if _ISSUER is None:
        _ISSUER = AppTokenIssuer.from_env()
    return _ISSUER


def live_role(uid: str) -> Role:
    """Current role of `uid` according to the wired directory."""
    return get_directory().role_of(uid)


def get_verifier() -> CredentialVerifier:
    global _VERIFIER
    if _VERIFIER is None:
        _VERIFIER = CredentialVerifier(load_oidc_config(), get_issuer(), role_lookup=live_role)
    return _VERIFIER


def set_directory(directory: AccountDirectory | None) -> None:
    """Allow tests to swap the account directory implementation."""
    global _DIRECTORY
    _DIRECTORY = directory


def set_registry(registry: EmployeeRegistry | None) -> None:
    """Allow tests to swap the employee registry implementation."""
    global _REGISTRY
    _REGISTRY = registry


def set_verifier(verifier: CredentialVerifier | None) -> None:
    global _VERIFIER
    _VERIFIER = verifier


def set_issuer(issuer: AppTokenIssuer | None) -> None:
    global _ISSUER
    _ISSUER = issuer


def reset() -> None:
    """Drop every wired service; the next access rebuilds defaults."""
    set_directory(None)
    set_registry(None)
    set_verifier(None)
    set_issuer(None)
