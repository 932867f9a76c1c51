"""
Configuration and startup security checks for StaffDesk.

Why: An admin backend that can mint admins must not start with obviously
insecure settings. This module provides a single guard that enforces minimal
production safety constraints without burdening local development.

Permissions: The caller needs no special privileges. The function simply reads
environment variables and raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

import os
from typing import List

DEFAULT_CORS_ORIGINS = (
    "http://localhost:5173",
    "http://localhost:5174",
    "http://localhost:5175",
    "http://localhost:5176",
)

_PLACEHOLDERS = ("CHANGE_ME", "DUMMY", "DEV-ONLY")


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def _is_placeholder(value: str) -> bool:
    upper = (value or "").strip().upper()
    return not upper or any(upper.startswith(p) for p in _PLACEHOLDERS)


def cors_allowed_origins() -> List[str]:
    """Origins allowed for browser calls (comma-separated CORS_ALLOWED_ORIGINS)."""
    raw = os.getenv("CORS_ALLOWED_ORIGINS")
    if raw is None or not raw.strip():
        return list(DEFAULT_CORS_ORIGINS)
    return [o.strip().rstrip("/") for o in raw.split(",") if o.strip()]


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Intent: Abort process startup when obviously insecure settings are detected
    in production/staging. Development remains permissive for convenience.

    Checks:
    - Keycloak admin client secret must be set (no password grant in prod).
    - App session token secret must be set, not a placeholder, >= 32 chars.
    - Database URLs must not explicitly disable TLS.
    - Keycloak base URL must use https.
    - CORS must not allow every origin.
    """

    env = os.getenv("STAFFDESK_ENV", "dev")
    if not _is_prod_like(env):
        return  # dev/test remain permissive

    # 1) Keycloak admin client secret
    kc_secret = (os.getenv("KC_ADMIN_CLIENT_SECRET", "") or "").strip()
    if _is_placeholder(kc_secret):
        raise SystemExit(
            "Refusing to start: KC_ADMIN_CLIENT_SECRET is unset or a placeholder in production."
        )

    # 2) Session token signing secret
    app_secret = (os.getenv("APP_TOKEN_SECRET", "") or "").strip()
    if _is_placeholder(app_secret) or len(app_secret) < 32:
        raise SystemExit(
            "Refusing to start: APP_TOKEN_SECRET must be a random value of at least 32 characters in production."
        )

    # 3) Postgres TLS: basic guard to avoid explicit disable
    for key in ("DATABASE_URL", "STAFFDESK_DATABASE_URL"):
        dsn = os.getenv(key, "")
        if "sslmode=disable" in dsn:
            raise SystemExit(
                f"Refusing to start: {key} contains sslmode=disable in production. Use sslmode=require or verify TLS."
            )

    # 4) Keycloak endpoints must use HTTPS
    kc_base = (os.getenv("KC_BASE_URL", "") or "").strip().lower()
    if kc_base.startswith("http://"):
        raise SystemExit("Refusing to start: KC_BASE_URL must use https in production (got http).")

    # 5) Wildcard CORS
    if "*" in cors_allowed_origins():
        raise SystemExit("Refusing to start: CORS_ALLOWED_ORIGINS must not contain '*' in production.")
