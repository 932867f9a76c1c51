"""
Identity provider (Keycloak) connection settings.

Why: Keep endpoint construction framework independent so the verifier, the
admin client and the CLI tools derive URLs from one frozen config object.
"""

from __future__ import annotations

from dataclasses import dataclass
import os


@dataclass(frozen=True)
class OIDCConfig:
    base_url: str  # internal base URL (server-to-server), e.g., http://keycloak:8080
    realm: str  # e.g., staffdesk
    client_id: str  # e.g., staffdesk-web
    expected_audience: str | None = None  # checked only when configured

    @property
    def issuer(self) -> str:
        return f"{self.base_url}/realms/{self.realm}"

    @property
    def certs_endpoint(self) -> str:
        return f"{self.issuer}/protocol/openid-connect/certs"

    @property
    def admin_base(self) -> str:
        return f"{self.base_url}/admin/realms/{self.realm}"


def load_oidc_config() -> OIDCConfig:
    base_url = os.getenv("KC_BASE_URL", "http://localhost:8080").rstrip("/")
    realm = os.getenv("KC_REALM", "staffdesk")
    client_id = os.getenv("KC_CLIENT_ID", "staffdesk-web")
    audience = (os.getenv("KC_EXPECTED_AUDIENCE") or "").strip() or None
    return OIDCConfig(base_url=base_url, realm=realm, client_id=client_id, expected_audience=audience)


def upstream_timeout() -> float:
    """Bound (seconds) applied to every call towards the identity provider."""
    raw = (os.getenv("UPSTREAM_TIMEOUT_SECONDS") or "").strip()
    try:
        value = float(raw) if raw else 10.0
    except ValueError:
        return 10.0
    return value if value > 0 else 10.0


def tls_verify_option() -> str | bool:
    # Honor CA bundle in production environments; default to system CAs
    ca = os.getenv("KEYCLOAK_CA_BUNDLE")
    return ca if ca else True
