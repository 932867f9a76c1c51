"""
Bearer credential verification for the identity_access bounded context.

Why: Keep cryptographic validation of bearer tokens outside the web adapter so
we can unit test it independently and swap the cache later on.

Two token families are accepted:
- Access tokens issued by the identity provider (Keycloak). RS256 only,
  validated against the realm JWKS, issuer and expiry.
- Session tokens issued by `/login` (`AppTokenIssuer`). HS256 with a server
  secret. They carry the role that was live at login time; when a role lookup
  is wired the verifier re-reads the live role on every request instead.

Security: Tokens are never logged. Invalid credentials surface as
`Unauthenticated` with a short stable code. Failures to reach the identity
provider surface as `UpstreamError` / `UpstreamTimeout`.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Tuple
import logging
import os
import time

import requests
from jose import jwt
from jose.exceptions import JOSEError

from .domain import Role
from .errors import Unauthenticated, UpstreamError, UpstreamTimeout
from .oidc import OIDCConfig, tls_verify_option, upstream_timeout

logger = logging.getLogger("staffdesk.identity_access")

APP_TOKEN_ISSUER = "staffdesk"
MAX_CLOCK_SKEW_SECONDS = 5  # Allow minimal skew between servers


@dataclass(frozen=True)
class Identity:
    """Authenticated caller as established once per request."""

    uid: str
    email: str
    role: Role

    def as_state(self) -> dict:
        return {"sub": self.uid, "email": self.email, "role": self.role.value}


@dataclass
class _CacheEntry:
    jwks: Dict[str, object]
    expires_at: float


class JWKSCache:
    """Very small in-memory cache for JWKS responses."""

    def __init__(self, ttl_seconds: int = 300):
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[Tuple[str, str], _CacheEntry] = {}

    def _cache_key(self, cfg: OIDCConfig) -> Tuple[str, str]:
        return (cfg.base_url, cfg.realm)

    def get(self, cfg: OIDCConfig) -> Dict[str, object]:
        key = self._cache_key(cfg)
        now = time.time()
        entry = self._entries.get(key)
        if entry and entry.expires_at > now:
            return entry.jwks

        jwks = self._fetch(cfg)
        self._entries[key] = _CacheEntry(jwks=jwks, expires_at=now + self.ttl_seconds)
        return jwks

    def _fetch(self, cfg: OIDCConfig) -> Dict[str, object]:
        try:
            resp = requests.get(cfg.certs_endpoint, timeout=upstream_timeout(), verify=tls_verify_option())
        except requests.Timeout as exc:
            logger.warning("JWKS fetch timed out")
            raise UpstreamTimeout("jwks_fetch_timeout") from exc
        except requests.RequestException as exc:
            logger.warning("JWKS fetch failed: %s", exc.__class__.__name__)
            raise UpstreamError("jwks_fetch_failed") from exc
        if resp.status_code != 200:
            logger.warning("JWKS fetch failed: status=%s", resp.status_code)
            raise UpstreamError("jwks_fetch_failed")
        try:
            jwks = resp.json()
        except ValueError as exc:
            raise UpstreamError("jwks_invalid") from exc
        if not isinstance(jwks, dict) or "keys" not in jwks:
            raise UpstreamError("jwks_invalid")
        return jwks


JWKS_CACHE = JWKSCache()


def verify_access_token(
    *,
    token: str,
    cfg: OIDCConfig,
    cache: JWKSCache | None = None,
) -> Dict[str, object]:
    """Validate an identity provider access token and return its claims.

    Raises
    ------
    Unauthenticated:
        When the token is invalid (signature, issuer, audience, expiry, kid).
    UpstreamError:
        When the realm JWKS cannot be fetched (`UpstreamTimeout` on timeout).
    """
    cache = cache or JWKS_CACHE
    jwks = cache.get(cfg)
    try:
        header = jwt.get_unverified_header(token)
    except JOSEError as exc:
        raise Unauthenticated("invalid_token") from exc
    kid = header.get("kid")
    if not kid:
        raise Unauthenticated("missing_kid")
    key_dict = _find_key(jwks, kid)
    if not key_dict:
        raise Unauthenticated("unknown_kid")

    try:
        claims = jwt.decode(
            token,
            key_dict,
            algorithms=["RS256"],
            audience=cfg.expected_audience,
            issuer=cfg.issuer,
            options={
                "verify_signature": True,
                "verify_aud": bool(cfg.expected_audience),
                "verify_exp": False,
                "verify_iat": False,
                "verify_nbf": False,
                "verify_at_hash": False,
            },
        )
    except JOSEError as exc:
        raise Unauthenticated("invalid_token") from exc

    _validate_temporal_claims(claims)
    return claims


def role_from_claims(claims: Dict[str, object]) -> Role:
    """Read the role claim: explicit `role` mapper first, realm roles second."""
    explicit = claims.get("role")
    if isinstance(explicit, str) and explicit:
        return Role.parse(explicit)
    realm_access = claims.get("realm_access")
    if isinstance(realm_access, dict):
        roles = realm_access.get("roles")
        if isinstance(roles, list):
            return Role.highest(roles)
    return Role.USER


def _find_key(jwks: Dict[str, object], kid: str) -> Dict[str, object] | None:
    keys = jwks.get("keys")
    if not isinstance(keys, list):
        return None
    for key in keys:
        if isinstance(key, dict) and key.get("kid") == kid:
            return key
    return None


def _validate_temporal_claims(claims: Dict[str, object]) -> None:
    now = time.time()
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        raise Unauthenticated("invalid_token")
    if exp + MAX_CLOCK_SKEW_SECONDS < now:
        raise Unauthenticated("token_expired")

    iat = claims.get("iat")
    if isinstance(iat, (int, float)):
        if iat - MAX_CLOCK_SKEW_SECONDS > now:
            raise Unauthenticated("invalid_token")

    nbf = claims.get("nbf")
    if isinstance(nbf, (int, float)) and nbf - MAX_CLOCK_SKEW_SECONDS > now:
        raise Unauthenticated("invalid_token")


class AppTokenIssuer:
    """Issue and verify the session tokens handed out by `/login`."""

    def __init__(self, secret: str, *, ttl_seconds: int = 3600, issuer: str = APP_TOKEN_ISSUER) -> None:
        self._secret = secret
        self.ttl_seconds = ttl_seconds
        self.issuer = issuer

    @classmethod
    def from_env(cls) -> "AppTokenIssuer":
        secret = os.getenv("APP_TOKEN_SECRET") or "dev-only-app-token-secret-change-me"
        try:
            ttl = int(os.getenv("APP_TOKEN_TTL_SECONDS", "3600"))
        except ValueError:
            ttl = 3600
        return cls(secret, ttl_seconds=max(60, ttl))

    def issue(self, identity: Identity) -> str:
        now = int(time.time())
        claims = {
            "iss": self.issuer,
            "sub": identity.uid,
            "email": identity.email,
            "role": identity.role.value,
            "iat": now,
            "exp": now + self.ttl_seconds,
        }
        return jwt.encode(claims, self._secret, algorithm="HS256")

    def verify(self, token: str) -> Dict[str, object]:
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=["HS256"],
                issuer=self.issuer,
                options={"verify_aud": False, "verify_exp": False, "verify_iat": False, "verify_nbf": False},
            )
        except JOSEError as exc:
            raise Unauthenticated("invalid_token") from exc
        _validate_temporal_claims(claims)
        return claims


class CredentialVerifier:
    """Turn a raw bearer token into an `Identity` or raise `Unauthenticated`.

    `role_lookup` maps a uid to its live role. When given, session tokens are
    authorized with the live role, so a demotion applies to the next request
    rather than at token expiry.
    """

    def __init__(
        self,
        cfg: OIDCConfig,
        issuer: AppTokenIssuer,
        cache: JWKSCache | None = None,
        *,
        role_lookup: Callable[[str], Role] | None = None,
    ) -> None:
        self.cfg = cfg
        self.issuer = issuer
        self.cache = cache or JWKS_CACHE
        self.role_lookup = role_lookup

    def verify(self, token: str | None) -> Identity:
        token = (token or "").strip()
        if not token:
            raise Unauthenticated("missing_token")
        try:
            unverified = jwt.get_unverified_claims(token)
        except JOSEError as exc:
            raise Unauthenticated("invalid_token") from exc
        from_session = unverified.get("iss") == self.issuer.issuer
        if from_session:
            claims = self.issuer.verify(token)
            role = Role.parse(claims.get("role"))
        else:
            claims = verify_access_token(token=token, cfg=self.cfg, cache=self.cache)
            role = role_from_claims(claims)
        sub = claims.get("sub")
        if not isinstance(sub, str) or not sub:
            raise Unauthenticated("missing_sub")
        if from_session and self.role_lookup is not None:
            role = self.role_lookup(sub)
        email = claims.get("email")
        return Identity(uid=sub, email=str(email or ""), role=role)


def parse_bearer(header_value: str | None) -> str | None:
    """Extract the token from an `Authorization: Bearer <token>` header."""
    if not header_value:
        return None
    scheme, _, value = header_value.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    return value.strip() or None
