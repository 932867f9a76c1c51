"""
Keycloak Admin client for identity lookup, provisioning and role claims.

Design:
- Framework-agnostic, called by the Account Directory.
- Uses requests under the hood with a bounded timeout on every call.
- Transport problems are translated into the shared error taxonomy:
  timeouts become `UpstreamTimeout`, everything else `UpstreamError`.

Role claim model:
    The managed roles `admin` and `sysadmin` exist as realm roles. An identity
    holds at most one of them; holding none means `user`. `set_role` removes
    the other managed mapping before adding the requested one.

Security:
- Do not log credentials or tokens.
- Expect credentials (client-secret or admin user) from environment in prod.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import logging
import os

import requests
from requests.exceptions import RequestException, Timeout

from .domain import MANAGED_ROLES, Role
from .errors import NotFound, UpstreamError, UpstreamTimeout
from .oidc import OIDCConfig, tls_verify_option, upstream_timeout

logger = logging.getLogger("staffdesk.identity_access")

_PAGE_SIZE = 100


@dataclass(frozen=True)
class DirectoryUser:
    uid: str
    email: str
    first_name: str = ""
    last_name: str = ""


def _to_user(u: dict) -> DirectoryUser | None:
    uid = u.get("id")
    if not uid:
        return None
    return DirectoryUser(
        uid=str(uid),
        email=str(u.get("email") or u.get("username") or ""),
        first_name=str(u.get("firstName") or ""),
        last_name=str(u.get("lastName") or ""),
    )


class AdminClient:
    def __init__(self, cfg: OIDCConfig) -> None:
        self.cfg = cfg
        # Token realm for admin client, typically 'master'
        self._admin_realm = os.getenv("KC_ADMIN_REALM", "master")
        # Confidential client for admin API access (preferred)
        self._admin_client_id = os.getenv("KC_ADMIN_CLIENT_ID", "staffdesk-admin-cli")
        self._admin_client_secret = os.getenv("KC_ADMIN_CLIENT_SECRET")
        # Password grant is retained for dev only
        self._admin_username = os.getenv("KC_ADMIN_USERNAME")
        self._admin_password = os.getenv("KC_ADMIN_PASSWORD")

    # --- Transport ---------------------------------------------------------------

    def _call(self, method: str, url: str, op: str, **kwargs: Any):
        fn = getattr(requests, method)
        try:
            return fn(url, timeout=upstream_timeout(), verify=tls_verify_option(), **kwargs)
        except Timeout as exc:
            logger.warning("Identity provider timeout op=%s", op)
            raise UpstreamTimeout(f"idp_{op}_timeout") from exc
        except RequestException as exc:
            logger.warning("Identity provider unreachable op=%s err=%s", op, exc.__class__.__name__)
            raise UpstreamError(f"idp_{op}_failed") from exc

    def _expect(self, resp, op: str, ok: tuple[int, ...] = (200,)) -> None:
        if resp.status_code not in ok:
            logger.warning("Identity provider rejected op=%s status=%s", op, resp.status_code)
            raise UpstreamError(f"idp_{op}_failed")

    def _token(self) -> str:
        """Obtain an admin bearer token.

        Prefers OAuth2 client_credentials using a confidential client. Falls
        back to the password grant only when username/password are set and no
        client secret is configured. The password grant is refused in
        production-like environments.
        """
        url = f"{self.cfg.base_url}/realms/{self._admin_realm}/protocol/openid-connect/token"
        if self._admin_client_secret:
            data = {
                "grant_type": "client_credentials",
                "client_id": self._admin_client_id,
                "client_secret": self._admin_client_secret,
            }
        else:
            env = (os.getenv("STAFFDESK_ENV", "dev") or "").lower()
            if env in {"prod", "production", "stage", "staging"}:
                raise UpstreamError("password_grant_disabled_in_prod")
            if not self._admin_username or not self._admin_password:
                raise UpstreamError("idp_admin_credentials_missing")
            data = {
                "grant_type": "password",
                "client_id": self._admin_client_id,
                "username": self._admin_username,
                "password": self._admin_password,
            }
        r = self._call("post", url, "token", data=data)
        self._expect(r, "token")
        tok = (r.json() or {}).get("access_token")
        if not tok:
            raise UpstreamError("idp_token_missing")
        return str(tok)

    def _hdr(self, token: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}

    # --- Lookup ------------------------------------------------------------------

    def find_users_by_email(self, email: str) -> List[DirectoryUser]:
        """Exact-match lookup; Keycloak may return more than one hit."""
        token = self._token()
        r = self._call(
            "get",
            f"{self.cfg.admin_base}/users",
            "lookup",
            headers=self._hdr(token),
            params={"email": email, "exact": "true"},
        )
        self._expect(r, "lookup")
        out: List[DirectoryUser] = []
        for u in r.json() or []:
            user = _to_user(u) if isinstance(u, dict) else None
            if user and user.email.lower() == email.lower():
                out.append(user)
        return out

    def get_user(self, uid: str) -> Optional[DirectoryUser]:
        token = self._token()
        r = self._call("get", f"{self.cfg.admin_base}/users/{uid}", "get_user", headers=self._hdr(token))
        if r.status_code == 404:
            return None
        self._expect(r, "get_user")
        return _to_user(r.json() or {})

    def list_users_with_role(self, role: Role) -> List[DirectoryUser]:
        """Page over all members of a managed realm role."""
        if role not in MANAGED_ROLES:
            raise ValueError("invalid role")
        token = self._token()
        url = f"{self.cfg.admin_base}/roles/{role.value}/users"
        out: List[DirectoryUser] = []
        first = 0
        while True:
            r = self._call(
                "get", url, "list_role", headers=self._hdr(token), params={"first": first, "max": _PAGE_SIZE}
            )
            self._expect(r, "list_role")
            page = r.json() or []
            for u in page:
                user = _to_user(u) if isinstance(u, dict) else None
                if user:
                    out.append(user)
            if len(page) < _PAGE_SIZE:
                return out
            first += _PAGE_SIZE

    # --- Provisioning ------------------------------------------------------------

    def create_user(
        self,
        *,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        photo_url: str | None = None,
    ) -> DirectoryUser:
        token = self._token()
        url = f"{self.cfg.admin_base}/users"
        payload: Dict[str, Any] = {
            "username": email,
            "email": email,
            "enabled": True,
            "emailVerified": False,
            "firstName": first_name,
            "lastName": last_name,
        }
        if photo_url:
            payload["attributes"] = {"picture": [photo_url]}
        r = self._call("post", url, "create_user", headers=self._hdr(token), json=payload)
        self._expect(r, "create_user", ok=(201, 204))
        uid = _id_from_location(r.headers.get("Location") or r.headers.get("location") or "")
        if not uid:
            # Older servers omit Location: resolve by exact email instead
            hits = self.find_users_by_email(email)
            if not hits:
                raise UpstreamError("idp_user_lookup_failed")
            uid = hits[0].uid
        pw = {"type": "password", "value": password, "temporary": True}
        pr = self._call("put", f"{url}/{uid}/reset-password", "set_password", headers=self._hdr(token), json=pw)
        self._expect(pr, "set_password", ok=(204,))
        return DirectoryUser(uid=uid, email=email, first_name=first_name, last_name=last_name)

    # --- Role claim --------------------------------------------------------------

    def _realm_mappings(self, token: str, uid: str) -> List[dict]:
        r = self._call(
            "get",
            f"{self.cfg.admin_base}/users/{uid}/role-mappings/realm",
            "get_role",
            headers=self._hdr(token),
        )
        if r.status_code == 404:
            raise NotFound("identity_not_found")
        self._expect(r, "get_role")
        return [m for m in (r.json() or []) if isinstance(m, dict)]

    def get_role(self, uid: str) -> Role:
        token = self._token()
        return Role.highest(m.get("name") for m in self._realm_mappings(token, uid))

    def set_role(self, uid: str, role: Role) -> None:
        """Attach exactly `role` (no managed role at all for `user`)."""
        token = self._token()
        current = self._realm_mappings(token, uid)
        managed = {r.value for r in MANAGED_ROLES}
        remove = [m for m in current if m.get("name") in managed and m.get("name") != role.value]
        has_target = any(m.get("name") == role.value for m in current)
        mapping_url = f"{self.cfg.admin_base}/users/{uid}/role-mappings/realm"
        if remove:
            d = self._call("delete", mapping_url, "remove_role", headers=self._hdr(token), json=remove)
            self._expect(d, "remove_role", ok=(204,))
        if role in MANAGED_ROLES and not has_target:
            rr = self._call("get", f"{self.cfg.admin_base}/roles/{role.value}", "get_role_rep", headers=self._hdr(token))
            self._expect(rr, "get_role_rep")
            role_json = rr.json() or {}
            if "id" not in role_json:
                raise UpstreamError("idp_role_not_found")
            a = self._call("post", mapping_url, "assign_role", headers=self._hdr(token), json=[role_json])
            self._expect(a, "assign_role", ok=(204,))


def _id_from_location(location: str) -> str:
    # Keycloak answers 201 with Location: .../users/<id>
    tail = location.rstrip("/").rsplit("/", 1)[-1] if location else ""
    return tail if tail and tail != "users" else ""
