"""
Account Directory: the only writer of role claims.

Why:
    Promotion, demotion and profile edits touch two stores: the identity
    provider (role claim, authoritative) and the profile mirror (names, photo
    and a copy of the role for cheap listing). This module keeps both in step
    and is the single place that knows the write order.

Write order and recovery:
    Identity provider first, mirror second. There is no compensating step; a
    failure after the first write surfaces as `UpstreamError` and the caller
    retries the whole operation, which is idempotent per email/uid. Anything
    left behind is repaired by `reconcile()`, which treats the identity
    provider as the source of truth.

Security:
    - New identities receive a random temporary password; the identity
      provider forces a reset on first login.
    - Do not log emails, credentials or tokens; uids are truncated.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Protocol
import logging
import re
import secrets

from .admin_client import DirectoryUser
from .domain import Role
from .errors import InvalidRequest, NotFound, UpstreamError
from .profiles import AdminProfile, ProfileStoreProtocol

logger = logging.getLogger("staffdesk.identity_access")


class IdentityProviderProtocol(Protocol):
    def find_users_by_email(self, email: str) -> List[DirectoryUser]:
        ...

    def get_user(self, uid: str) -> Optional[DirectoryUser]:
        ...

    def create_user(
        self, *, email: str, password: str, first_name: str, last_name: str, photo_url: str | None = None
    ) -> DirectoryUser:
        ...

    def get_role(self, uid: str) -> Role:
        ...

    def set_role(self, uid: str, role: Role) -> None:
        ...

    def list_users_with_role(self, role: Role) -> List[DirectoryUser]:
        ...


_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_splitter = re.compile(r"[^A-Za-z0-9]+")


def humanize_identifier(s: str) -> str:
    """Turn an email/username into a human display name.

    Rules:
    - For emails, use the part before '@'.
    - Split on non-alphanumeric separators (._- etc.).
    - Title-case each token and join with a single space.
    """
    if not s:
        return ""
    s = str(s)
    if "@" in s:
        s = s.split("@", 1)[0]
    parts = [p for p in _splitter.split(s) if p]
    if not parts:
        return ""
    return " ".join(p[:1].upper() + p[1:].lower() for p in parts)


def _required(value: object, code: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidRequest(code)
    return value.strip()


def _normalize_email(value: object) -> str:
    email = _required(value, "email_required")
    if not _EMAIL_RE.match(email):
        raise InvalidRequest("invalid_email")
    return email.lower()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ReconcileReport:
    checked: int = 0
    fixed: List[tuple[str, str, str]] = field(default_factory=list)  # (uid, mirror role, authoritative role)
    created: List[str] = field(default_factory=list)
    dry_run: bool = False

    def to_json(self) -> dict:
        return {
            "checked": self.checked,
            "fixed": [{"uid": u, "from": a, "to": b} for u, a, b in self.fixed],
            "created": list(self.created),
            "dryRun": self.dry_run,
        }


class AccountDirectory:
    def __init__(
        self,
        idp: IdentityProviderProtocol,
        profiles: ProfileStoreProtocol,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.idp = idp
        self.profiles = profiles
        self._clock = clock or _utcnow

    def _now_iso(self) -> str:
        return self._clock().isoformat()

    # --- Lookup --------------------------------------------------------------------

    def resolve_uid(self, email: str) -> str:
        """Translate an email into a uid at the HTTP boundary."""
        email = _normalize_email(email)
        hits = self.idp.find_users_by_email(email)
        if not hits:
            raise NotFound("identity_not_found")
        if len(hits) > 1:
            raise NotFound("ambiguous_email")
        return hits[0].uid

    def role_of(self, uid: str) -> Role:
        return self.idp.get_role(uid)

    def list_admins(self) -> List[AdminProfile]:
        return self.profiles.list_by_role(Role.ADMIN)

    def super_admins(self) -> List[DirectoryUser]:
        return self.idp.list_users_with_role(Role.SYSADMIN)

    # --- Mutations -----------------------------------------------------------------

    def promote_to_admin(
        self, email: str, first_name: str, last_name: str, photo_url: str | None = None
    ) -> AdminProfile:
        """Make `email` an admin, creating the identity when it does not exist.

        Idempotent: repeating the call leaves one profile in the requested
        state. An identity that already holds `sysadmin` is refused rather
        than silently downgraded.
        """
        email = _normalize_email(email)
        first = _required(first_name, "first_name_required")
        last = _required(last_name, "last_name_required")
        photo = (photo_url or "").strip()

        hits = self.idp.find_users_by_email(email)
        if len(hits) > 1:
            raise NotFound("ambiguous_email")
        if hits:
            user = hits[0]
            if self.idp.get_role(user.uid) is Role.SYSADMIN:
                raise InvalidRequest("target_is_sysadmin")
        else:
            user = self.idp.create_user(
                email=email,
                password=secrets.token_urlsafe(24),
                first_name=first,
                last_name=last,
                photo_url=photo or None,
            )
            logger.info("Created identity for new admin uid=%s", user.uid[-6:])

        self.idp.set_role(user.uid, Role.ADMIN)
        profile = AdminProfile(
            uid=user.uid,
            email=email,
            first_name=first,
            last_name=last,
            photo_url=photo,
            role=Role.ADMIN,
            created_at=self._now_iso(),
        )
        try:
            stored = self.profiles.upsert(profile)
        except UpstreamError:
            logger.warning("Profile mirror write failed after role claim set uid=%s", user.uid[-6:])
            raise
        logger.info("Promoted uid=%s to admin", user.uid[-6:])
        return stored

    def demote_from_admin(self, uid: str) -> AdminProfile:
        """Reset the role claim to `user` and mirror it."""
        uid = _required(uid, "uid_required")
        user = self.idp.get_user(uid)
        if user is None:
            raise NotFound("identity_not_found")
        if self.idp.get_role(uid) is Role.SYSADMIN:
            raise InvalidRequest("target_is_sysadmin")

        self.idp.set_role(uid, Role.USER)
        try:
            if self.profiles.set_role(uid, Role.USER):
                stored = self.profiles.get(uid)
            else:
                stored = None
            if stored is None:
                # Keep a mirror row so the pair never disagrees after a demotion.
                stored = self.profiles.upsert(
                    AdminProfile(
                        uid=uid,
                        email=user.email,
                        first_name=user.first_name or humanize_identifier(user.email),
                        last_name=user.last_name,
                        photo_url="",
                        role=Role.USER,
                        created_at=self._now_iso(),
                    )
                )
        except UpstreamError:
            logger.warning("Profile mirror write failed after role claim reset uid=%s", uid[-6:])
            raise
        logger.info("Demoted uid=%s to user", uid[-6:])
        return stored

    def update_admin_profile(
        self, uid: str, first_name: str, last_name: str, photo_url: str | None = None
    ) -> AdminProfile:
        """Edit profile attributes only; the role claim is never touched."""
        uid = _required(uid, "uid_required")
        first = _required(first_name, "first_name_required")
        last = _required(last_name, "last_name_required")
        updated = self.profiles.update_attributes(
            uid, first_name=first, last_name=last, photo_url=(photo_url or "").strip()
        )
        if updated is None:
            raise NotFound("profile_not_found")
        return updated

    # --- Consistency sweep ---------------------------------------------------------

    def reconcile(self, *, dry_run: bool = False) -> ReconcileReport:
        """Rewrite mirrored roles from the identity provider.

        Mirror rows whose role disagrees with the identity provider are
        corrected; admins missing from the mirror get a row built from their
        directory entry.
        """
        report = ReconcileReport(dry_run=dry_run)
        admins = {u.uid: u for u in self.idp.list_users_with_role(Role.ADMIN)}
        sysadmins = {u.uid for u in self.idp.list_users_with_role(Role.SYSADMIN)}

        def authoritative(uid: str) -> Role:
            if uid in sysadmins:
                return Role.SYSADMIN
            if uid in admins:
                return Role.ADMIN
            return Role.USER

        seen = set()
        for row in self.profiles.list_all():
            seen.add(row.uid)
            report.checked += 1
            want = authoritative(row.uid)
            if row.role is not want:
                report.fixed.append((row.uid, row.role.value, want.value))
                if not dry_run:
                    self.profiles.set_role(row.uid, want)

        for uid, user in admins.items():
            if uid in seen:
                continue
            report.created.append(uid)
            if not dry_run:
                self.profiles.upsert(
                    AdminProfile(
                        uid=uid,
                        email=user.email,
                        first_name=user.first_name or humanize_identifier(user.email),
                        last_name=user.last_name,
                        photo_url="",
                        role=Role.ADMIN,
                        created_at=self._now_iso(),
                    )
                )
        if report.fixed or report.created:
            logger.warning(
                "Reconcile found drift fixed=%d created=%d dry_run=%s",
                len(report.fixed),
                len(report.created),
                dry_run,
            )
        return report
