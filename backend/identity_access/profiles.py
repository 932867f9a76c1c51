"""
Admin profile mirror: types, store protocol and the in-memory store.

Why:
    The identity provider is the source of truth for role claims. The profile
    store mirrors the claim next to the profile attributes (names, photo) so
    the admin list can be served without scanning the identity provider.

The in-memory store serves tests and offline development; `profiles_db`
provides the Postgres-backed variant with the same protocol.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Protocol

from .domain import Role


@dataclass(frozen=True)
class AdminProfile:
    uid: str
    email: str
    first_name: str
    last_name: str
    photo_url: str
    role: Role
    created_at: str

    def to_json(self) -> dict:
        return {
            "uid": self.uid,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "photoURL": self.photo_url,
            "role": self.role.value,
            "createdAt": self.created_at,
        }


class ProfileStoreProtocol(Protocol):
    def get(self, uid: str) -> Optional[AdminProfile]:
        ...

    def upsert(self, profile: AdminProfile) -> AdminProfile:
        ...

    def update_attributes(self, uid: str, *, first_name: str, last_name: str, photo_url: str) -> Optional[AdminProfile]:
        ...

    def set_role(self, uid: str, role: Role) -> bool:
        ...

    def list_by_role(self, role: Role) -> List[AdminProfile]:
        ...

    def list_all(self) -> List[AdminProfile]:
        ...


class MemoryProfileStore:
    def __init__(self) -> None:
        self._rows: Dict[str, AdminProfile] = {}

    def get(self, uid: str) -> Optional[AdminProfile]:
        return self._rows.get(uid)

    def upsert(self, profile: AdminProfile) -> AdminProfile:
        existing = self._rows.get(profile.uid)
        if existing is not None:
            # keyed by uid; the first creation timestamp survives re-promotion
            profile = replace(profile, created_at=existing.created_at)
        self._rows[profile.uid] = profile
        return profile

    def update_attributes(self, uid: str, *, first_name: str, last_name: str, photo_url: str) -> Optional[AdminProfile]:
        row = self._rows.get(uid)
        if row is None:
            return None
        row = replace(row, first_name=first_name, last_name=last_name, photo_url=photo_url)
        self._rows[uid] = row
        return row

    def set_role(self, uid: str, role: Role) -> bool:
        row = self._rows.get(uid)
        if row is None:
            return False
        self._rows[uid] = replace(row, role=role)
        return True

    def list_by_role(self, role: Role) -> List[AdminProfile]:
        return [p for p in self._rows.values() if p.role is role]

    def list_all(self) -> List[AdminProfile]:
        return list(self._rows.values())
