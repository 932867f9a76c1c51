"""
Identity domain constants and simple helpers.

Why:
- Centralize the role enumeration so no module compares role strings ad hoc.
- Keep terms aligned with the glossary (role claim, admin profile).
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable


class Role(str, Enum):
    """Privilege level attached to an identity, strictly ordered."""

    USER = "user"
    ADMIN = "admin"
    SYSADMIN = "sysadmin"

    @property
    def rank(self) -> int:
        return _RANK[self]

    def at_least(self, other: "Role") -> bool:
        return self.rank >= other.rank

    @classmethod
    def parse(cls, value: object) -> "Role":
        """Map any claim value onto the enumeration; unknown/missing is `user`."""
        if isinstance(value, Role):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                return cls.USER
        return cls.USER

    @classmethod
    def highest(cls, values: Iterable[object]) -> "Role":
        """Pick the strongest managed role out of a list of realm roles."""
        best = cls.USER
        for v in values or ():
            r = cls.parse(v)
            if r.rank > best.rank:
                best = r
        return best


_RANK = {Role.USER: 0, Role.ADMIN: 1, Role.SYSADMIN: 2}

# Roles that exist as realm roles in the identity provider. `user` is the
# absence of both.
MANAGED_ROLES = frozenset({Role.ADMIN, Role.SYSADMIN})
ALLOWED_ROLES = frozenset(r.value for r in Role)

__all__ = ["Role", "MANAGED_ROLES", "ALLOWED_ROLES"]
