"""
Error taxonomy shared by the identity and staff contexts.

Every error carries a stable machine-readable `kind` (rendered as the `error`
field of the JSON body), a `code` with the specific reason (rendered as
`detail`) and the HTTP status the web adapter answers with.
"""
from __future__ import annotations


class AccessError(Exception):
    """Base class; raised by domain code and rendered by the web adapter."""

    kind = "upstream_error"
    status_code = 500

    def __init__(self, code: str | None = None):
        code = code or self.kind
        super().__init__(code)
        self.code = code


class Unauthenticated(AccessError):
    """No credential or an invalid one."""

    kind = "unauthenticated"
    status_code = 401


class Forbidden(AccessError):
    """Valid credential, insufficient role."""

    kind = "forbidden"
    status_code = 403


class InvalidRequest(AccessError):
    kind = "bad_request"
    status_code = 400


class NotFound(AccessError):
    kind = "not_found"
    status_code = 404


class UpstreamError(AccessError):
    """Identity provider or record store failed."""

    kind = "upstream_error"
    status_code = 500


class UpstreamTimeout(UpstreamError):
    kind = "upstream_timeout"
    status_code = 504


__all__ = [
    "AccessError",
    "Unauthenticated",
    "Forbidden",
    "InvalidRequest",
    "NotFound",
    "UpstreamError",
    "UpstreamTimeout",
]
