"""
Short-lived psycopg connections with bounded timeouts and error mapping.

Design:
- Each repository call opens its own connection (no pool, no shared state).
- Driver errors are translated into the shared taxonomy so the web adapter
  answers 500/504 instead of leaking driver details.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator
import logging

try:
    import psycopg
    HAVE_PSYCOPG = True
except Exception:  # pragma: no cover - optional in some dev envs
    psycopg = None  # type: ignore
    HAVE_PSYCOPG = False

from backend.identity_access.errors import UpstreamError, UpstreamTimeout
from backend.storage.config import get_connect_timeout_seconds, get_statement_timeout_ms

logger = logging.getLogger("staffdesk.storage")


def require_psycopg(owner: str) -> None:
    if not HAVE_PSYCOPG:
        raise RuntimeError(f"psycopg3 is required for {owner}")


@contextmanager
def connect(dsn: str, *, op: str) -> Iterator["psycopg.Connection"]:  # type: ignore[name-defined]
    """Yield a connection and map driver errors to the shared taxonomy.

    Callers commit their own writes. Leaving the block closes the connection;
    psycopg commits a clean exit and rolls back when an exception escapes.
    """
    try:
        with psycopg.connect(  # type: ignore[union-attr]
            dsn,
            connect_timeout=get_connect_timeout_seconds(),
            options=f"-c statement_timeout={get_statement_timeout_ms()}",
        ) as conn:
            yield conn
    except psycopg.errors.QueryCanceled as exc:  # type: ignore[union-attr]
        logger.warning("Record store timeout op=%s", op)
        raise UpstreamTimeout(f"store_{op}_timeout") from exc
    except psycopg.Error as exc:  # type: ignore[union-attr]
        if "timeout" in str(exc).lower():
            logger.warning("Record store timeout op=%s", op)
            raise UpstreamTimeout(f"store_{op}_timeout") from exc
        logger.warning("Record store failure op=%s err=%s", op, exc.__class__.__name__)
        raise UpstreamError(f"store_{op}_failed") from exc
