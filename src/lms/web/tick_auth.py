"""Trigger authentication for the tick endpoint."""

from __future__ import annotations

import hmac
from typing import Optional


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    parts = authorization.strip().split(None, 1)
    if len(parts) != 2:
        return None
    scheme, token = parts
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _matches(candidate: Optional[str], secret: str) -> bool:
    if not candidate:
        return False
    return hmac.compare_digest(candidate.encode("utf-8"), secret.encode("utf-8"))


def is_authorized(
    secret: Optional[str],
    authorization: Optional[str] = None,
    query_key: Optional[str] = None,
) -> bool:
    """
    True when either the bearer token or the ``key`` query parameter
    matches the pre-shared secret. An unset secret authorizes nothing.
    """
    if not secret:
        return False
    return _matches(bearer_token(authorization), secret) or _matches(query_key, secret)
