"""Resolve the caller's identity from the access-token cookie.

Two independent checks must both pass:
- the token itself: signature, embedded expiry and type == "access";
- the session row: it still exists for that exact token, belongs to the same
  user and has not outlived its own expiry.

Deleting the row (logout, password change, theft response) therefore kills a
token that would still verify cryptographically.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from services.store import session_store, store_guard
from utils.security import TokenError, as_naive_utc, decode_access_token, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: str


def resolve_identity(access_token: Optional[str]) -> Optional[Identity]:
    """Identity for a session cookie value, or None. Missing or invalid input is not an error."""
    if not access_token:
        return None
    try:
        claims = decode_access_token(access_token)
    except TokenError as exc:
        logger.debug("access token rejected: %s", exc)
        return None

    with store_guard():
        session = session_store().find_by_token(access_token)
    if session is None:
        return None
    if as_naive_utc(session.expires_at) < utcnow():
        return None
    if session.user_id != claims["user_id"]:
        logger.warning("session row user mismatch for user=%s", session.user_id)
        return None
    return Identity(user_id=claims["user_id"], role=claims["role"])
