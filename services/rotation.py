"""
Refresh-token rotation with reuse detection.

Evaluated in order for a presented secret:

1. unknown secret                          -> InvalidToken
2. already revoked (replay of a rotated or
   revoked token)                          -> contain the family, ReuseDetected
3. past expires_at                         -> Expired
4. compare-and-swap revoked_at NULL -> now on the row. Losing the swap means
   another request rotated the same secret since step 1; that is handled
   exactly like step 2. Winning it issues a new access token and a new
   secret in the same family, inserts the new row and overwrites the
   family's session row, all in the same transaction.

A client whose connection drops after step 4 commits will retry with the old
secret and land in step 2. That race is treated as theft on purpose.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

from flask import current_app

from services.cookies import Cookie, issue_cookies
from services.errors import Expired, InvalidToken, ReuseDetected
from services.revocation import RevocationManager
from services.sessions import resolve_role
from services.store import refresh_token_store, session_store, store_guard, unit_of_work
from utils.security import as_naive_utc, issue_access_token, issue_refresh_secret, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RotationResult:
    user_id: str
    role: str
    family: str
    access_token: str
    refresh_secret: str
    cookies: List[Cookie]


class RotationEngine:
    def __init__(self, sessions=None, refresh_tokens=None, revocation=None):
        self.sessions = sessions or session_store()
        self.refresh_tokens = refresh_tokens or refresh_token_store()
        self.revocation = revocation or RevocationManager(self.sessions, self.refresh_tokens)

    def rotate(self, secret: str) -> RotationResult:
        now = utcnow()
        with store_guard():
            row = self.refresh_tokens.find_by_secret(secret)
        if row is None:
            raise InvalidToken()

        user_id, family, token_id = row.user_id, row.family, row.id
        if row.revoked_at is not None:
            self._reuse(user_id, family)
        if as_naive_utc(row.expires_at) < now:
            raise Expired()

        session_expires = now + current_app.config["SESSION_EXPIRES"]
        refresh_expires = now + current_app.config["REFRESH_TOKEN_EXPIRES"]
        new_secret = issue_refresh_secret()
        with unit_of_work() as db:
            swapped = self.refresh_tokens.revoke_if_active(token_id, now)
            if swapped:
                role = resolve_role(db, user_id)
                access_token = issue_access_token(user_id, role, family)
                self.refresh_tokens.create(user_id, new_secret, family, refresh_expires)
                self.sessions.replace_for_family(user_id, family, access_token, session_expires)
        if not swapped:
            # Lost the race: someone else rotated this secret after our lookup.
            self._reuse(user_id, family)

        logger.info("rotated refresh token user=%s family=%s", user_id, family)
        return RotationResult(
            user_id=user_id,
            role=role,
            family=family,
            access_token=access_token,
            refresh_secret=new_secret,
            cookies=issue_cookies(access_token, session_expires, new_secret, refresh_expires),
        )

    def _reuse(self, user_id: str, family: str):
        self.revocation.contain_reuse(user_id, family)
        raise ReuseDetected(user_id, family)


def rotate(secret: str) -> RotationResult:
    return RotationEngine().rotate(secret)
