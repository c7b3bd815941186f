"""Bulk invalidation of sessions and refresh tokens."""
from __future__ import annotations

import logging
from typing import List, Optional

from services.cookies import Cookie, clear_cookies
from services.store import refresh_token_store, session_store, store_guard, unit_of_work
from utils.security import TokenError, decode_access_token, utcnow

logger = logging.getLogger(__name__)


class RevocationManager:
    def __init__(self, sessions=None, refresh_tokens=None):
        self.sessions = sessions or session_store()
        self.refresh_tokens = refresh_tokens or refresh_token_store()

    def revoke_family(self, family: str) -> int:
        """Revoke the active token of one lineage. Other families are untouched."""
        with unit_of_work():
            count = self.refresh_tokens.revoke_family(family, utcnow())
        logger.info("revoked family=%s tokens=%d", family, count)
        return count

    def revoke_all_for_user(self, user_id: str) -> None:
        """Drop every session and every active refresh token of the user, across all families."""
        now = utcnow()
        with unit_of_work():
            sessions = self.sessions.delete_for_user(user_id)
            tokens = self.refresh_tokens.revoke_all_for_user(user_id, now)
        logger.info("revoked all for user=%s sessions=%d tokens=%d", user_id, sessions, tokens)

    def contain_reuse(self, user_id: str, family: str) -> None:
        """
        Theft response: stamp every row of the family, already revoked ones
        included, and delete all of the user's sessions.
        """
        now = utcnow()
        with unit_of_work():
            tokens = self.refresh_tokens.revoke_family(family, now, include_revoked=True)
            sessions = self.sessions.delete_for_user(user_id)
        logger.warning(
            "refresh token reuse detected user=%s family=%s tokens_revoked=%d sessions_deleted=%d",
            user_id, family, tokens, sessions,
        )

    def logout(self, access_token: Optional[str] = None, refresh_secret: Optional[str] = None) -> List[Cookie]:
        """
        End the current login: delete the user's sessions and revoke the
        presented refresh token's family. Unknown or invalid cookies are
        ignored; the cleared cookies are always returned.
        """
        user_id = None
        family = None
        with store_guard():
            row = self.refresh_tokens.find_by_secret(refresh_secret) if refresh_secret else None
            if row is not None:
                user_id, family = row.user_id, row.family
            elif access_token:
                session = self.sessions.find_by_token(access_token)
                if session is not None:
                    user_id, family = session.user_id, session.family
                else:
                    # Row already replaced by a rotation or deleted: the token names its own family.
                    try:
                        claims = decode_access_token(access_token, allow_expired=True)
                    except TokenError:
                        claims = {}
                    user_id, family = claims.get("user_id"), claims.get("family")

        if user_id is not None:
            now = utcnow()
            with unit_of_work():
                self.sessions.delete_for_user(user_id)
                if family is not None:
                    self.refresh_tokens.revoke_family(family, now)
            logger.info("logout user=%s family=%s", user_id, family)
        return clear_cookies()
