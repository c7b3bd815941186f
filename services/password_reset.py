"""
Password reset by single-use link, for users who cannot log in.

request_reset() replaces any outstanding token of the user with a fresh one.
Delivering it (email) is the caller's job. reset_password() consumes the
token and, in one transaction, sets the new hash, stamps used_at, deletes
every session and revokes every active refresh token of the user.
"""
from __future__ import annotations

import logging
from typing import Optional

from flask import current_app
from sqlalchemy import select

from models.password_reset_token import PasswordResetToken
from models.user import User
from services.errors import ResetTokenExpired, ResetTokenInvalid, ResetTokenUsed, UnknownUser
from services.store import refresh_token_store, reset_token_store, session_store, store_guard, unit_of_work
from utils.security import as_naive_utc, hash_password, issue_reset_token, utcnow

logger = logging.getLogger(__name__)


def request_reset(email: str) -> Optional[str]:
    """
    New reset token for the account behind email, or None when there is none.
    Callers answer both cases the same way so accounts cannot be enumerated.
    """
    tokens = reset_token_store()
    with unit_of_work() as db:
        user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
        if user is None:
            token = None
        else:
            tokens.delete_for_user(user.id)
            token = issue_reset_token()
            tokens.create(user.id, token, utcnow() + current_app.config["PASSWORD_RESET_EXPIRES"])

    if token is None:
        logger.info("password reset requested for unknown email")
    else:
        logger.info("password reset requested user=%s", user.id)
    return token


def _usable(row: Optional[PasswordResetToken]) -> PasswordResetToken:
    if row is None:
        raise ResetTokenInvalid()
    if as_naive_utc(row.expires_at) < utcnow():
        raise ResetTokenExpired()
    if row.used_at is not None:
        raise ResetTokenUsed()
    return row


def validate_reset_token(token: str) -> None:
    """Raise the matching ResetTokenInvalid subclass unless token can still reset a password."""
    with store_guard():
        _usable(reset_token_store().find_by_token(token))


def reset_password(token: str, new_password: str) -> str:
    """Consume token and set new_password. Returns the user id."""
    tokens = reset_token_store()
    with store_guard():
        row = tokens.find_by_token(token)
    try:
        row = _usable(row)
    except ResetTokenExpired:
        with unit_of_work():
            tokens.delete(row.id)
        raise

    password_hash = hash_password(new_password)
    now = utcnow()
    with unit_of_work() as db:
        # Two submissions of one link: only the first stamps used_at.
        if not tokens.mark_used_if_unused(row.id, now):
            raise ResetTokenUsed()
        user = db.get(User, row.user_id)
        if user is None:
            raise UnknownUser()
        user.password_hash = password_hash
        sessions = session_store().delete_for_user(user.id)
        revoked = refresh_token_store().revoke_all_for_user(user.id, now)

    logger.info("password reset user=%s sessions=%d tokens=%d", row.user_id, sessions, revoked)
    return row.user_id
