"""
Login: create a session and the first refresh token of a new family.

Both rows are written in one transaction. If either insert fails nothing is
committed and no cookies are produced, so a failed login never leaves a
usable half-session behind.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

from flask import current_app

from models.user import User
from services.cookies import Cookie, issue_cookies
from services.errors import UnknownUser
from services.store import refresh_token_store, session_store, unit_of_work
from utils.security import issue_access_token, issue_family_id, issue_refresh_secret, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoginResult:
    user_id: str
    role: str
    access_token: str
    refresh_secret: str
    family: str
    cookies: List[Cookie]


def resolve_role(db, user_id: str) -> str:
    """Current role of user_id; users without one get DEFAULT_ROLE."""
    user = db.get(User, user_id)
    if user is None:
        raise UnknownUser()
    return user.role or current_app.config["DEFAULT_ROLE"]


def login(user_id: str) -> LoginResult:
    """Start a new session for an already-authenticated user."""
    now = utcnow()
    session_expires = now + current_app.config["SESSION_EXPIRES"]
    refresh_expires = now + current_app.config["REFRESH_TOKEN_EXPIRES"]
    family = issue_family_id()
    secret = issue_refresh_secret()

    with unit_of_work() as db:
        role = resolve_role(db, user_id)
        access_token = issue_access_token(user_id, role, family)
        session_store().create(user_id, access_token, family, session_expires)
        refresh_token_store().create(user_id, secret, family, refresh_expires)

    logger.info("login user=%s family=%s", user_id, family)
    return LoginResult(
        user_id=user_id,
        role=role,
        access_token=access_token,
        refresh_secret=secret,
        family=family,
        cookies=issue_cookies(access_token, session_expires, secret, refresh_expires),
    )
