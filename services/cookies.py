"""Outgoing cookie values.

Operations return these instead of writing to a response, so the HTTP layer
(or a test) decides where they go.
"""
from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import List

from flask import current_app

EPOCH = datetime(1970, 1, 1)


@dataclass(frozen=True)
class Cookie:
    key: str
    value: str
    expires: datetime
    path: str
    samesite: str
    httponly: bool = True
    secure: bool = False

    def as_kwargs(self) -> dict:
        """Keyword arguments for flask.Response.set_cookie."""
        return asdict(self)


def session_cookie(access_token: str, expires_at: datetime) -> Cookie:
    return Cookie(
        key=current_app.config["SESSION_COOKIE"],
        value=access_token,
        expires=expires_at,
        path="/",
        samesite="Lax",
        secure=current_app.config["COOKIE_SECURE"],
    )


def refresh_cookie(secret: str, expires_at: datetime) -> Cookie:
    return Cookie(
        key=current_app.config["REFRESH_COOKIE"],
        value=secret,
        expires=expires_at,
        path=current_app.config["REFRESH_COOKIE_PATH"],
        samesite="Strict",
        secure=current_app.config["COOKIE_SECURE"],
    )


def issue_cookies(access_token: str, session_expires: datetime, secret: str, refresh_expires: datetime) -> List[Cookie]:
    return [session_cookie(access_token, session_expires), refresh_cookie(secret, refresh_expires)]


def clear_cookies() -> List[Cookie]:
    """Empty, already-expired versions of both cookies, on the same paths."""
    return [session_cookie("", EPOCH), refresh_cookie("", EPOCH)]
