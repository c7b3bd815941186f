from datetime import timedelta

import pytest
from freezegun import freeze_time

from models import storage
from models.refresh_token import RefreshToken
from models.session import Session
from models.stores import RefreshTokenStore
from services import UnknownUser, login
from services.cookies import Cookie
from tests.conftest import make_user
from utils.security import decode_access_token


def test_login_creates_one_session_and_one_active_token_in_a_new_family(user):
    result = login(user.id)

    tokens = RefreshTokenStore(storage)
    active = tokens.active_in_family(result.family)
    assert len(active) == 1
    assert active[0].user_id == user.id
    assert tokens.find_by_secret(result.refresh_secret).id == active[0].id

    sessions = storage.get_session().query(Session).filter(Session.user_id == user.id).all()
    assert len(sessions) == 1
    assert sessions[0].token == result.access_token
    assert decode_access_token(sessions[0].token)["user_id"] == user.id


def test_each_login_starts_a_new_family(user):
    first = login(user.id)
    second = login(user.id)
    assert first.family != second.family
    assert first.refresh_secret != second.refresh_secret


def test_login_expiries(user):
    with freeze_time("2026-03-01 08:00:00"):
        result = login(user.id)
        claims = decode_access_token(result.access_token)
    assert claims["exp"] - claims["iat"] == 15 * 60

    row = RefreshTokenStore(storage).find_by_secret(result.refresh_secret)
    assert row.expires_at.replace(tzinfo=None).isoformat() == "2026-03-08T08:00:00"
    session = storage.get_session().query(Session).one()
    assert session.expires_at.replace(tzinfo=None).isoformat() == "2026-03-08T08:00:00"


def test_login_cookies(user):
    result = login(user.id)
    session_cookie, refresh_cookie = result.cookies
    assert isinstance(session_cookie, Cookie)

    assert session_cookie.key == "session"
    assert session_cookie.value == result.access_token
    assert session_cookie.path == "/"
    assert session_cookie.samesite == "Lax"
    assert session_cookie.httponly is True

    assert refresh_cookie.key == "refresh_token"
    assert refresh_cookie.value == result.refresh_secret
    assert refresh_cookie.path == "/api/v1/auth/refresh"
    assert refresh_cookie.samesite == "Strict"
    assert refresh_cookie.httponly is True
    assert refresh_cookie.expires - session_cookie.expires < timedelta(seconds=1)


def test_cookies_are_secure_when_configured(user, ctx):
    ctx.config["COOKIE_SECURE"] = True
    assert all(c.secure for c in login(user.id).cookies)


def test_role_falls_back_to_default(ctx):
    roleless = make_user("norole@example.com", role=None)
    assert login(roleless.id).role == "patient"


def test_unknown_user_persists_nothing(ctx):
    with pytest.raises(UnknownUser):
        login("no-such-user")
    assert storage.count(Session) == 0
    assert storage.count(RefreshToken) == 0


def test_failed_refresh_insert_leaves_no_half_session(user, monkeypatch):
    def broken_create(self, *args, **kwargs):
        raise RuntimeError("insert failed")

    monkeypatch.setattr(RefreshTokenStore, "create", broken_create)
    with pytest.raises(RuntimeError):
        login(user.id)
    assert storage.count(Session) == 0
    assert storage.count(RefreshToken) == 0
