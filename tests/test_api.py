"""HTTP-level tests: cookies in, cookies out."""
from datetime import timedelta

import pytest
from freezegun import freeze_time
from sqlalchemy.exc import OperationalError

from api import create_app
from models.stores import RefreshTokenStore
from utils.decorators import roles_required

REFRESH_PATH = "/api/v1/auth/refresh"
PASSWORD = "correct horse battery"


def _register(client, email="carol@example.com", password=PASSWORD):
    response = client.post("/api/v1/auth/register", json={"email": email, "password": password})
    assert response.status_code == 201
    return response.get_json()["data"]


def _login(client, email="carol@example.com", password=PASSWORD):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password})


def _set_cookie_headers(response):
    return {header.split("=", 1)[0]: header for header in response.headers.getlist("Set-Cookie")}


def _refresh_secret(client):
    cookie = client.get_cookie("refresh_token", path=REFRESH_PATH)
    return cookie.value if cookie else None


def test_health(client):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.get_json()["status"] == "ok"


def test_register_rejects_duplicates_and_short_passwords(client):
    _register(client)
    assert client.post("/api/v1/auth/register", json={"email": "carol@example.com", "password": PASSWORD}).status_code == 409
    response = client.post("/api/v1/auth/register", json={"email": "dave@example.com", "password": "short"})
    assert response.status_code == 422
    assert response.get_json()["error"] == "VALIDATION_ERROR"


def test_login_sets_two_differently_scoped_cookies(client):
    _register(client)
    response = _login(client)
    assert response.status_code == 200
    assert response.get_json()["data"]["email"] == "carol@example.com"

    headers = _set_cookie_headers(response)
    session_header = headers["session"]
    assert "HttpOnly" in session_header
    assert "SameSite=Lax" in session_header
    assert "Path=/;" in session_header or session_header.endswith("Path=/")

    refresh_header = headers["refresh_token"]
    assert "HttpOnly" in refresh_header
    assert "SameSite=Strict" in refresh_header
    assert f"Path={REFRESH_PATH}" in refresh_header
    assert "Secure" not in refresh_header


def test_login_with_wrong_password(client):
    _register(client)
    response = _login(client, password="not the password")
    assert response.status_code == 401
    assert "Set-Cookie" not in response.headers


def test_me_requires_the_session_cookie(client):
    assert client.get("/api/v1/auth/me").status_code == 401
    user = _register(client)
    _login(client)
    response = client.get("/api/v1/auth/me")
    assert response.status_code == 200
    assert response.get_json()["data"] == {"user_id": user["id"], "role": "patient"}


def test_refresh_rotates_the_cookie_pair(client):
    _register(client)
    _login(client)
    old_secret = _refresh_secret(client)
    old_access = client.get_cookie("session").value

    response = client.post(REFRESH_PATH)
    assert response.status_code == 200
    assert _refresh_secret(client) != old_secret
    assert client.get_cookie("session").value != old_access
    assert client.get("/api/v1/auth/me").status_code == 200


def test_refresh_without_cookie(client):
    assert client.post(REFRESH_PATH).status_code == 401


def test_replayed_refresh_token_forces_relogin(client, app):
    _register(client)
    _login(client)
    stolen = _refresh_secret(client)
    assert client.post(REFRESH_PATH).status_code == 200

    attacker = app.test_client()
    attacker.set_cookie("refresh_token", stolen, path=REFRESH_PATH)
    response = attacker.post(REFRESH_PATH)
    assert response.status_code == 401
    body = response.get_json()
    assert body["error"] == "SESSION_INVALID"

    # legitimate client: session gone, refresh token revoked
    assert client.get("/api/v1/auth/me").status_code == 401
    response = client.post(REFRESH_PATH)
    assert response.status_code == 401
    assert response.get_json() == body


def test_token_failures_all_look_the_same(client, app):
    unknown = app.test_client()
    unknown.set_cookie("refresh_token", "f" * 64, path=REFRESH_PATH)
    response = unknown.post(REFRESH_PATH)
    assert response.status_code == 401
    assert response.get_json()["error"] == "SESSION_INVALID"
    headers = _set_cookie_headers(response)
    assert headers["session"].startswith("session=;")
    assert headers["refresh_token"].startswith("refresh_token=;")


def test_logout_ends_the_session(client, app):
    _register(client)
    _login(client)
    secret = _refresh_secret(client)

    response = client.post("/api/v1/auth/logout")
    assert response.status_code == 204
    assert client.get_cookie("session") is None
    assert client.get("/api/v1/auth/me").status_code == 401

    late = app.test_client()
    late.set_cookie("refresh_token", secret, path=REFRESH_PATH)
    assert late.post(REFRESH_PATH).status_code == 401


def test_logout_without_cookies(client):
    assert client.post("/api/v1/auth/logout").status_code == 204


def test_password_change_signs_out_every_device(client, app):
    _register(client)
    _login(client)
    laptop = app.test_client()
    _login(laptop)

    response = client.post(
        "/api/v1/auth/password",
        json={"current_password": PASSWORD, "new_password": "a brand new password"},
    )
    assert response.status_code == 204

    assert laptop.get("/api/v1/auth/me").status_code == 401
    assert laptop.post(REFRESH_PATH).status_code == 401
    assert _login(client).status_code == 401
    assert _login(client, password="a brand new password").status_code == 200


def test_password_change_checks_the_current_password(client):
    _register(client)
    _login(client)
    response = client.post(
        "/api/v1/auth/password",
        json={"current_password": "wrong", "new_password": "a brand new password"},
    )
    assert response.status_code == 401
    assert client.get("/api/v1/auth/me").status_code == 200


def test_store_outage_is_a_retryable_503(client, monkeypatch):
    _register(client)
    _login(client)

    def unreachable(self, secret):
        raise OperationalError("SELECT", {}, Exception("connection refused"))

    monkeypatch.setattr(RefreshTokenStore, "find_by_secret", unreachable)
    response = client.post(REFRESH_PATH)
    assert response.status_code == 503
    assert response.headers["Retry-After"] == "1"
    assert response.get_json()["error"] == "STORE_UNAVAILABLE"
    # cookies are kept so the client can simply retry
    assert "Set-Cookie" not in response.headers
    monkeypatch.undo()

    assert client.post(REFRESH_PATH).status_code == 200


def test_roles_required_uses_the_resolved_identity(app):
    @app.get("/api/v1/admin-only")
    @roles_required(["admin"])
    def admin_only():
        return {"ok": True}

    client = app.test_client()
    _register(client)
    assert client.get("/api/v1/admin-only").status_code == 401
    _login(client)
    response = client.get("/api/v1/admin-only")
    assert response.status_code == 403
    assert response.get_json()["error"] == "FORBIDDEN"


def test_auth_routes_live_under_the_refresh_cookie_path(app):
    rules = {rule.rule for rule in app.url_map.iter_rules()}
    assert app.config["REFRESH_COOKIE_PATH"] == REFRESH_PATH
    assert REFRESH_PATH in rules
    assert {"/api/v1/auth/login", "/api/v1/auth/logout", "/api/v1/auth/me"} <= rules
    assert "/api/v1/refresh" not in rules


def test_logout_revokes_the_refresh_token_it_never_sees(client, app):
    _register(client)
    _login(client)
    secret = _refresh_secret(client)
    # the session cookie is all logout receives; the refresh cookie stays on its path
    assert client.post(REFRESH_PATH).status_code == 200
    rotated = _refresh_secret(client)

    assert client.post("/api/v1/auth/logout").status_code == 204

    for stale in (secret, rotated):
        other = app.test_client()
        other.set_cookie("refresh_token", stale, path=REFRESH_PATH)
        assert other.post(REFRESH_PATH).status_code == 401


def test_password_reset_over_http(client, app, monkeypatch):
    _register(client)
    _login(client)
    monkeypatch.setattr("services.password_reset.issue_reset_token", lambda: "reset-token-1")

    response = client.post("/api/v1/auth/forgot-password", json={"email": "Carol@Example.com"})
    assert response.status_code == 200
    unknown = client.post("/api/v1/auth/forgot-password", json={"email": "nobody@example.com"})
    assert unknown.get_json() == response.get_json()

    check = client.get("/api/v1/auth/reset-password", query_string={"token": "reset-token-1"})
    assert check.get_json()["data"] == {"valid": True}

    response = client.post(
        "/api/v1/auth/reset-password",
        json={"token": "reset-token-1", "password": "a brand new password"},
    )
    assert response.status_code == 200
    assert client.get("/api/v1/auth/me").status_code == 401
    assert client.post(REFRESH_PATH).status_code == 401
    assert _login(client).status_code == 401
    assert _login(client, password="a brand new password").status_code == 200

    check = client.get("/api/v1/auth/reset-password", query_string={"token": "reset-token-1"})
    assert check.get_json()["data"]["valid"] is False
    assert check.get_json()["data"]["error"] == "RESET_TOKEN_USED"
    again = client.post(
        "/api/v1/auth/reset-password",
        json={"token": "reset-token-1", "password": "one more password"},
    )
    assert again.status_code == 400
    assert again.get_json()["error"] == "RESET_TOKEN_USED"


def test_reset_with_unknown_or_missing_token(client):
    response = client.post(
        "/api/v1/auth/reset-password",
        json={"token": "no-such-token", "password": "a brand new password"},
    )
    assert response.status_code == 400
    assert response.get_json()["error"] == "RESET_TOKEN_INVALID"

    check = client.get("/api/v1/auth/reset-password", query_string={"token": "no-such-token"})
    assert check.status_code == 200
    assert check.get_json()["data"]["valid"] is False
    assert client.get("/api/v1/auth/reset-password").status_code == 400


def test_reset_with_expired_token(client, monkeypatch):
    _register(client)
    monkeypatch.setattr("services.password_reset.issue_reset_token", lambda: "reset-token-2")
    with freeze_time("2026-01-01 12:00:00") as frozen:
        client.post("/api/v1/auth/forgot-password", json={"email": "carol@example.com"})
        frozen.tick(timedelta(hours=2))
        response = client.post(
            "/api/v1/auth/reset-password",
            json={"token": "reset-token-2", "password": "a brand new password"},
        )
    assert response.status_code == 400
    assert response.get_json()["error"] == "RESET_TOKEN_EXPIRED"
    assert _login(client).status_code == 200


def test_roles_required_rejects_roles_outside_the_allowed_list(app):
    @app.get("/api/v1/superuser-only")
    @roles_required(["superuser"])
    def superuser_only():
        return {"ok": True}

    client = app.test_client()
    _register(client)
    _login(client)
    response = client.get("/api/v1/superuser-only")
    assert response.status_code == 500
    assert response.get_json()["error"] == "INTERNAL_ERROR"


def test_default_role_must_be_allowed(tmp_path):
    with pytest.raises(RuntimeError, match="DEFAULT_ROLE"):
        create_app("testing", DATABASE_URL=f"sqlite:///{tmp_path / 'roles.db'}", DEFAULT_ROLE="superuser")
