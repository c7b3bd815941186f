"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login     -> sets `session` + `refresh_token` cookies
- POST /auth/refresh   -> rotates the refresh token, sets a new pair
- POST /auth/logout    -> ends the login, clears both cookies
- GET  /auth/me        -> identity resolved from the `session` cookie
- POST /auth/password  -> change password, revokes every session of the user
- POST /auth/forgot-password -> issue a single-use reset token (delivery is external)
- GET  /auth/reset-password  -> is this reset token still usable?
- POST /auth/reset-password  -> set a new password with the token, revokes every session

The handlers only move cookie values in and out; the token lifecycle lives in services/.
"""
from __future__ import annotations

import logging
from flask import Blueprint, request, jsonify, g, abort, current_app, make_response

from models import storage
from models.user import User
from models.schemas.user import (
    UserCreateSchema,
    UserOutSchema,
    UserLoginSchema,
    PasswordChangeSchema,
    IdentityOutSchema,
    ForgotPasswordSchema,
    ResetPasswordSchema,
)
from services import (
    RevocationManager,
    ResetTokenInvalid,
    login as start_session,
    request_reset,
    reset_password,
    rotate,
    validate_reset_token,
)
from services.cookies import clear_cookies
from services.store import store_guard
from utils.decorators import login_required
from utils.security import hash_password, verify_password

logger = logging.getLogger(__name__)

bp = Blueprint("auth", __name__)

user_create_schema = UserCreateSchema()
user_out_schema = UserOutSchema()
user_login_schema = UserLoginSchema()
password_change_schema = PasswordChangeSchema()
identity_out_schema = IdentityOutSchema()
forgot_password_schema = ForgotPasswordSchema()
reset_password_schema = ResetPasswordSchema()

RESET_REQUESTED_MESSAGE = "If an account exists with this email, a password reset link is on its way"


def _with_cookies(response, cookies):
    for cookie in cookies:
        response.set_cookie(**cookie.as_kwargs())
    return response


@bp.post("/register")
def register():
    """
    register a new user.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            email: { type: string }
            password: { type: string }
            f_name: { type: string }
            l_name: { type: string }
    responses:
      201:
        description: Created
      409:
        description: Email already registered
      422:
        description: Validation error
    """
    payload = request.get_json(silent=True) or {}
    data = user_create_schema.load(payload)

    session = storage.get_session()
    with store_guard():
        if session.query(User).filter(User.email == data["email"]).first():
            abort(409, description="Email already registered")

        user = User(
            email=data["email"],
            password_hash=hash_password(data["password"]),
            f_name=data.get("f_name"),
            l_name=data.get("l_name"),
            role=current_app.config["DEFAULT_ROLE"],
        )
        user.save()

    return jsonify({"data": user_out_schema.dump(user)}), 201


@bp.post("/login")
def login():
    """
    Login: verify credentials and set the session and refresh cookies
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (cookies set)
      401:
        description: Invalid credentials
      503:
        description: Session store unavailable
    """
    payload = request.get_json(silent=True) or {}
    data = user_login_schema.load(payload)

    session = storage.get_session()
    with store_guard():
        user = session.query(User).filter(User.email == data["email"]).first()
    if not user or not verify_password(data["password"], user.password_hash):
        logger.warning("login rejected for email=%s", data["email"])
        abort(401, description="Invalid credentials")

    result = start_session(user.id)
    response = make_response(jsonify({"data": user_out_schema.dump(user)}), 200)
    return _with_cookies(response, result.cookies)


@bp.post("/refresh")
def refresh():
    """
    Rotate the refresh token from the refresh cookie; a new pair is set as cookies.
    Any token failure clears both cookies and answers 401 with the same message.
    ---
    tags:
      - Auth
    responses:
      200:
        description: OK (new cookies set)
      401:
        description: Session no longer valid, log in again
      503:
        description: Session store unavailable, retry
    """
    secret = request.cookies.get(current_app.config["REFRESH_COOKIE"])
    if not secret:
        abort(401, description="No refresh token provided")

    result = rotate(secret)
    response = make_response(
        jsonify({"data": identity_out_schema.dump({"user_id": result.user_id, "role": result.role})}),
        200,
    )
    return _with_cookies(response, result.cookies)


@bp.post("/logout")
def logout():
    """
    logout: ends the session and revokes the presented refresh-token family
    ---
    tags:
      - Auth
    responses:
      204:
        description: Logged out (cookies cleared)
    """
    cookies = RevocationManager().logout(
        access_token=request.cookies.get(current_app.config["SESSION_COOKIE"]),
        refresh_secret=request.cookies.get(current_app.config["REFRESH_COOKIE"]),
    )
    return _with_cookies(make_response("", 204), cookies)


@bp.get("/me")
@login_required()
def me():
    """
    Identity of the current session
    ---
    tags:
      - Auth
    security:
      - SessionCookie: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    return jsonify({"data": identity_out_schema.dump(g.identity)}), 200


@bp.post("/password")
@login_required()
def change_password():
    """
    Change password; every session and refresh token of the user is revoked
    ---
    tags:
      - Auth
    security:
      - SessionCookie: []
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             current_password: { type: string }
             new_password: { type: string }
    responses:
      204:
        description: Password changed, all sessions revoked
      401:
        description: Unauthorized or wrong current password
      422:
        description: Validation error
    """
    payload = request.get_json(silent=True) or {}
    data = password_change_schema.load(payload)

    with store_guard():
        user = storage.get(User, g.identity.user_id)
    if user is None or not verify_password(data["current_password"], user.password_hash):
        abort(401, description="Invalid credentials")

    # The pending hash change commits in the same transaction as the revocation.
    user.password_hash = hash_password(data["new_password"])
    RevocationManager().revoke_all_for_user(user.id)
    logger.info("password changed user=%s", user.id)
    return _with_cookies(make_response("", 204), clear_cookies())


@bp.post("/forgot-password")
def forgot_password():
    """
    Request a password reset link. The answer is the same whether or not the
    email belongs to an account.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
    responses:
      200:
        description: Request accepted
      422:
        description: Validation error
    """
    payload = request.get_json(silent=True) or {}
    data = forgot_password_schema.load(payload)
    # Delivering the token by email happens outside this service.
    request_reset(data["email"])
    return jsonify({"message": RESET_REQUESTED_MESSAGE}), 200


@bp.get("/reset-password")
def check_reset_token():
    """
    Tell whether a reset token can still be used (before showing the form)
    ---
    tags:
      - Auth
    parameters:
      - in: query
        name: token
        type: string
        required: true
    responses:
      200:
        description: "{valid: bool} plus the reason when invalid"
      400:
        description: Token missing
    """
    token = request.args.get("token")
    if not token:
        abort(400, description="Token is required")
    try:
        validate_reset_token(token)
    except ResetTokenInvalid as err:
        return jsonify({"data": {"valid": False, "error": err.code, "message": str(err)}}), 200
    return jsonify({"data": {"valid": True}}), 200


@bp.post("/reset-password")
def reset_password_with_token():
    """
    Set a new password with a reset token; every session and refresh token of the user is revoked
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             token: { type: string }
             password: { type: string }
    responses:
      200:
        description: Password reset, log in with the new password
      400:
        description: Reset token unknown, expired or already used
      422:
        description: Validation error
    """
    payload = request.get_json(silent=True) or {}
    data = reset_password_schema.load(payload)
    reset_password(data["token"], data["password"])
    response = make_response(jsonify({"message": "Password reset successful, please log in with the new password"}), 200)
    return _with_cookies(response, clear_cookies())
