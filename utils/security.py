"""
security helpers:
- Argon2 password hashing via argon2-cffi
- Access-token (JWT) creation/verification via PyJWT
- Opaque refresh secrets and family ids via secrets
"""
from __future__ import annotations

import hashlib
import secrets
import uuid
from datetime import datetime, timezone
from typing import Dict, Any

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import VerificationError, InvalidHashError

from flask import current_app

ACCESS_TOKEN_TYPE = "access"
REFRESH_SECRET_BYTES = 32  # 256 bits
FAMILY_ID_BYTES = 16  # 128 bits

ph = PasswordHasher()


class TokenError(Exception):
    """Access token failed verification (signature, expiry, shape or type)."""


def utcnow() -> datetime:
    """Naive UTC now; every stored timestamp uses this representation."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """ Verify a plaintext password using argon2
    """
    try:
        return ph.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def issue_access_token(user_id: str, role: str, family: str | None = None) -> str:
    """
    Sign a short-lived access token carrying {user_id, role, type}.
    family names the refresh-token lineage of the login, so logout can
    revoke it without the path-scoped refresh cookie.
    """
    now = utcnow()
    exp = now + current_app.config["ACCESS_TOKEN_EXPIRES"]
    payload = {
        "iss": current_app.config.get("JWT_ISSUER", "auth-session-api"),
        "user_id": str(user_id),
        "role": role,
        "type": ACCESS_TOKEN_TYPE,
        "iat": now,
        "exp": exp,
        # keeps two tokens minted in the same second distinct
        "jti": str(uuid.uuid4()),
    }
    if family:
        payload["family"] = family
    return jwt.encode(payload, current_app.config["JWT_SECRET"], algorithm=current_app.config["JWT_ALGORITHM"])


def decode_access_token(token: str, allow_expired: bool = False) -> Dict[str, Any]:
    """
    Decode and validate an access token.
    Raises TokenError on a bad signature, expiry, missing claims or a
    type other than "access". allow_expired skips only the expiry check
    (logout still has to identify a login whose token has lapsed).
    """
    if not token:
        raise TokenError("Missing token")
    try:
        decoded = jwt.decode(
            token,
            current_app.config["JWT_SECRET"],
            algorithms=[current_app.config["JWT_ALGORITHM"]],
            options={"require": ["exp", "iat"], "verify_exp": not allow_expired},
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token expired")
    except jwt.InvalidTokenError as exc:
        raise TokenError(f"Invalid token: {exc}")

    if decoded.get("type") != ACCESS_TOKEN_TYPE:
        raise TokenError("Wrong token type")
    if not decoded.get("user_id") or not decoded.get("role"):
        raise TokenError("Missing identity claims")
    return decoded


def issue_refresh_secret() -> str:
    """Opaque bearer secret; the database row is its only source of truth."""
    return secrets.token_hex(REFRESH_SECRET_BYTES)


def issue_family_id() -> str:
    """Lineage id, generated once per login."""
    return secrets.token_hex(FAMILY_ID_BYTES)


def issue_reset_token() -> str:
    """Opaque single-use password reset token, delivered out of band."""
    return secrets.token_hex(REFRESH_SECRET_BYTES)


def hash_secret(secret: str) -> str:
    """Lookup key for a refresh secret."""
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


def as_naive_utc(value: datetime) -> datetime:
    """Normalise a stored timestamp; postgres hands back aware values, sqlite naive ones."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value
