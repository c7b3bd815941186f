"""Session and refresh-token lifecycle: login, rotation, revocation, identity, password reset."""
from services.auth_context import Identity, resolve_identity
from services.errors import (
    AuthError,
    Expired,
    InvalidToken,
    ResetTokenExpired,
    ResetTokenInvalid,
    ResetTokenUsed,
    ReuseDetected,
    StoreUnavailable,
    UnknownUser,
)
from services.password_reset import request_reset, reset_password, validate_reset_token
from services.revocation import RevocationManager
from services.rotation import RotationEngine, rotate
from services.sessions import login

__all__ = [
    "AuthError",
    "Expired",
    "Identity",
    "InvalidToken",
    "ResetTokenExpired",
    "ResetTokenInvalid",
    "ResetTokenUsed",
    "ReuseDetected",
    "RevocationManager",
    "RotationEngine",
    "StoreUnavailable",
    "UnknownUser",
    "login",
    "request_reset",
    "reset_password",
    "resolve_identity",
    "rotate",
    "validate_reset_token",
]
